"""
Purpose:
- OpenAI-compatible backend: POST {base_url}/chat/completions via httpx.
- Works with any gateway that speaks the chat-completions dialect (custom base URL + model).
"""

from __future__ import annotations
from typing import Any, Dict
import base64

from ..core.errors import MissingCredentialError, ProviderError
from ..core.logging_config import get_logger
from .prompts import OPENAI_SYSTEM_INSTRUCTION, TRANSLATE_SYSTEM_INSTRUCTION
from .provider import CaptionProvider, CaptionResult, parse_caption

logger = get_logger("OpenAI")

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"

PARSE_FAILED_ZH = "解析 JSON 失败"


def clean_base_url(url: str) -> str:
    return (url or "").rstrip("/")


class OpenAIProvider(CaptionProvider):
    name = "openai"

    def _url(self) -> str:
        return f"{clean_base_url(self.config.endpoint_url or DEFAULT_BASE_URL)}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        key = (self.config.credential or "").strip()
        if not key:
            raise MissingCredentialError("请配置 OpenAI API Key")
        return {"Content-Type": "application/json", "Authorization": f"Bearer {key}"}

    def _model(self) -> str:
        return (self.config.model_name or DEFAULT_MODEL).strip()

    async def caption(self, image_bytes: bytes, mime_type: str, prompt: str) -> CaptionResult:
        headers = self._headers()
        b64 = base64.b64encode(image_bytes).decode("ascii")
        body = {
            "model": self._model(),
            "messages": [
                {"role": "system", "content": OPENAI_SYSTEM_INSTRUCTION},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{b64}"}},
                    ],
                },
            ],
            "response_format": {"type": "json_object"},
        }
        try:
            data = await self._post_json(self._url(), headers, body, label="OpenAI")
        except ProviderError as e:
            logger.warning(f"OpenAI Generation Error: {e}")
            raise

        content = _message_content(data)
        if not content:
            raise ProviderError("OpenAI 返回了空内容")
        return parse_caption(content, PARSE_FAILED_ZH)

    async def translate(self, chinese_text: str) -> str:
        headers = self._headers()
        body = {
            "model": self._model(),
            "messages": [
                {"role": "system", "content": TRANSLATE_SYSTEM_INSTRUCTION},
                {"role": "user", "content": chinese_text},
            ],
        }
        data = await self._post_json(self._url(), headers, body, label="OpenAI Translation")
        return _message_content(data)


def _message_content(data: Dict[str, Any]) -> str:
    choices = data.get("choices") or []
    if not choices:
        return ""
    message = (choices[0] or {}).get("message") or {}
    return message.get("content") or ""
