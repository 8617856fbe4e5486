"""
Purpose:
- Gemini backend over the public REST generateContent endpoint (httpx, async).
- Caption: inline base64 image + prompt, JSON response schema {en, zh}.
- Translate: plain text generation.

Notes:
- API key goes in the x-goog-api-key header, never in the URL.
- Error bodies look like {"error": {"code": 429, "status": "RESOURCE_EXHAUSTED", "message": ...}};
  we keep status + message in the exception text so the queue can classify it.
"""

from __future__ import annotations
from typing import Any, Dict, List
import base64

from ..core.errors import MissingCredentialError, ProviderError
from ..core.logging_config import get_logger
from .prompts import CAPTION_OUTPUT_INSTRUCTIONS, translate_prompt
from .provider import CaptionProvider, CaptionResult, parse_caption

logger = get_logger("Gemini")

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash"

# answer kept when JSON parsing fails (soft degradation, not a retry)
PARSE_FAILED_ZH = "解析失败"

_BLOCK_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY"}

CAPTION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "en": {"type": "STRING"},
        "zh": {"type": "STRING"},
    },
    "required": ["en", "zh"],
}


class GeminiProvider(CaptionProvider):
    name = "gemini"

    def _url(self) -> str:
        base = (self.config.endpoint_url or DEFAULT_BASE_URL).rstrip("/")
        model = (self.config.model_name or DEFAULT_MODEL).strip()
        return f"{base}/models/{model}:generateContent"

    def _headers(self) -> Dict[str, str]:
        key = (self.config.credential or "").strip()
        if not key:
            raise MissingCredentialError("Gemini API Key 未配置")
        return {"x-goog-api-key": key, "Content-Type": "application/json"}

    async def _generate(self, body: Dict[str, Any]) -> str:
        headers = self._headers()
        data = await self._post_json(self._url(), headers, body, label="Gemini")
        return _response_text(data)

    async def caption(self, image_bytes: bytes, mime_type: str, prompt: str) -> CaptionResult:
        body = {
            "contents": [{
                "parts": [
                    {"inline_data": {
                        "mime_type": mime_type,
                        "data": base64.b64encode(image_bytes).decode("ascii"),
                    }},
                    {"text": f"{prompt}\n\n{CAPTION_OUTPUT_INSTRUCTIONS}"},
                ],
            }],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": CAPTION_SCHEMA,
            },
        }
        text = await self._generate(body)
        return parse_caption(text or "{}", PARSE_FAILED_ZH)

    async def translate(self, chinese_text: str) -> str:
        body = {"contents": [{"parts": [{"text": translate_prompt(chinese_text)}]}]}
        try:
            return await self._generate(body)
        except ProviderError as e:
            logger.warning(f"Translation error: {e}")
            raise


def _response_text(data: Dict[str, Any]) -> str:
    """
    Join the text parts of the first candidate. A blocked prompt or a
    safety-stopped candidate without text raises a SAFETY error.
    """
    candidates: List[Dict[str, Any]] = data.get("candidates") or []
    if not candidates:
        reason = (data.get("promptFeedback") or {}).get("blockReason")
        if reason:
            raise ProviderError(f"SAFETY: prompt blocked ({reason})")
        return ""

    first = candidates[0]
    parts = (first.get("content") or {}).get("parts") or []
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    finish = first.get("finishReason")
    if not text and finish in _BLOCK_REASONS:
        raise ProviderError(f"SAFETY: response blocked ({finish})")
    return text
