"""
Purpose:
- Small interface every caption backend implements (caption + translate).
- RunConfig carries what a backend needs: credential, endpoint, model, prompt.
- get_provider() picks the backend from the provider name.

Notes:
- Captions come back as JSON {"en", "zh"}. If a backend returns something that
  does not parse, we keep the raw text as `en` instead of failing the item.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import json
import re

import httpx

from ..core.errors import ProviderError
from ..core.settings import settings

PROVIDERS = ("gemini", "openai")

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

@dataclass(frozen=True)
class CaptionResult:
    en: str
    zh: str

@dataclass(frozen=True)
class RunConfig:
    provider: str
    prompt: str
    credential: Optional[str] = None
    endpoint_url: Optional[str] = None
    model_name: Optional[str] = None
    timeout_s: float = 120.0
    # queue baselines for a run with this provider
    concurrency: int = 3
    dispatch_delay_ms: int = 500

    @property
    def credential_missing(self) -> bool:
        return not (self.credential or "").strip()


def provider_baseline(provider: str) -> tuple[int, int]:
    """(concurrency_limit, dispatch_delay_ms) a run starts with for this provider."""
    if provider == "openai":
        return settings.openai_concurrency, settings.openai_dispatch_delay_ms
    return settings.gemini_concurrency, settings.gemini_dispatch_delay_ms


def parse_caption(text: str, fallback_zh: str) -> CaptionResult:
    """
    Parse a {"en", "zh"} JSON answer. Unparseable answers degrade to
    (raw text, fallback_zh) rather than raising.
    """
    raw = (text or "").strip()
    body = raw
    m = _FENCE_RE.match(body)
    if m:
        body = m.group(1)
    try:
        data = json.loads(body or "{}")
    except ValueError:
        return CaptionResult(en=raw, zh=fallback_zh)
    if not isinstance(data, dict) or not isinstance(data.get("en"), str):
        return CaptionResult(en=raw, zh=fallback_zh)
    zh = data.get("zh")
    return CaptionResult(en=data["en"], zh=zh if isinstance(zh, str) else fallback_zh)


class CaptionProvider(ABC):
    """A vision-language backend. Failures raise ProviderError."""

    name: str = "base"

    def __init__(self, config: RunConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.config.timeout_s, transport=self._transport)

    async def _post_json(self, url: str, headers: dict, body: dict, label: str) -> dict:
        try:
            async with self._client() as client:
                resp = await client.post(url, headers=headers, json=body)
        except httpx.TransportError as e:
            # text carries "network" so the queue treats it as transient
            raise ProviderError(f"{label} network error: {e!r}") from e

        if resp.status_code >= 400:
            raise ProviderError(self._error_message(resp, label), status=resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"{label} returned a non-JSON body") from e

    @staticmethod
    def _error_message(resp: httpx.Response, label: str) -> str:
        try:
            err = (resp.json() or {}).get("error") or {}
        except ValueError:
            err = {}
        if isinstance(err, dict) and err.get("message"):
            status = err.get("status")
            return f"{status}: {err['message']}" if status else str(err["message"])
        return f"{label} Error: {resp.status_code} {resp.reason_phrase}"

    @abstractmethod
    async def caption(self, image_bytes: bytes, mime_type: str, prompt: str) -> CaptionResult:
        ...

    @abstractmethod
    async def translate(self, chinese_text: str) -> str:
        ...


def get_provider(config: RunConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> CaptionProvider:
    """
    Return the backend for config.provider. Unknown names are a config error.
    """
    # local imports keep the adapters importing this module, not the reverse
    from .gemini_provider import GeminiProvider
    from .openai_provider import OpenAIProvider

    if config.provider == "gemini":
        return GeminiProvider(config, transport=transport)
    if config.provider == "openai":
        return OpenAIProvider(config, transport=transport)
    raise ValueError(f"unknown provider: {config.provider!r} (expected one of {PROVIDERS})")
