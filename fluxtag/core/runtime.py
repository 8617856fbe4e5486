"""
Purpose:
- The user-editable slice of configuration for the running session
  (provider, keys, prompt, prefix/suffix). Seeded from Settings at startup,
  patched over HTTP, never written to disk.
"""

from __future__ import annotations
from typing import Literal, Optional
import os

from pydantic import BaseModel, Field

from .settings import Settings
from ..vlm.prompts import prompt_for_mode

class RuntimeSettings(BaseModel):
    provider: Literal["gemini", "openai"] = "gemini"
    tagging_mode: Literal["flux", "qwen"] = "flux"
    prompt: str = Field(default_factory=lambda: prompt_for_mode("flux"))
    prefix: str = ""
    suffix: str = ""

    gemini_api_key: str = ""
    gemini_base_url: Optional[str] = None
    gemini_model: Optional[str] = None

    openai_api_key: str = ""
    openai_base_url: Optional[str] = None
    openai_model: Optional[str] = None

    @classmethod
    def from_settings(cls, s: Settings) -> "RuntimeSettings":
        mode = s.tagging_mode if s.tagging_mode in ("flux", "qwen") else "flux"
        return cls(
            provider=s.provider if s.provider in ("gemini", "openai") else "gemini",
            tagging_mode=mode,
            prompt=s.custom_prompt or prompt_for_mode(mode),
            prefix=s.prefix,
            suffix=s.suffix,
            # API_KEY kept as a fallback for the Gemini key
            gemini_api_key=s.gemini_api_key or os.getenv("API_KEY") or "",
            gemini_base_url=s.gemini_base_url,
            gemini_model=s.gemini_model,
            openai_api_key=s.openai_api_key or "",
            openai_base_url=s.openai_base_url,
            openai_model=s.openai_model,
        )

    def active_credential(self) -> str:
        return self.openai_api_key if self.provider == "openai" else self.gemini_api_key

    def public(self) -> dict:
        """Settings as shown to the browser: keys are reported as present/absent only."""
        data = self.model_dump(exclude={"gemini_api_key", "openai_api_key"})
        data["gemini_api_key_set"] = bool(self.gemini_api_key.strip())
        data["openai_api_key_set"] = bool(self.openai_api_key.strip())
        return data

    def apply(self, patch: "RuntimeSettingsPatch") -> "RuntimeSettings":
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        # switching mode loads that mode's prompt unless a prompt came with it
        if "tagging_mode" in changes and "prompt" not in changes:
            changes["prompt"] = prompt_for_mode(changes["tagging_mode"])
        return type(self).model_validate({**self.model_dump(), **changes})


class RuntimeSettingsPatch(BaseModel):
    provider: Optional[Literal["gemini", "openai"]] = None
    tagging_mode: Optional[Literal["flux", "qwen"]] = None
    prompt: Optional[str] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_base_url: Optional[str] = None
    gemini_model: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: Optional[str] = None
