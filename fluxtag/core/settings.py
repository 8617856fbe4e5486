"""
Purpose:
- Centralized configuration using pydantic-settings.
- Reads from environment variables and optional .env file.
- Provider credentials, tagging defaults and queue baselines live here.
"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Pydantic v2 config (env file + ignore unexpected env vars)
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API host/port
    host: str = Field(default="0.0.0.0", description="Bind address for FastAPI/Uvicorn")
    port: int = Field(default=8000, description="Port for FastAPI/Uvicorn")

    # CORS
    cors_allow_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed origins for browser apps"
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = None

    # ---- Provider selection ----
    provider: str = Field(default="gemini", description='"gemini" | "openai"')
    request_timeout_s: float = Field(default=120.0, description="HTTP transport timeout per provider call")

    # Gemini (GEMINI_API_KEY); API_KEY is honoured as a fallback
    gemini_api_key: Optional[str] = None
    gemini_base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    gemini_model: str = Field(default="gemini-2.5-flash")

    # OpenAI-compatible endpoint
    openai_api_key: Optional[str] = None
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_model: str = Field(default="gpt-4o")

    # ---- Tagging defaults ----
    tagging_mode: str = Field(default="flux", description='"flux" | "qwen"')
    custom_prompt: Optional[str] = None
    prefix: str = Field(default="swj-s5-dw, ")
    suffix: str = Field(default=", white background, vector line art style")

    # ---- Queue baselines per provider (ms for delays) ----
    gemini_concurrency: int = Field(default=3)
    gemini_dispatch_delay_ms: int = Field(default=500)
    openai_concurrency: int = Field(default=5)
    openai_dispatch_delay_ms: int = Field(default=100)

    # ---- Ingest ----
    image_extensions: List[str] = Field(default=[".png", ".jpg", ".jpeg", ".webp", ".bmp"])
    preview_max_px: int = Field(default=384)

settings = Settings()
