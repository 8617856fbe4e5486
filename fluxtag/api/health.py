"""
Purpose:
- Ops probe: library versions, which provider/model/endpoint the session will call
  (key presence only, never the key), and the live queue snapshot.
"""

from fastapi import APIRouter, Depends
import sys, importlib

from ..core.settings import settings
from ..services.session import CaptionSession
from .deps import get_session

router = APIRouter(tags=["health"])

def _ver(modname: str) -> str:
    try:
        m = importlib.import_module(modname)
        return getattr(m, "__version__", "unknown")
    except Exception:
        return "not-installed"

@router.get("/healthz")
def healthz(session: CaptionSession = Depends(get_session)):
    rt = session.runtime
    cfg = session.run_config()
    return {
        "status": "ok",
        "python": sys.version.split()[0],
        "versions": {
            "fastapi": _ver("fastapi"),
            "uvicorn": _ver("uvicorn"),
            "pydantic_settings": _ver("pydantic_settings"),
            "httpx": _ver("httpx"),
            "PIL": _ver("PIL"),
        },
        "provider": {
            "name": rt.provider,
            "model": cfg.model_name,
            "endpoint": cfg.endpoint_url,
            "key_present": not cfg.credential_missing,
            "baseline_concurrency": cfg.concurrency,
            "baseline_dispatch_delay_ms": cfg.dispatch_delay_ms,
        },
        "config": {
            "tagging_mode": rt.tagging_mode,
            "request_timeout_s": settings.request_timeout_s,
            "image_extensions": settings.image_extensions,
        },
        "queue": session.status(),
    }
