"""
Purpose:
- Start / stop the captioning queue, poll its state, and the per-item
  regenerate + Chinese->English sync actions.
- Work runs in background tasks; the browser polls /status and /api/v1/images.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from ..services.session import CaptionSession
from .deps import get_session
from .schemas import TranslateIn

router = APIRouter(prefix="/api/v1/jobs", tags=["jobs"])

@router.post("/start")
async def start(session: CaptionSession = Depends(get_session)):
    return {"ok": True, **session.start()}

@router.post("/stop")
async def stop(session: CaptionSession = Depends(get_session)):
    session.stop()
    return {"ok": True, **session.status()}

@router.get("/status")
def status(session: CaptionSession = Depends(get_session)):
    return {"ok": True, **session.status()}

@router.post("/{item_id}/regenerate")
async def regenerate(item_id: str, session: CaptionSession = Depends(get_session)):
    return {"ok": True, **session.regenerate(item_id)}

@router.post("/{item_id}/translate")
async def translate(item_id: str, payload: Optional[TranslateIn] = None,
                    session: CaptionSession = Depends(get_session)):
    return {"ok": True, **session.translate(item_id, payload.caption_zh if payload else None)}
