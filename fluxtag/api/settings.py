"""
Purpose:
- Read / patch the session's runtime settings (provider, keys, prompt, prefix/suffix).
- Keys are write-only here: responses only say whether a key is set.
"""

from fastapi import APIRouter, Depends

from ..core.runtime import RuntimeSettingsPatch
from ..services.session import CaptionSession
from .deps import get_session

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])

@router.get("")
def read_settings(session: CaptionSession = Depends(get_session)):
    return {"ok": True, "settings": session.runtime.public()}

@router.patch("")
def patch_settings(payload: RuntimeSettingsPatch, session: CaptionSession = Depends(get_session)):
    runtime = session.update_settings(payload)
    return {"ok": True, "settings": runtime.public()}
