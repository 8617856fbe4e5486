"""
Purpose:
- Shared router helpers: the session dependency and the JSON error envelope.
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from ..core.errors import AppError
from ..services.session import CaptionSession

def get_session(request: Request) -> CaptionSession:
    return request.app.state.session

async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.code, content={"ok": False, "error": str(exc)})
