"""
Purpose:
- Download captions: one .txt per image, or everything captioned as captions.zip.
- Text = prefix + caption + suffix (see services/export.final_caption).
"""

from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ..services.export import ZIP_NAME
from ..services.session import CaptionSession
from .deps import get_session

router = APIRouter(prefix="/api/v1/export", tags=["export"])

def _attachment(filename: str) -> dict:
    # RFC 5987 form keeps non-ASCII file names intact
    return {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"}

@router.get("/zip")
def download_zip(session: CaptionSession = Depends(get_session)):
    data = session.export_zip()
    return Response(content=data, media_type="application/zip", headers=_attachment(ZIP_NAME))

@router.get("/{item_id}")
def download_single(item_id: str, session: CaptionSession = Depends(get_session)):
    name, content = session.caption_text(item_id)
    return Response(content=content, media_type="text/plain; charset=utf-8", headers=_attachment(name))
