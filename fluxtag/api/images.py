"""
Purpose:
- Upload images / zip archives, list and search items, edit captions,
  selection, deletion and batch find/replace.
"""

from typing import List

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response

from ..core.errors import AppError
from ..services.session import CaptionSession
from .deps import get_session
from .schemas import BatchReplace, CaptionEdit

router = APIRouter(prefix="/api/v1/images", tags=["images"])

@router.post("")
async def upload(files: List[UploadFile] = File(...), session: CaptionSession = Depends(get_session)):
    """
    Accepts images and .zip archives in one multipart request.
    """
    raw = []
    for f in files:
        raw.append((f.filename or "upload", f.content_type, await f.read()))
    return {"ok": True, **session.add_uploads(raw)}

@router.get("")
def list_images(q: str = Query(default="", description="search filename / captions"),
                session: CaptionSession = Depends(get_session)):
    items = session.store.list(q)
    return {"ok": True, "count": len(items), "items": [it.to_dict() for it in items],
            "counts": session.store.counts()}

@router.delete("")
async def clear_all(session: CaptionSession = Depends(get_session)):
    return {"ok": True, "deleted": session.clear()}

@router.post("/select-all")
async def select_all(session: CaptionSession = Depends(get_session)):
    return {"ok": True, "selected": session.store.select_all()}

@router.post("/delete-selected")
async def delete_selected(session: CaptionSession = Depends(get_session)):
    return {"ok": True, "deleted": session.delete_selected()}

@router.post("/replace")
async def batch_replace(payload: BatchReplace, session: CaptionSession = Depends(get_session)):
    return {"ok": True, "changed": session.store.batch_replace(payload.find, payload.replace)}

@router.get("/{item_id}")
def get_image(item_id: str, session: CaptionSession = Depends(get_session)):
    return {"ok": True, "item": session.store.require(item_id).to_dict()}

@router.get("/{item_id}/preview")
def preview(item_id: str, session: CaptionSession = Depends(get_session)):
    item = session.store.require(item_id)
    if item.preview is None or item.preview.released:
        raise AppError("no preview for item", 404)
    return Response(content=item.preview.data, media_type=item.preview.mime_type)

@router.patch("/{item_id}")
async def edit(item_id: str, payload: CaptionEdit, session: CaptionSession = Depends(get_session)):
    item = session.store.edit_caption(item_id, en=payload.caption, zh=payload.caption_zh)
    return {"ok": True, "item": item.to_dict()}

@router.post("/{item_id}/select")
async def toggle_select(item_id: str, session: CaptionSession = Depends(get_session)):
    return {"ok": True, "item": session.store.toggle_select(item_id).to_dict()}

@router.delete("/{item_id}")
async def delete(item_id: str, session: CaptionSession = Depends(get_session)):
    session.delete(item_id)
    return {"ok": True, "deleted": 1}
