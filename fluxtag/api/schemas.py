"""
Purpose:
- Pydantic models for request bodies so the API is self-documenting and stable.
"""

from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Optional

class CaptionEdit(BaseModel):
    caption: Optional[str] = Field(None, description="English caption (the one exported)")
    caption_zh: Optional[str] = Field(None, description="Chinese helper caption")

class BatchReplace(BaseModel):
    find: str = Field(..., min_length=1, description="Text to look for in English captions")
    replace: str = Field("", description="Replacement; empty deletes the match")

class TranslateIn(BaseModel):
    # None -> translate the item's current Chinese caption
    caption_zh: Optional[str] = None
