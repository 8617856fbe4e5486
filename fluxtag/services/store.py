"""
Purpose:
- In-memory list of work items for the session (insertion ordered).
- Receives engine events (update_status / update_result); events for items
  that were deleted meanwhile are dropped silently.
- User edits: caption text, selection, search, batch replace, deletion.

Notes:
- Caption text is read-only while the item is loading/translating.
- A preview handle is released exactly once, when its item leaves the store.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional
import uuid

from ..core.errors import AppError
from ..core.logging_config import get_logger
from ..jobs.models import ImagePayload, ItemStatus, PreviewHandle, WorkItem

logger = get_logger("Store")

class ItemStore:
    def __init__(self):
        self._items: Dict[str, WorkItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    # ---- creation / lookup ----

    def add(self, payload: ImagePayload, preview: Optional[PreviewHandle] = None) -> WorkItem:
        item = WorkItem(id=uuid.uuid4().hex, payload=payload, preview=preview)
        self._items[item.id] = item
        return item

    def get(self, item_id: str) -> Optional[WorkItem]:
        return self._items.get(item_id)

    def require(self, item_id: str) -> WorkItem:
        item = self._items.get(item_id)
        if item is None:
            raise AppError(f"item not found: {item_id}", 404)
        return item

    def list(self, search: str = "") -> List[WorkItem]:
        """
        All items, optionally filtered: English caption and filename match
        case-insensitively, Chinese caption by plain substring.
        """
        items = list(self._items.values())
        if not search:
            return items
        low = search.lower()
        return [
            it for it in items
            if low in it.caption_en.lower()
            or search in it.caption_zh
            or low in it.payload.filename.lower()
        ]

    def pending(self) -> List[WorkItem]:
        """Selected items if any are selected, otherwise idle + error items."""
        selected = [it for it in self._items.values() if it.selected]
        if selected:
            return selected
        return [it for it in self._items.values() if it.status in (ItemStatus.IDLE, ItemStatus.ERROR)]

    def counts(self) -> dict:
        items = list(self._items.values())
        by_status = {s.value: 0 for s in ItemStatus}
        for it in items:
            by_status[it.status.value] += 1
        processed = by_status["success"] + by_status["error"]
        return {
            "total": len(items),
            "selected": sum(1 for it in items if it.selected),
            "by_status": by_status,
            "pending": by_status["idle"] + by_status["error"],
            "progress_percent": round(processed / len(items) * 100) if items else 0,
        }

    # ---- engine observer surface ----

    def update_status(self, item_id: str, status: ItemStatus,
                      error_message: Optional[str] = None, attempt: Optional[int] = None) -> None:
        item = self._items.get(item_id)
        if item is None:
            return
        item.status = ItemStatus(status)
        item.error_message = error_message
        if attempt is not None:
            item.attempt_count = attempt

    def update_result(self, item_id: str, en: str, zh: str) -> None:
        item = self._items.get(item_id)
        if item is None:
            return
        item.caption_en = en
        item.caption_zh = zh

    # ---- user edits ----

    def edit_caption(self, item_id: str, en: Optional[str] = None, zh: Optional[str] = None) -> WorkItem:
        item = self.require(item_id)
        if item.in_flight:
            raise AppError("item is being processed; captions are read-only", 409)
        if en is not None:
            item.caption_en = en
        if zh is not None:
            item.caption_zh = zh
        return item

    def toggle_select(self, item_id: str) -> WorkItem:
        item = self.require(item_id)
        item.selected = not item.selected
        return item

    def select_all(self) -> bool:
        """Select everything, or clear the selection if everything is already selected."""
        items = list(self._items.values())
        all_selected = bool(items) and all(it.selected for it in items)
        for it in items:
            it.selected = not all_selected
        return not all_selected

    def batch_replace(self, find: str, replace: str = "") -> int:
        """Replace `find` in every English caption. Returns how many captions changed."""
        if not find:
            return 0
        changed = 0
        for it in self._items.values():
            if it.in_flight or find not in it.caption_en:
                continue
            it.caption_en = it.caption_en.replace(find, replace)
            changed += 1
        return changed

    # ---- deletion ----

    def _drop(self, item_id: str) -> None:
        item = self._items.pop(item_id, None)
        if item is not None and item.preview is not None and not item.preview.released:
            item.preview.release()

    def delete(self, item_id: str) -> None:
        self.require(item_id)
        self._drop(item_id)

    def delete_many(self, item_ids: Iterable[str]) -> int:
        count = 0
        for item_id in list(item_ids):
            if item_id in self._items:
                self._drop(item_id)
                count += 1
        return count

    def delete_selected(self) -> int:
        return self.delete_many([it.id for it in self._items.values() if it.selected])

    def clear(self) -> int:
        count = self.delete_many(list(self._items))
        logger.info(f"Cleared {count} items")
        return count
