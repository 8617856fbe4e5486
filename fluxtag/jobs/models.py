from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol


class ItemStatus(str, Enum):
    IDLE = "idle"
    QUEUED = "queued"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    TRANSLATING = "translating"


IN_FLIGHT = frozenset({ItemStatus.LOADING, ItemStatus.TRANSLATING})


@dataclass(frozen=True)
class ImagePayload:
    filename: str
    data: bytes
    mime_type: str


@dataclass
class PreviewHandle:
    """Thumbnail bytes shown by the UI; released once when its item is deleted."""
    data: bytes
    mime_type: str = "image/jpeg"
    released: bool = False

    def release(self) -> None:
        self.data = b""
        self.released = True


@dataclass
class WorkItem:
    id: str
    payload: ImagePayload
    status: ItemStatus = ItemStatus.IDLE
    caption_en: str = ""
    caption_zh: str = ""
    error_message: Optional[str] = None
    attempt_count: int = 0
    selected: bool = False
    preview: Optional[PreviewHandle] = field(default=None, repr=False)

    @property
    def in_flight(self) -> bool:
        return self.status in IN_FLIGHT

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.payload.filename,
            "mime_type": self.payload.mime_type,
            "size": len(self.payload.data),
            "status": self.status.value,
            "caption": self.caption_en,
            "caption_zh": self.caption_zh,
            "error_message": self.error_message,
            "attempt_count": self.attempt_count,
            "selected": self.selected,
        }


@dataclass
class RunState:
    """
    Throttle state of one processing run. Only ever tightens:
    concurrency_limit goes down, dispatch_delay_ms goes up.
    """
    concurrency_limit: int
    dispatch_delay_ms: int
    cancelled: bool = False
    escalated: bool = False

    def escalate(self, concurrency_limit: int, dispatch_delay_ms: int) -> None:
        self.concurrency_limit = max(1, min(self.concurrency_limit, concurrency_limit))
        self.dispatch_delay_ms = max(self.dispatch_delay_ms, dispatch_delay_ms)
        self.escalated = True


class ItemObserver(Protocol):
    """Receiver of engine events. Unknown ids must be ignored, not raised on."""

    def __contains__(self, item_id: str) -> bool:
        ...

    def update_status(self, item_id: str, status: ItemStatus,
                      error_message: Optional[str] = None, attempt: Optional[int] = None) -> None:
        ...

    def update_result(self, item_id: str, en: str, zh: str) -> None:
        ...
