"""
Purpose:
- Sort provider failures into retryable / terminal buckets and pick the short
  message the UI shows on a terminal failure.

Rules (same for both providers):
- rate limit: HTTP 429, or text with "429" / "RESOURCE_EXHAUSTED" / "quota"
- transient: HTTP 503, or text with "503" / "fetch" / "network", or an httpx transport error
- terminal: missing credential, MIME problems, SAFETY blocks, anything else
"""

from __future__ import annotations
from enum import Enum

import httpx

from ..core.errors import MissingCredentialError


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    MALFORMED = "malformed"
    CONTENT_BLOCKED = "content_blocked"
    MISSING_CREDENTIAL = "missing_credential"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT)


ERROR_MESSAGES = {
    ErrorKind.RATE_LIMITED: "配额耗尽",
    ErrorKind.TRANSIENT: "生成失败",
    ErrorKind.MALFORMED: "格式错误",
    ErrorKind.CONTENT_BLOCKED: "内容拦截",
    ErrorKind.MISSING_CREDENTIAL: "缺 API Key",
    ErrorKind.UNKNOWN: "生成失败",
}

TRANSLATE_FAILED_MESSAGE = "同步失败"


def error_text(exc: BaseException) -> str:
    """Flatten an exception (type, status, message, causes) into one searchable string."""
    pieces = []
    seen = set()
    cur = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        pieces.append(type(cur).__name__)
        status = getattr(cur, "status", None) or getattr(cur, "status_code", None)
        if status is not None:
            pieces.append(str(status))
        pieces.append(str(cur))
        cur = cur.__cause__ or cur.__context__
    return " ".join(pieces)


def _status_of(exc: BaseException):
    status = getattr(exc, "status", None)
    if status is None:
        status = getattr(exc, "status_code", None)
    return status


def is_rate_limit(exc: BaseException) -> bool:
    text = error_text(exc)
    return (
        _status_of(exc) == 429
        or "429" in text
        or "RESOURCE_EXHAUSTED" in text
        or "quota" in text
    )


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    text = error_text(exc)
    return (
        _status_of(exc) == 503
        or "503" in text
        or "fetch" in text
        or "network" in text
    )


def classify(exc: BaseException, credential_missing: bool = False) -> ErrorKind:
    if isinstance(exc, MissingCredentialError):
        return ErrorKind.MISSING_CREDENTIAL
    if is_rate_limit(exc):
        return ErrorKind.RATE_LIMITED
    if is_transient(exc):
        return ErrorKind.TRANSIENT

    text = error_text(exc)
    if "MIME" in text:
        return ErrorKind.MALFORMED
    if "SAFETY" in text:
        return ErrorKind.CONTENT_BLOCKED
    if credential_missing:
        return ErrorKind.MISSING_CREDENTIAL
    return ErrorKind.UNKNOWN


def error_message(kind: ErrorKind) -> str:
    return ERROR_MESSAGES.get(kind, ERROR_MESSAGES[ErrorKind.UNKNOWN])
