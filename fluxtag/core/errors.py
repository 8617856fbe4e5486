from __future__ import annotations

from typing import Optional


class AppError(RuntimeError):
    """API-level failure; `code` is the HTTP status the router should answer with."""

    def __init__(self, message: str, code: int) -> None:
        super().__init__(message)
        self.code = code


class ProviderError(RuntimeError):
    """Any transport/parse/policy failure raised by a caption provider."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is not None and str(self.status) not in base:
            return f"{base} (HTTP {self.status})"
        return base


class MissingCredentialError(ProviderError):
    """Raised before any request when the selected provider has no API key."""
