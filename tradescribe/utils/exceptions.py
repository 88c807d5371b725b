from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    EXTERNAL = "external"
    SYSTEM = "system"


class JournalError(Exception):
    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        status_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.category = category
        self.status_code = status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.category.value}] {self.message}"]
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return " | ".join(parts)


class NoteRequiredError(JournalError):
    def __init__(self, message: str = "A journal note is required.") -> None:
        super().__init__(message, ErrorCategory.VALIDATION, 400)


class TradeNotFoundError(JournalError):
    def __init__(self, trade_id: Optional[str] = None, message: str = "") -> None:
        self.trade_id = trade_id
        super().__init__(message or "Trade not found.", ErrorCategory.NOT_FOUND, 404)


class FilterError(JournalError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.VALIDATION, 400)


class CapabilityError(JournalError):
    """Failure of an external capability. Travels inside a Failure result."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message, ErrorCategory.EXTERNAL, status_code)
