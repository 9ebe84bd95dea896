"""
Error taxonomy for the monitor.

Per-line parse failures are absorbed by the parsers; everything else here is
raised to the caller of the failing operation.
"""
from __future__ import annotations

from typing import Optional

from models.schemas import ValidationErrorDetail


class MonitorError(Exception):
    """Base class for every error raised by the monitor core."""

    kind = "error"


class SourceIOError(MonitorError, OSError):
    """A configured file could not be read or written."""

    kind = "io error"


class ParseError(MonitorError, ValueError):
    """A line (or a whole file) could not be understood."""

    kind = "parse error"

    def __init__(self, message: str, line_number: Optional[int] = None):
        super().__init__(message)
        self.line_number = line_number

    def __str__(self) -> str:
        base = super().__str__()
        if self.line_number is not None:
            return f"line {self.line_number}: {base}"
        return base


class EntryValidationError(MonitorError, ValueError):
    """A static entry failed field-level rules; nothing was mutated."""

    kind = "validation failed"

    def __init__(self, detail: ValidationErrorDetail):
        super().__init__(detail.message)
        self.detail = detail

    def __str__(self) -> str:
        return f"validation failed: {self.detail.message}"


class ConflictError(MonitorError):
    """An enabled entry already uses the MAC or IP; nothing was mutated."""

    kind = "conflict"


class NotFoundError(MonitorError, LookupError):
    """No static entry with the requested id."""

    kind = "not found"


__all__ = [
    "MonitorError",
    "SourceIOError",
    "ParseError",
    "EntryValidationError",
    "ConflictError",
    "NotFoundError",
]
