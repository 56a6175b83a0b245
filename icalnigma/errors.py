"""
Error types shared by all conversion steps.

Three kinds of problems can occur while converting a Rapla export:

- StructureError:  the document itself is unusable (fatal, no output)
- ExtractionError: one event or one day could not be read (skip and continue)
- ArchiveError:    the archive file could not be read or written

Every error keeps its context as attributes so callers can branch on
the class and still print a readable message.
"""

from __future__ import annotations

from typing import Optional


class ConversionError(Exception):
    """
    Base class for all errors raised by icalnigma.
    """


class StructureError(ConversionError):
    def __init__(self, element: str, detail: str = "") -> None:
        self.element = element
        self.detail = detail
        message = f"Document structure error at <{element}>"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ExtractionError(ConversionError):
    def __init__(self, field: str, raw: Optional[str] = None, detail: str = "") -> None:
        self.field = field
        self.raw = raw
        self.detail = detail
        message = f"Failed to extract {field}"
        if raw is not None:
            message += f" from {raw!r}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class ArchiveError(ConversionError):
    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Archive {path}: {reason}")
