"""Exceptions raised by the atpack package."""

from __future__ import annotations

from typing import Any, Optional


class AtPackError(Exception):
    """Base exception for all atpack errors.

    Lets callers catch every error raised by this package with a single
    except clause.
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class DocumentError(AtPackError):
    """Raised when an input buffer is not well-formed XML.

    This is the only condition that aborts a parse. The underlying parser's
    diagnostic is kept in ``diagnostic`` and in ``details``.
    """

    def __init__(
        self,
        diagnostic: str,
        source: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = dict(details or {})
        details["diagnostic"] = diagnostic
        if source:
            details["source"] = source
            message = f"XML parsing error in {source}: {diagnostic}"
        else:
            message = f"XML parsing error: {diagnostic}"
        super().__init__(message=message, details=details)
        self.diagnostic = diagnostic
        self.source = source


class PackError(AtPackError):
    """Raised when a pack directory cannot be used at all.

    Examples:
    - no .pdsc manifest in the directory
    - the path does not exist
    """
