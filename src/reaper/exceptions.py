"""Application exceptions for the reaper router.

Provider failures live in :mod:`reaper.providers.base`; these cover the
application layer around them.
"""

from typing import Any, Dict, Optional


class ReaperException(Exception):
    """Base exception for the router application."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}


class ConfigurationError(ReaperException):
    """Settings are inconsistent or incomplete."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)
        if field:
            self.details["field"] = field


__all__ = [
    "ReaperException",
    "ConfigurationError",
]
