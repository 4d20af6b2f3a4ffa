"""Error types shared by the sync job"""

from typing import Optional


class DevLogError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(DevLogError):
    """A required setting is missing or invalid."""


class ValidationError(DevLogError):
    """Malformed date input or an inverted date range."""


class NotionApiError(DevLogError):
    """User-friendly Notion API error."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.code = code


class RateLimitError(NotionApiError):
    """Notion answered 429 / rate_limited."""
