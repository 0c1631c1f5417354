"""Exception types shared across ingestion, scoring and storage."""

from __future__ import annotations

from typing import List, Optional, Sequence


class TechPulseError(Exception):
    """Base class for errors raised by techpulse."""


class ConfigurationError(TechPulseError):
    pass


class FetchFailure(TechPulseError):
    """Raised when a source yields no items from either the feed or the fallback scrape."""

    def __init__(self, message: str, errors: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.errors: List[str] = list(errors or [message])


class DuplicateArticleError(TechPulseError):
    """Unique constraint violation on article url or slug."""

    def __init__(self, field: str, value: str):
        super().__init__(f"duplicate article {field}: {value}")
        self.field = field
        self.value = value
