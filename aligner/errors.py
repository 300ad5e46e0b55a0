from __future__ import annotations

from typing import Optional


class AlignerError(Exception):
    """Base class for aligner errors."""


class ConfigError(AlignerError):
    """Invalid or missing configuration. Raised before the run loop starts."""


class VenueError(AlignerError):
    """A venue call (refresh, ticker, submit, cancel) failed."""

    def __init__(self, message: str, *, venue: Optional[str] = None) -> None:
        super().__init__(message)
        self.venue = venue


class AggregationError(VenueError):
    """Balance aggregation could not refresh every venue."""


class OrderNotOpenError(VenueError):
    """The venue no longer has the order open (filled, cancelled or unknown)."""
