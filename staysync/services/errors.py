"""
Error taxonomy for the cache engine.

Upstream errors are caught per unit during a sync pass and never fail
the whole pass. Query-time "insufficient data" is not an exception; it
is reported through QuoteStatus.
"""

from typing import Optional


class StaySyncError(Exception):
    """Base class for errors raised by the cache engine."""


class UpstreamError(StaySyncError):
    """Anything that went wrong talking to Rentals United."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UpstreamUnavailable(UpstreamError):
    """Transport failure, timeout, non-2xx or an upstream error status."""


class UpstreamDataMissing(UpstreamError):
    """Upstream answered but the expected payload is absent or malformed."""


class NoPricingConfigured(StaySyncError):
    """The unit has no seasons upstream; skipped for this pass."""


class SyncAlreadyRunning(StaySyncError):
    """A full sync pass is already in flight."""


class UnitNotFound(StaySyncError):
    def __init__(self, unit_id: str):
        super().__init__(f"Unit not found: {unit_id}")
        self.unit_id = unit_id


class InvalidDateRange(StaySyncError):
    """Check-out must be after check-in."""
