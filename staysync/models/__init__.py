# Models package
from .unit import Unit
from .booking import Booking, BookingStatus, BookingSource
from .daily_cache import DailyAvailabilityRecord
from .sync_run import SyncRun, SyncRunStatus

__all__ = [
    "Unit",
    "Booking", "BookingStatus", "BookingSource",
    "DailyAvailabilityRecord",
    "SyncRun", "SyncRunStatus",
]
