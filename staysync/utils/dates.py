"""
Date helpers shared by the sync engine and the read paths.

All cache dates are plain calendar days. "Today" is taken in the
scheduler timezone so the sync window and retention cutoff agree with
the cron schedule.
"""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import settings


def local_today(tz_name: Optional[str] = None) -> date:
    tz = ZoneInfo(tz_name or settings.scheduler_timezone)
    return datetime.now(tz).date()


def nights_between(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD, ignoring any time component that follows."""
    return date.fromisoformat(value.strip()[:10])
