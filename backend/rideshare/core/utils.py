"""
Utility functions for the application.
"""
from typing import Optional
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo
import time


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """Turn an IANA zone name into a tzinfo. None keeps the host's local zone."""
    if not name:
        return None
    return ZoneInfo(name)


def local_date(epoch_ms: int, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of an epoch-ms instant in `tz` (host local zone when None)."""
    instant = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return instant.astimezone(tz).date()


def same_local_day(first_ms: int, second_ms: int, tz: Optional[tzinfo] = None) -> bool:
    """Check whether two instants fall on the same local calendar day."""
    return local_date(first_ms, tz) == local_date(second_ms, tz)
