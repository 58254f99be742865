"""
Absolute-time helpers for visitor passes.

Everything here works on timezone-aware UTC datetimes. Local time only
appears in `format_local`, which is for display and never feeds back into
arithmetic.
"""
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

PASS_VALIDITY = timedelta(seconds=1800)

Instant = Union[str, datetime, None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    # naive values are taken to be UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def compute_expiry(now: datetime, validity: timedelta = PASS_VALIDITY) -> datetime:
    """Expiry instant for a pass created at `now`."""
    return ensure_utc(now) + validity


def to_iso(dt: datetime) -> str:
    """ISO-8601 UTC with a `Z` designator and millisecond precision."""
    dt = ensure_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_instant(value: Instant) -> Optional[datetime]:
    """
    Parse a persisted or received timestamp.

    Returns None for anything missing or unparseable; callers treat None as
    already expired.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)

    raw = str(value).strip()
    if not raw:
        return None
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError:
        logger.warning(f"Unparseable timestamp {value!r}, treating as expired")
        return None


def remaining_seconds(expires_at: Instant, now: datetime) -> int:
    """Whole seconds left before `expires_at`, never below zero."""
    expiry = parse_instant(expires_at)
    if expiry is None:
        return 0
    delta = (expiry - ensure_utc(now)).total_seconds()
    if delta <= 0:
        return 0
    return int(math.floor(delta))


def is_expired(expires_at: Instant, now: datetime) -> bool:
    return remaining_seconds(expires_at, now) == 0


def format_local(value: Instant, tz_name: str = "UTC") -> str:
    """Human readable local time, e.g. `01 Jan 2024, 05:30:00 AM`."""
    dt = parse_instant(value)
    if dt is None:
        return "-"
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown display timezone {tz_name!r}, using UTC")
        tz = timezone.utc
    return dt.astimezone(tz).strftime("%d %b %Y, %I:%M:%S %p")
