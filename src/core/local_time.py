"""
Local sale date/time derivation.

Vendors report settlement instants in UTC (or as unix seconds). The ledger
stores the restaurant's local wall clock, so a sale closed at 02:30 UTC in
Chicago lands on the previous calendar day.

Example:
    >>> to_local_sale_datetime(datetime(2024, 1, 2, 2, 30, tzinfo=pytz.UTC), "America/Chicago")
    (date(2024, 1, 1), time(20, 30))
"""
import logging
from datetime import datetime, date, time, timezone
from typing import Optional, Tuple

import pytz

from src.core.config import get_settings

logger = logging.getLogger(__name__)


def resolve_timezone(timezone_name: Optional[str]):
    """
    Return a pytz zone for an IANA name, falling back to the configured default.

    A missing or unknown zone is logged, never raised: a bad tenant setting
    must not stop a sync.
    """
    fallback = get_settings().DEFAULT_RESTAURANT_TIMEZONE
    if not timezone_name:
        return pytz.timezone(fallback)
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown restaurant timezone {timezone_name!r}, using {fallback}")
        return pytz.timezone(fallback)


def to_local_sale_datetime(instant: datetime, timezone_name: Optional[str]) -> Tuple[date, time]:
    """
    Convert a settlement instant to the restaurant's local (date, time).

    Args:
        instant: The settlement instant. Naive values are treated as UTC.
        timezone_name: IANA zone of the restaurant (None -> default zone)

    Returns:
        (sale_date, sale_time) in restaurant local time, time truncated to seconds
    """
    if instant.tzinfo is None:
        instant = pytz.UTC.localize(instant)
    local = instant.astimezone(resolve_timezone(timezone_name))
    return local.date(), local.time().replace(microsecond=0, tzinfo=None)


def from_unix_seconds(value) -> datetime:
    """Convert unix seconds (int, float or numeric string) to an aware UTC datetime."""
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
