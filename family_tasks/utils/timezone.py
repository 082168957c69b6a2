"""Time zone helpers.

Timestamps are persisted as naive UTC. Users think in the household's local
zone, so "now", message formatting and calendar arithmetic go through here.
"""
from datetime import datetime
from typing import Optional

import pytz


def get_zone(name: str):
    return pytz.timezone(name)


def local_now(zone_name: str) -> datetime:
    """Current time as an aware datetime in the given zone."""
    return datetime.now(pytz.utc).astimezone(get_zone(zone_name))


def to_utc_naive(value: datetime, zone_name: str) -> datetime:
    """
    Convert a datetime to naive UTC for storage.

    Naive inputs are read as wall-clock time in ``zone_name``.
    """
    if value.tzinfo is None:
        value = get_zone(zone_name).localize(value)
    return value.astimezone(pytz.utc).replace(tzinfo=None)


def to_local(value: datetime, zone_name: str) -> datetime:
    """Convert a stored naive-UTC datetime to an aware local datetime."""
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(get_zone(zone_name))


def localize_wall_time(value: datetime, zone_name: str) -> datetime:
    """Attach the zone to a naive local wall-clock time, normalizing DST gaps."""
    zone = get_zone(zone_name)
    return zone.normalize(zone.localize(value))


def parse_timestamp(value: Optional[str], zone_name: str) -> Optional[datetime]:
    """
    Parse an ISO 8601 string into naive UTC.

    Args:
        value: ISO string, with or without offset; ``Z`` is accepted
        zone_name: Zone used for strings without an offset

    Returns:
        Naive UTC datetime, or None for empty input

    Raises:
        ValueError: If the string is not ISO 8601
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return to_utc_naive(parsed, zone_name)
