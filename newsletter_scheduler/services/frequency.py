"""Frequency arithmetic for recurring newsletter schedules.

All schedule dates pass through :func:`advance`. Timestamps are treated as
absolute instants: naive values are read as UTC and every result is an
aware UTC datetime. The ``tz`` argument only selects the calendar in which a
step is taken, so "monthly" in ``America/New_York`` keeps the local wall
clock across a DST change while the UTC default is plain UTC arithmetic.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from newsletter_scheduler.models.schedule import Frequency

# Unrecognized frequencies advance weekly
DEFAULT_FREQUENCY = Frequency.WEEKLY

_STEPS = {
    Frequency.DAILY: relativedelta(days=1),
    Frequency.WEEKLY: relativedelta(days=7),
    Frequency.BI_WEEKLY: relativedelta(days=14),
    # relativedelta clamps to the last day of shorter months
    Frequency.MONTHLY: relativedelta(months=1),
}


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_frequency(value: Union[Frequency, str, None]) -> Optional[Frequency]:
    """Return the matching Frequency, or None when the value is not recognized."""
    if isinstance(value, Frequency):
        return value
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower().replace("_", "-")
    if normalized == "biweekly":
        normalized = Frequency.BI_WEEKLY.value
    try:
        return Frequency(normalized)
    except ValueError:
        return None


def is_known_frequency(value: Union[Frequency, str, None]) -> bool:
    return parse_frequency(value) is not None


def advance(
    date: datetime,
    frequency: Union[Frequency, str, None],
    tz: str = "UTC",
) -> datetime:
    """Advance ``date`` by one step of ``frequency``.

    daily: +1 day, weekly: +7 days, bi-weekly: +14 days, monthly: +1
    calendar month with the day clamped to the month length. Anything else
    advances weekly.
    """
    step = _STEPS[parse_frequency(frequency) or DEFAULT_FREQUENCY]
    local = ensure_utc(date).astimezone(ZoneInfo(tz))
    # Step in wall-clock time, then resolve back to an instant
    stepped = (local.replace(tzinfo=None) + step).replace(tzinfo=ZoneInfo(tz))
    return stepped.astimezone(timezone.utc)


def collection_points(
    start: datetime,
    until: datetime,
    interval_hours: float,
) -> list:
    """Evenly spaced instants in ``[start, until)``, roughly ``interval_hours`` apart.

    At least one point (``start`` itself) is returned when the window is not
    empty.
    """
    start = ensure_utc(start)
    until = ensure_utc(until)
    if until <= start:
        return []

    hours_between = (until - start).total_seconds() / 3600
    count = max(1, int(hours_between // interval_hours))
    spacing = timedelta(hours=hours_between / count)
    return [start + spacing * i for i in range(count)]
