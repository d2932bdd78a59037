"""Time point helpers: ISO-8601 parsing, local formatting, month rounding.

A time point is a timezone-aware datetime in UTC.
"""

from datetime import datetime, timedelta, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_timepoint(iso_str: str) -> datetime:
    """Parse an ISO-8601 UTC string like ``2024-05-01T08:30:00Z``.

    Fractional seconds and explicit offsets are accepted; naive strings are
    taken as UTC.

    Raises:
        ValueError: If the string is not a valid ISO-8601 date/time.
    """
    text = iso_str.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    tp = datetime.fromisoformat(text)
    if tp.tzinfo is None:
        return tp.replace(tzinfo=timezone.utc)
    return tp.astimezone(timezone.utc)


def from_timepoint(tp: datetime, show_date: bool = True, show_time: bool = True) -> str:
    """Format a time point in the local time zone."""
    local = tp.astimezone()
    parts = []
    if show_date:
        parts.append(local.strftime("%Y-%m-%d"))
    if show_time:
        parts.append(local.strftime("%H:%M:%S"))
    return " ".join(parts)


def round_timepoint_to_month(tp: datetime) -> datetime:
    """Truncate to the first day of the month, 00:00 UTC."""
    utc = tp.astimezone(timezone.utc)
    return datetime(utc.year, utc.month, 1, tzinfo=timezone.utc)


def to_epoch_seconds(tp: datetime) -> float:
    return (tp - EPOCH).total_seconds()


def from_epoch_seconds(secs: float) -> datetime:
    return EPOCH + timedelta(seconds=secs)


def to_epoch_ms(tp: datetime) -> int:
    """Whole milliseconds since the epoch."""
    return (tp - EPOCH) // timedelta(milliseconds=1)
