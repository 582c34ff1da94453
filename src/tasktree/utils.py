from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional, Union

ReminderInput = Union[date, datetime, str]


# PUBLIC_INTERFACE
def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Naive datetimes are interpreted as UTC; aware ones are converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# PUBLIC_INTERFACE
def parse_reminder(value: Optional[ReminderInput]) -> Optional[datetime]:
    """
    Normalize reminder input into an aware UTC datetime.

    - None and empty strings mean "no reminder".
    - Strings are parsed as ISO8601 datetimes (a trailing 'Z' is accepted);
      a bare date is promoted to midnight.
    - A date (not datetime) is promoted to midnight.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return to_utc(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.endswith("Z") or s.endswith("z"):
            s = s[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(s))
        except ValueError:
            try:
                d = date.fromisoformat(s)
            except ValueError as e:
                raise ValueError(
                    "Invalid reminder format. Use an ISO8601 date or datetime string "
                    "(e.g., '2025-01-31' or '2025-01-31T13:45:00Z')."
                ) from e
            return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)

    raise ValueError("Invalid type for reminder; expected date, datetime, or ISO8601 string.")


# PUBLIC_INTERFACE
def format_timestamp(value: datetime) -> str:
    """Encode a datetime as an ISO8601 string in UTC (e.g. '2025-01-31T13:45:00+00:00')."""
    normalized = to_utc(value)
    assert normalized is not None
    return normalized.isoformat()


# PUBLIC_INTERFACE
def new_task_id() -> str:
    """Return a fresh collision-resistant task id."""
    return uuid.uuid4().hex
