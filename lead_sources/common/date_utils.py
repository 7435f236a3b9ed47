"""Shared helpers for timezone-aware report week calculations."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/New_York"


@dataclass(frozen=True)
class WeekRange:
    monday: date
    sunday: date

    @property
    def label(self) -> str:
        return f"{format_mmddyyyy(self.monday)}-{format_mmddyyyy(self.sunday)}"


def get_timezone(name: str | None = None) -> ZoneInfo:
    """Return the reference timezone for week boundaries.

    Week boundaries follow the business timezone of the console (Eastern by
    default), never the locale of the machine running the scrape.
    """

    return ZoneInfo(name or DEFAULT_TIMEZONE)


def aware_now(tz: ZoneInfo | None = None) -> datetime:
    """Return ``datetime.now`` in the configured timezone."""

    timezone = tz or get_timezone()
    return datetime.now(timezone)


def format_mmddyyyy(value: date) -> str:
    return value.strftime("%m/%d/%Y")


def get_week_range(
    reference: datetime | None = None,
    tz: ZoneInfo | None = None,
    *,
    last_week: bool = False,
) -> WeekRange:
    """Return the Monday-Sunday window containing "today" in ``tz``.

    Aware references are converted into ``tz`` before the calendar date is
    taken; naive references are treated as already local to ``tz``. Only
    ``date`` arithmetic is used, so a DST change inside the week cannot move
    either boundary. ``last_week`` shifts the window back by seven days.
    """

    timezone = tz or get_timezone()
    current = reference or aware_now(timezone)
    if current.tzinfo is not None:
        current = current.astimezone(timezone)
    today = current.date()
    # ``weekday`` uses Monday=0.
    monday = today - timedelta(days=today.weekday() + (7 if last_week else 0))
    sunday = monday + timedelta(days=6)
    return WeekRange(monday=monday, sunday=sunday)
