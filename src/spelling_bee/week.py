"""Spelling week windows.

A spelling week runs from Thursday 12:00 to the following Thursday 12:00,
UK time. The week id is the ISO date of the Thursday that opens the window,
and it keys every cached list and practice record.
"""
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

REFERENCE_TZ = ZoneInfo("Europe/London")
THURSDAY = 4  # Sunday = 0
RELEASE_HOUR = 12


def week_start_date(now: datetime) -> date:
    """Return the Thursday that opens the window containing ``now``.

    Naive datetimes are taken to be UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(REFERENCE_TZ)
    weekday = local.isoweekday() % 7
    if weekday == THURSDAY:
        days_back = 0 if local.hour >= RELEASE_HOUR else 7
    elif weekday > THURSDAY:
        days_back = weekday - THURSDAY
    else:
        days_back = (weekday + 3) % 7
    return local.date() - timedelta(days=days_back)


def week_id(now: datetime) -> str:
    return week_start_date(now).isoformat()


def current_week_id(now: datetime | None = None) -> str:
    return week_id(now or datetime.now(timezone.utc))


def week_bounds(week: str) -> tuple[datetime, datetime]:
    """Return the [start, end) instants of a week id, in UK time."""
    thursday = date.fromisoformat(week)
    start = datetime.combine(thursday, time(RELEASE_HOUR), tzinfo=REFERENCE_TZ)
    end = datetime.combine(thursday + timedelta(days=7), time(RELEASE_HOUR), tzinfo=REFERENCE_TZ)
    return start, end


def _ordinal(day: int) -> str:
    if day in (1, 21, 31):
        return f"{day}st"
    if day in (2, 22):
        return f"{day}nd"
    if day in (3, 23):
        return f"{day}rd"
    return f"{day}th"


def week_display_date(week: str) -> str:
    thursday = date.fromisoformat(week)
    return f"Spellings released on Thursday {_ordinal(thursday.day)} {thursday.strftime('%B')}"
