from dataclasses import dataclass
from datetime import date, timedelta

import config

# ============================================================
# CALENDAR
# ============================================================


@dataclass(frozen=True)
class CalendarDay:
    iso: str
    label: str
    weekday: str
    is_weekend: bool


def build_calendar_days(start_year: int = None, end_year: int = None) -> list[CalendarDay]:
    """
    Every calendar day from Jan 1 of `start_year` to Dec 31 of `end_year`
    (inclusive), ascending. Weekends are flagged, never skipped.
    """
    if start_year is None:
        start_year, end_year = config.START_YEAR, config.END_YEAR
    if end_year is None:
        end_year = start_year

    current = date(start_year, 1, 1)
    last = date(end_year, 12, 31)

    days = []
    while current <= last:
        days.append(
            CalendarDay(
                iso=current.isoformat(),
                label=current.strftime("%d %b"),
                weekday=current.strftime("%a"),
                is_weekend=current.weekday() >= 5,
            )
        )
        current += timedelta(days=1)
    return days


def find_focus_date(today: date = None, start_year: int = None, end_year: int = None) -> str:
    """Today's ISO date clamped into the tracked range."""
    if start_year is None:
        start_year = config.START_YEAR
    if end_year is None:
        end_year = config.END_YEAR
    target = today or date.today()

    start = date(start_year, 1, 1)
    end = date(end_year, 12, 31)
    if target < start:
        target = start
    if target > end:
        target = end
    return target.isoformat()
