"""
Utility functions for time/availability checks.
"""
from datetime import datetime, date, timedelta
from typing import Iterable, Mapping, Sequence

from simbook.scheduling.types import CoachAvailabilityBlock

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def day_of_week(d: date) -> int:
    """date → 0=Sunday … 6=Saturday (the numbering used by the stored schedules)."""
    return (d.weekday() + 1) % 7


def get_day_name(d: date) -> str:
    """date → 'Monday', 'Tuesday', etc."""
    return DAY_NAMES[day_of_week(d)]


def at_hour(d: date, hour: int) -> datetime:
    """Wall-clock datetime for a whole hour on a date; hour 24 rolls to the next day."""
    return datetime(d.year, d.month, d.day) + timedelta(hours=hour)


def overlaps(start_a: datetime, end_a: datetime,
             start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap. Touching endpoints do not conflict."""
    return start_a < end_b and end_a > start_b


def format_hour(hour: int) -> str:
    """13 → '1:00 PM', 0 → '12:00 AM'."""
    hour = hour % 24
    suffix = "AM" if hour < 12 else "PM"
    display = hour % 12 or 12
    return f"{display}:00 {suffix}"


def format_time_range(start: datetime, end: datetime) -> str:
    """'9:00 AM - 10:00 AM'"""
    return f"{format_hour(start.hour)} - {format_hour(end.hour)}"


def date_range(start: date, days: int) -> list[date]:
    return [start + timedelta(days=i) for i in range(days)]


# ── Coach schedule predicates ─────────────────────────────────────────────────

def blocks_for_day(blocks: Iterable[CoachAvailabilityBlock],
                   dow: int) -> list[CoachAvailabilityBlock]:
    return [b for b in blocks if b is not None and b.day_of_week == dow]


def coach_works_on_day(coach_id: str, d: date,
                       coach_blocks: Mapping[str, Sequence[CoachAvailabilityBlock]]) -> bool:
    """Date-level participation: any weekly block on this day-of-week at all."""
    return bool(blocks_for_day(coach_blocks.get(coach_id, ()), day_of_week(d)))


def block_contains(block: CoachAvailabilityBlock, start_hour: int, end_hour: int) -> bool:
    """Total containment; partial coverage is not enough."""
    return block.start_hour <= start_hour and block.end_hour >= end_hour


def coach_covers_hours(coach_id: str, d: date, start_hour: int, end_hour: int,
                       coach_blocks: Mapping[str, Sequence[CoachAvailabilityBlock]]) -> bool:
    """
    Check whether one of the coach's blocks for this day-of-week fully
    contains [start_hour, end_hour).
    """
    return any(
        block_contains(b, start_hour, end_hour)
        for b in blocks_for_day(coach_blocks.get(coach_id, ()), day_of_week(d))
    )
