"""
Calendar rules for deciding when the studio is open.
All open/close logic lives here, slots.py only enumerates hours.

Resolution order for a date (first match wins):
  1. April 25 (ANZAC Day)             → closed
  2. special-date override            → closed, or its own hours
  3. Saturday / Sunday                → closed
  4. requested coach never works that weekday → closed for that coach
  5. weekly business-hours rule       → closed, or its hours (08–18 if missing)
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from simbook.config import DEFAULT_OPEN_HOUR, DEFAULT_CLOSE_HOUR
from simbook.scheduling.availability import day_of_week, get_day_name, coach_works_on_day
from simbook.scheduling.types import (
    BusinessHoursRule, SpecialDateOverride, CoachAvailabilityBlock,
    CoachSelector, SpecificCoach, NO_COACH,
)

SATURDAY, SUNDAY = 6, 0


@dataclass(frozen=True)
class DayWindow:
    date: date
    open_hour: int
    close_hour: int
    is_closed: bool = False
    reason: Optional[str] = None


def is_anzac_day(d: date) -> bool:
    return d.month == 4 and d.day == 25


def index_business_hours(rules: Iterable[BusinessHoursRule]) -> dict[int, BusinessHoursRule]:
    return {r.day_of_week: r for r in rules}


def index_special_dates(overrides: Iterable[SpecialDateOverride]) -> dict[date, SpecialDateOverride]:
    return {o.date: o for o in overrides}


def resolve_day(
    d: date,
    business_hours: Mapping[int, BusinessHoursRule],
    special_dates: Mapping[date, SpecialDateOverride],
    coach: CoachSelector = NO_COACH,
    coach_blocks: Mapping[str, Sequence[CoachAvailabilityBlock]] = None,
) -> DayWindow:
    """Effective open/close window for one date, with a reason when closed."""
    dow = day_of_week(d)
    rule = business_hours.get(dow)
    open_hour = rule.open_hour if rule else DEFAULT_OPEN_HOUR
    close_hour = rule.close_hour if rule else DEFAULT_CLOSE_HOUR

    if is_anzac_day(d):
        return DayWindow(d, open_hour, close_hour, True, "Closed for ANZAC Day")

    override = special_dates.get(d)
    if override is not None:
        if override.is_closed:
            return DayWindow(d, open_hour, close_hour, True,
                             override.description or "Closed for special event")
        if override.open_hour is not None and override.close_hour is not None:
            open_hour, close_hour = override.open_hour, override.close_hour
        return _coach_window(d, open_hour, close_hour, coach, coach_blocks)

    if dow in (SATURDAY, SUNDAY):
        return DayWindow(d, open_hour, close_hour, True, f"Closed on {get_day_name(d)}s")

    window = _coach_window(d, open_hour, close_hour, coach, coach_blocks)
    if window.is_closed:
        return window

    if rule is not None and rule.is_closed:
        return DayWindow(d, open_hour, close_hour, True, f"Closed on {get_day_name(d)}s")
    return window


def _coach_window(d, open_hour, close_hour, coach, coach_blocks) -> DayWindow:
    # Only day-of-week participation is checked here; hours are a per-slot check.
    if isinstance(coach, SpecificCoach) and not coach_works_on_day(
        coach.coach_id, d, coach_blocks or {}
    ):
        return DayWindow(
            d, open_hour, close_hour, True,
            f"Coach {coach.coach_id} is not available on {get_day_name(d)}s",
        )
    return DayWindow(d, open_hour, close_hour)
