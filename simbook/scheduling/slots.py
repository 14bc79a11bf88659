"""
Slot generator: enumerates same-length candidate sessions over a day horizon.

For each date in [reference_date, reference_date + horizon_days):
  closed date → one "Not Available" placeholder carrying the closure reason
  open date   → one slot per whole hour from open to close, dropping any
                slot that would run past close

Pure: no store access, no clock. Availability is decided later by the evaluator.
"""
from datetime import date
from typing import Iterable, Mapping, Sequence

from simbook.scheduling.availability import at_hour, date_range, format_time_range
from simbook.scheduling.calendar_rules import (
    DayWindow, resolve_day, index_business_hours, index_special_dates,
)
from simbook.scheduling.types import (
    BusinessHoursRule, SpecialDateOverride, CoachAvailabilityBlock,
    CoachSelector, Slot, UnavailableReason, NO_COACH,
)

PLACEHOLDER_LABEL = "Not Available"


def generate_candidate_slots(
    duration_hours: int,
    horizon_days: int,
    reference_date: date,
    business_hours: Iterable[BusinessHoursRule],
    special_dates: Iterable[SpecialDateOverride],
    coach: CoachSelector = NO_COACH,
    coach_blocks: Mapping[str, Sequence[CoachAvailabilityBlock]] = None,
) -> dict[str, list[Slot]]:
    hours_by_day = index_business_hours(business_hours)
    overrides = index_special_dates(special_dates)

    sessions: dict[str, list[Slot]] = {}
    for day in date_range(reference_date, horizon_days):
        window = resolve_day(day, hours_by_day, overrides, coach, coach_blocks)
        if window.is_closed:
            sessions[day.isoformat()] = [closed_placeholder(window)]
        else:
            sessions[day.isoformat()] = day_slots(window, duration_hours)
    return sessions


def day_slots(window: DayWindow, duration_hours: int) -> list[Slot]:
    slots = []
    for hour in range(window.open_hour, window.close_hour):
        if hour + duration_hours > window.close_hour:
            break
        start = at_hour(window.date, hour)
        end = at_hour(window.date, hour + duration_hours)
        slots.append(Slot(start=start, end=end, label=format_time_range(start, end)))
    return slots


def closed_placeholder(window: DayWindow) -> Slot:
    midnight = at_hour(window.date, 0)
    return Slot(
        start=midnight,
        end=midnight,
        label=PLACEHOLDER_LABEL,
        available=False,
        reason=window.reason or "Not available",
        reason_code=UnavailableReason.CLOSED,
        is_placeholder=True,
    )
