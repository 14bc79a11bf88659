"""
Availability evaluator.

Takes one candidate slot + the request + a schedule snapshot → the slot with
`available` set and, when false, exactly one reason.

Check order (first failure is the reported reason):
  1. TOO_SOON             start < now + MIN_ADVANCE_HOURS
  2. TOO_FAR_AHEAD        start > now + MAX_ADVANCE_DAYS
  3. COACH_OFF_DAY        specific coach has no block on this weekday
  4. COACH_OUTSIDE_HOURS  no block fully contains the coach window
  5. COACH_BOOKED         coach already booked inside the coach window
  6. NO_COACH_AVAILABLE   "any": nobody in the roster passes 3–5
  7. SIMULATORS_FULL      every simulator overlaps the slot

Each slot is evaluated on its own; nothing here depends on other slots.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Mapping, Sequence

from simbook.config import MIN_ADVANCE_HOURS, MAX_ADVANCE_DAYS
from simbook.scheduling.coach_resolver import check_coach, find_qualifying_coach
from simbook.scheduling.state import BookingState
from simbook.scheduling.types import (
    AnyCoach, BookingRequest, CoachAvailabilityBlock, Slot, SpecificCoach,
    UnavailableReason,
)

MESSAGES = {
    UnavailableReason.TOO_SOON:
        f"Bookings must be made at least {MIN_ADVANCE_HOURS} hours in advance",
    UnavailableReason.TOO_FAR_AHEAD:
        f"Bookings cannot be made more than {MAX_ADVANCE_DAYS} days in advance",
    UnavailableReason.NO_COACH_AVAILABLE:
        "No coaches are available for this time slot",
    UnavailableReason.SIMULATORS_FULL:
        "All simulators are booked for this time slot",
}


@dataclass
class EvaluationContext:
    now: datetime
    state: BookingState
    coach_blocks: Mapping[str, Sequence[CoachAvailabilityBlock]] = field(default_factory=dict)
    roster: Sequence[str] = ()


def earliest_start(now: datetime) -> datetime:
    return now + timedelta(hours=MIN_ADVANCE_HOURS)


def latest_start(now: datetime) -> datetime:
    return now + timedelta(days=MAX_ADVANCE_DAYS)


def evaluate_slot(slot: Slot, request: BookingRequest, ctx: EvaluationContext) -> Slot:
    if slot.is_placeholder:
        return slot

    if slot.start < earliest_start(ctx.now):
        return _unavailable(slot, UnavailableReason.TOO_SOON)

    if slot.start > latest_start(ctx.now):
        return _unavailable(slot, UnavailableReason.TOO_FAR_AHEAD)

    coach = request.coach
    if isinstance(coach, SpecificCoach):
        failure = check_coach(coach.coach_id, slot.start, request.coach_hours,
                              ctx.coach_blocks, ctx.state)
        if failure is not None:
            return slot.mark_unavailable(*failure)

    elif isinstance(coach, AnyCoach):
        if find_qualifying_coach(slot.start, request.coach_hours, ctx.roster,
                                 ctx.coach_blocks, ctx.state) is None:
            return _unavailable(slot, UnavailableReason.NO_COACH_AVAILABLE)

    if ctx.state.simulators_full(slot.start, slot.end):
        return _unavailable(slot, UnavailableReason.SIMULATORS_FULL)

    return slot


def _unavailable(slot: Slot, code: UnavailableReason) -> Slot:
    return slot.mark_unavailable(code, MESSAGES[code])
