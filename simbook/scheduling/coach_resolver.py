"""
Coach checks and "any coach" resolution.

The evaluator and the allocator share `check_coach`, so a slot marked
available for "any coach" is resolved here with exactly the same predicate.
"""
import logging
from datetime import datetime, timedelta
from typing import Mapping, Optional, Sequence

from simbook.errors import ConcurrencyConflictError
from simbook.scheduling.availability import (
    coach_works_on_day, coach_covers_hours, get_day_name,
)
from simbook.scheduling.state import BookingState
from simbook.scheduling.types import CoachAvailabilityBlock, UnavailableReason

logger = logging.getLogger(__name__)


def check_coach(
    coach_id: str,
    start: datetime,
    coach_hours: int,
    coach_blocks: Mapping[str, Sequence[CoachAvailabilityBlock]],
    state: BookingState,
) -> Optional[tuple[UnavailableReason, str]]:
    """
    Run the three coach checks in order and return the first failure as
    (reason_code, message), or None when the coach can take the window
    [start, start + coach_hours).
    """
    day = start.date()
    if not coach_works_on_day(coach_id, day, coach_blocks):
        return (UnavailableReason.COACH_OFF_DAY,
                f"Coach {coach_id} is not available on {get_day_name(day)}s")

    if not coach_covers_hours(coach_id, day, start.hour, start.hour + coach_hours, coach_blocks):
        return (UnavailableReason.COACH_OUTSIDE_HOURS,
                f"Coach {coach_id} is not available at this time")

    if not state.coach_is_free(coach_id, start, start + timedelta(hours=coach_hours)):
        return (UnavailableReason.COACH_BOOKED,
                f"Coach {coach_id} is already booked during this time slot")

    return None


def find_qualifying_coach(
    start: datetime,
    coach_hours: int,
    roster: Sequence[str],
    coach_blocks: Mapping[str, Sequence[CoachAvailabilityBlock]],
    state: BookingState,
) -> Optional[str]:
    """First coach in roster order that passes every coach check."""
    for coach_id in roster:
        if check_coach(coach_id, start, coach_hours, coach_blocks, state) is None:
            return coach_id
    return None


def resolve_any_coach(
    start: datetime,
    coach_hours: int,
    roster: Sequence[str],
    coach_blocks: Mapping[str, Sequence[CoachAvailabilityBlock]],
    state: BookingState,
) -> str:
    """
    Pick the concrete coach for an "any coach" booking.

    Finding nobody here means the booking set moved between evaluation and
    allocation; that is reported as a concurrency conflict, never papered
    over by trying another slot.
    """
    coach_id = find_qualifying_coach(start, coach_hours, roster, coach_blocks, state)
    if coach_id is None:
        logger.warning("No coach left for any-coach booking at %s (%sh)",
                       start.isoformat(), coach_hours)
        raise ConcurrencyConflictError(
            "No coach is available any more for this time slot",
            details={"start_time": start.isoformat(), "coach_hours": coach_hours},
        )
    return coach_id
