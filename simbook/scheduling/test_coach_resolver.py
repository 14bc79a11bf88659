from datetime import datetime

import pytest

from simbook.errors import ConcurrencyConflictError, ValidationError
from simbook.scheduling.coach_resolver import (
    check_coach, find_qualifying_coach, resolve_any_coach,
)
from simbook.scheduling.state import BookingState
from simbook.scheduling.types import (
    ANY_COACH, NO_COACH, CoachAvailabilityBlock, ExistingBooking, SpecificCoach,
    UnavailableReason, parse_coach_selector,
)

MON_10 = datetime(2026, 11, 2, 10)

BLOCKS = {
    "sam": [CoachAvailabilityBlock("sam", 1, 9, 13)],
    "priya": [CoachAvailabilityBlock("priya", 1, 8, 18)],
    "lee": [CoachAvailabilityBlock("lee", 3, 8, 18)],        # Wednesdays
}


def coached(coach_id, start, hours):
    return ExistingBooking(id=1, simulator_id=1, start=start,
                           end=start.replace(hour=start.hour + hours),
                           coach_id=coach_id, coach_hours=hours)


def test_check_order_off_day_then_hours_then_booked():
    empty = BookingState()
    code, message = check_coach("lee", MON_10, 1, BLOCKS, empty)
    assert code is UnavailableReason.COACH_OFF_DAY
    assert message == "Coach lee is not available on Mondays"

    code, _ = check_coach("sam", MON_10, 4, BLOCKS, empty)
    assert code is UnavailableReason.COACH_OUTSIDE_HOURS

    busy = BookingState.from_bookings([coached("sam", MON_10, 1)])
    code, _ = check_coach("sam", MON_10, 1, BLOCKS, busy)
    assert code is UnavailableReason.COACH_BOOKED

    assert check_coach("sam", MON_10, 3, BLOCKS, empty) is None


def test_unknown_coach_is_off_every_day():
    code, _ = check_coach("ghost", MON_10, 1, BLOCKS, BookingState())
    assert code is UnavailableReason.COACH_OFF_DAY


def test_roster_order_decides():
    state = BookingState()
    assert find_qualifying_coach(MON_10, 1, ["sam", "priya"], BLOCKS, state) == "sam"
    assert find_qualifying_coach(MON_10, 1, ["priya", "sam"], BLOCKS, state) == "priya"


def test_skips_busy_coach():
    state = BookingState.from_bookings([coached("sam", MON_10, 2)])
    assert find_qualifying_coach(MON_10, 1, ["sam", "priya"], BLOCKS, state) == "priya"


def test_resolve_any_coach_raises_when_nobody_is_left():
    state = BookingState.from_bookings([coached("sam", MON_10, 1), coached("priya", MON_10, 1)])
    with pytest.raises(ConcurrencyConflictError):
        resolve_any_coach(MON_10, 1, ["sam", "priya", "lee"], BLOCKS, state)


@pytest.mark.parametrize("raw, expected", [
    (None, NO_COACH),
    ("", NO_COACH),
    ("none", NO_COACH),
    ("ANY", ANY_COACH),
    ("sam", SpecificCoach("sam")),
    (" priya ", SpecificCoach("priya")),
])
def test_parse_coach_selector(raw, expected):
    assert parse_coach_selector(raw) == expected


def test_parse_coach_selector_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_coach_selector("sam; drop table coaches")
