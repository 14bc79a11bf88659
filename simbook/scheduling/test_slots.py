"""
Slot generation and calendar resolution. Pure, no DB.
"""
from datetime import date, datetime

from simbook.scheduling.calendar_rules import resolve_day
from simbook.scheduling.sessions import build_sessions
from simbook.scheduling.slots import PLACEHOLDER_LABEL, generate_candidate_slots
from simbook.scheduling.types import (
    BookingRequest, BusinessHoursRule, CoachAvailabilityBlock, SpecialDateOverride,
    SpecificCoach, UnavailableReason,
)

MONDAY = date(2026, 11, 2)
NOW = datetime(2026, 10, 30, 9, 0)          # the Friday before

WEEKDAYS_8_TO_6 = [
    BusinessHoursRule(dow, 8, 18, is_closed=dow in (0, 6)) for dow in range(7)
]


def sessions_for(request, special_dates=(), coach_blocks=None, roster=(), bookings=(),
                 **kwargs):
    return build_sessions(
        request,
        now=NOW,
        reference_date=request.reference_date,
        business_hours=WEEKDAYS_8_TO_6,
        special_dates=list(special_dates),
        coach_blocks=coach_blocks or {},
        roster=list(roster),
        bookings=list(bookings),
        **kwargs,
    )


def test_weekday_hourly_slots_all_available():
    request = BookingRequest(duration_hours=1, horizon_days=7, reference_date=MONDAY)
    result = sessions_for(request)

    monday = result.sessions["2026-11-02"]
    assert [s.start.hour for s in monday] == list(range(8, 18))
    assert all(s.available for s in monday)
    assert monday[0].label == "8:00 AM - 9:00 AM"
    assert monday[-1].label == "5:00 PM - 6:00 PM"
    assert result.no_availability_reason is None


def test_weekend_dates_get_single_placeholder():
    request = BookingRequest(duration_hours=1, horizon_days=7, reference_date=MONDAY)
    result = sessions_for(request)

    saturday = result.sessions["2026-11-07"]
    sunday = result.sessions["2026-11-08"]
    for day, name in ((saturday, "Saturday"), (sunday, "Sunday")):
        assert len(day) == 1
        slot = day[0]
        assert slot.is_placeholder and not slot.available
        assert slot.label == PLACEHOLDER_LABEL
        assert slot.start == slot.end
        assert slot.reason == f"Closed on {name}s"
        assert slot.reason_code is UnavailableReason.CLOSED


def test_every_date_in_horizon_is_present():
    request = BookingRequest(duration_hours=2, horizon_days=10, reference_date=MONDAY)
    result = sessions_for(request)
    assert len(result.sessions) == 10
    assert list(result.sessions) == sorted(result.sessions)


def test_slot_running_past_close_is_dropped():
    candidates = generate_candidate_slots(3, 1, MONDAY, WEEKDAYS_8_TO_6, [])
    slots = candidates["2026-11-02"]
    assert [s.start.hour for s in slots] == list(range(8, 16))
    assert slots[-1].end == datetime(2026, 11, 2, 18)
    assert all(s.duration_hours == 3 for s in slots)


def test_longer_than_opening_hours_gives_empty_day():
    candidates = generate_candidate_slots(11, 1, MONDAY, WEEKDAYS_8_TO_6, [])
    assert candidates["2026-11-02"] == []


def test_anzac_day_closed_even_on_a_weekday():
    anzac = date(2028, 4, 25)               # a Tuesday
    window = resolve_day(anzac, {r.day_of_week: r for r in WEEKDAYS_8_TO_6}, {})
    assert window.is_closed
    assert window.reason == "Closed for ANZAC Day"


def test_special_date_closure_uses_description():
    closed = SpecialDateOverride(MONDAY, is_closed=True, description="Melbourne Cup")
    candidates = generate_candidate_slots(1, 1, MONDAY, WEEKDAYS_8_TO_6, [closed])
    (placeholder,) = candidates["2026-11-02"]
    assert placeholder.is_placeholder
    assert placeholder.reason == "Melbourne Cup"


def test_special_date_without_description():
    closed = SpecialDateOverride(MONDAY, is_closed=True)
    candidates = generate_candidate_slots(1, 1, MONDAY, WEEKDAYS_8_TO_6, [closed])
    assert candidates["2026-11-02"][0].reason == "Closed for special event"


def test_special_date_hours_replace_weekly_hours():
    short_day = SpecialDateOverride(MONDAY, is_closed=False, open_hour=10, close_hour=13)
    candidates = generate_candidate_slots(1, 1, MONDAY, WEEKDAYS_8_TO_6, [short_day])
    assert [s.start.hour for s in candidates["2026-11-02"]] == [10, 11, 12]


def test_special_date_can_open_a_weekend():
    saturday = date(2026, 11, 7)
    open_day = SpecialDateOverride(saturday, is_closed=False, open_hour=9, close_hour=12)
    candidates = generate_candidate_slots(1, 1, saturday, WEEKDAYS_8_TO_6, [open_day])
    assert [s.start.hour for s in candidates["2026-11-07"]] == [9, 10, 11]


def test_missing_rule_defaults_to_eight_to_six():
    candidates = generate_candidate_slots(1, 1, MONDAY, [], [])
    assert [s.start.hour for s in candidates["2026-11-02"]] == list(range(8, 18))


def test_closed_weekly_rule():
    rules = [BusinessHoursRule(1, 8, 18, is_closed=True)]
    candidates = generate_candidate_slots(1, 1, MONDAY, rules, [])
    assert candidates["2026-11-02"][0].reason == "Closed on Mondays"


def test_specific_coach_off_day_closes_the_date():
    blocks = {"sam": [CoachAvailabilityBlock("sam", 2, 9, 17)]}      # Tuesdays only
    candidates = generate_candidate_slots(
        1, 2, MONDAY, WEEKDAYS_8_TO_6, [], SpecificCoach("sam"), blocks,
    )
    (placeholder,) = candidates["2026-11-02"]
    assert placeholder.reason == "Coach sam is not available on Mondays"
    assert not candidates["2026-11-03"][0].is_placeholder


def test_hide_unavailable_drops_closed_dates_and_blocked_slots():
    request = BookingRequest(duration_hours=1, horizon_days=7, reference_date=MONDAY)
    result = sessions_for(request, include_unavailable=False)

    assert "2026-11-07" not in result.sessions
    assert "2026-11-08" not in result.sessions
    assert all(s.available for day in result.sessions.values() for s in day)


def test_all_closed_range_reports_closed():
    saturday = date(2026, 11, 7)
    request = BookingRequest(duration_hours=1, horizon_days=2, reference_date=saturday)
    result = sessions_for(request)

    assert result.available_count == 0
    assert result.no_availability_reason == "All dates in range are closed"
    assert result.first_available() is None
