"""
Session search: the engine's read side.

  generate_sessions(request, stores...)
    1. snapshot calendar rules, coach schedules and the booking set once
    2. slot generator → candidate slots per date
    3. evaluator     → each slot marked available / unavailable + reason
    4. aggregate     → one human-readable reason when nothing is bookable

An empty result is a normal outcome, returned as data. Only
`SessionsResult.require_available()` turns it into NoAvailabilityError.
"""
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Mapping, Optional, Sequence

from simbook.booking.stores import BookingLedger, CalendarRuleStore, CoachScheduleStore
from simbook.config import SHOW_UNAVAILABLE_SESSIONS, SIMULATOR_COUNT
from simbook.errors import NoAvailabilityError
from simbook.scheduling.availability import at_hour
from simbook.scheduling.evaluator import EvaluationContext, evaluate_slot
from simbook.scheduling.slots import generate_candidate_slots
from simbook.scheduling.state import BookingState
from simbook.scheduling.types import (
    AnyCoach, BookingRequest, BusinessHoursRule, CoachAvailabilityBlock,
    ExistingBooking, Slot, SpecialDateOverride, SpecificCoach, UnavailableReason,
)
from simbook.utils.helpers import now_local

logger = logging.getLogger(__name__)

# Tie-break for the aggregate reason: earlier in the evaluator's order wins.
_PRECEDENCE = list(UnavailableReason)

AGGREGATE_MESSAGES = {
    UnavailableReason.TOO_SOON: "No sessions far enough in advance in range",
    UnavailableReason.TOO_FAR_AHEAD: "Requested dates are beyond the booking window",
    UnavailableReason.COACH_OFF_DAY: "Requested coach does not work in range",
    UnavailableReason.COACH_OUTSIDE_HOURS: "Requested coach has no matching hours in range",
    UnavailableReason.COACH_BOOKED: "Requested coach is fully booked in range",
    UnavailableReason.NO_COACH_AVAILABLE: "No coach available in range",
    UnavailableReason.SIMULATORS_FULL: "All simulators are booked in range",
}


@dataclass
class SessionsResult:
    sessions: dict[str, list[Slot]]
    no_availability_reason: Optional[str] = None

    @property
    def available_count(self) -> int:
        return sum(1 for day in self.sessions.values() for s in day if s.available)

    @property
    def ok(self) -> bool:
        return self.no_availability_reason is None

    def first_available(self) -> Optional[Slot]:
        for day in self.sessions.values():
            for s in day:
                if s.available:
                    return s
        return None

    def require_available(self) -> "SessionsResult":
        if not self.ok:
            raise NoAvailabilityError(self.no_availability_reason)
        return self

    def to_dict(self) -> dict:
        return {
            "sessions": {d: [s.to_dict() for s in slots] for d, slots in self.sessions.items()},
            "available_count": self.available_count,
            "no_availability_reason": self.no_availability_reason,
        }


def generate_sessions(
    request: BookingRequest,
    calendar: CalendarRuleStore,
    coaches: CoachScheduleStore,
    ledger: BookingLedger,
    now: Optional[datetime] = None,
    include_unavailable: bool = SHOW_UNAVAILABLE_SESSIONS,
) -> SessionsResult:
    request.validate()
    now = now or now_local()
    reference = request.reference_date or now.date()
    horizon_end = reference + timedelta(days=request.horizon_days)

    coach_blocks: dict = {}
    roster: list = []
    if isinstance(request.coach, SpecificCoach):
        coach_blocks = coaches.get_coach_availability(request.coach.coach_id)
    elif isinstance(request.coach, AnyCoach):
        coach_blocks = coaches.get_coach_availability()
        roster = coaches.get_coach_roster()

    result = build_sessions(
        request,
        now=now,
        reference_date=reference,
        business_hours=calendar.get_business_hours(),
        special_dates=calendar.get_special_dates(reference, horizon_end),
        coach_blocks=coach_blocks,
        roster=roster,
        bookings=ledger.get_bookings(at_hour(reference, 0), at_hour(horizon_end, 0)),
        include_unavailable=include_unavailable,
    )
    logger.info("Generated sessions %s..%s coach=%s: %d available",
                reference.isoformat(), horizon_end.isoformat(), request.coach,
                result.available_count)
    return result


def build_sessions(
    request: BookingRequest,
    now: datetime,
    reference_date: date,
    business_hours: Sequence[BusinessHoursRule],
    special_dates: Sequence[SpecialDateOverride],
    coach_blocks: Mapping[str, Sequence[CoachAvailabilityBlock]],
    roster: Sequence[str],
    bookings: Sequence[ExistingBooking],
    include_unavailable: bool = True,
    simulator_count: int = SIMULATOR_COUNT,
) -> SessionsResult:
    """Pure core of generate_sessions: same snapshot in, same result out."""
    candidates = generate_candidate_slots(
        request.duration_hours, request.horizon_days, reference_date,
        business_hours, special_dates, request.coach, coach_blocks,
    )
    ctx = EvaluationContext(
        now=now,
        state=BookingState.from_bookings(bookings, simulator_count),
        coach_blocks=coach_blocks,
        roster=roster,
    )
    sessions = {
        day: [evaluate_slot(s, request, ctx) for s in slots]
        for day, slots in candidates.items()
    }

    reason = aggregate_reason(sessions)
    if not include_unavailable:
        sessions = {
            day: [s for s in slots if s.available]
            for day, slots in sessions.items()
            if not any(s.is_placeholder for s in slots)
        }
    return SessionsResult(sessions=sessions, no_availability_reason=reason)


def aggregate_reason(sessions: Mapping[str, Sequence[Slot]]) -> Optional[str]:
    """None when anything is bookable, else the most common blocking reason."""
    slots = [s for day in sessions.values() for s in day]
    if any(s.available for s in slots):
        return None

    hourly = [s for s in slots if not s.is_placeholder]
    if not hourly:
        if sessions and all(day for day in sessions.values()):
            return "All dates in range are closed"
        return "No sessions of this length fit within opening hours"

    counts = Counter(s.reason_code for s in hourly)
    code = max(counts, key=lambda c: (counts[c], -_PRECEDENCE.index(c)))
    return AGGREGATE_MESSAGES.get(code, "No sessions available in range")
