"""
Value types shared by the slot generator, evaluator, resolver and allocator.
Plain frozen dataclasses so snapshots can be shared across threads.
"""
import re
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union

from simbook.config import DEFAULT_HORIZON_DAYS, MAX_ADVANCE_DAYS
from simbook.errors import ValidationError


# ── Coach selector ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NoCoach:
    def __str__(self) -> str:
        return "none"


@dataclass(frozen=True)
class AnyCoach:
    def __str__(self) -> str:
        return "any"


@dataclass(frozen=True)
class SpecificCoach:
    coach_id: str

    def __str__(self) -> str:
        return self.coach_id


CoachSelector = Union[NoCoach, AnyCoach, SpecificCoach]

NO_COACH = NoCoach()
ANY_COACH = AnyCoach()

_COACH_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]{0,63}$")


def parse_coach_selector(raw: Optional[str]) -> CoachSelector:
    """'none' / '' / None → NoCoach, 'any' → AnyCoach, anything else must be an id."""
    if raw is None:
        return NO_COACH
    value = raw.strip()
    if value.lower() in ("", "none"):
        return NO_COACH
    if value.lower() == "any":
        return ANY_COACH
    if not _COACH_ID.match(value):
        raise ValidationError(
            f"Invalid coach id: {raw!r}", details={"coach": raw}
        )
    return SpecificCoach(value)


# ── Calendar configuration ────────────────────────────────────────────────────

@dataclass(frozen=True)
class BusinessHoursRule:
    day_of_week: int            # 0=Sun … 6=Sat
    open_hour: int
    close_hour: int
    is_closed: bool = False


@dataclass(frozen=True)
class SpecialDateOverride:
    date: date
    is_closed: bool = True
    open_hour: Optional[int] = None
    close_hour: Optional[int] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class CoachAvailabilityBlock:
    coach_id: str
    day_of_week: int
    start_hour: int
    end_hour: int


# ── Bookings ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExistingBooking:
    id: Optional[int]
    simulator_id: int
    start: datetime
    end: datetime
    coach_id: Optional[str] = None
    coach_hours: int = 0
    user_id: Optional[int] = None
    status: str = "confirmed"
    credits_debited: int = 0

    @property
    def coach_end(self) -> datetime:
        """The coach is claimed for the first `coach_hours` of the session."""
        return self.start + timedelta(hours=self.coach_hours)


# ── Request / result ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BookingRequest:
    duration_hours: int
    coach: CoachSelector = NO_COACH
    coach_hours: int = 0
    horizon_days: int = DEFAULT_HORIZON_DAYS
    reference_date: Optional[date] = None

    @property
    def wants_coach(self) -> bool:
        return not isinstance(self.coach, NoCoach)

    def validate(self) -> "BookingRequest":
        validate_durations(self.duration_hours, self.coach, self.coach_hours)
        if not 1 <= self.horizon_days <= MAX_ADVANCE_DAYS + 1:
            raise ValidationError(
                f"horizon_days must be between 1 and {MAX_ADVANCE_DAYS + 1}",
                details={"horizon_days": self.horizon_days},
            )
        return self


def validate_durations(duration_hours, coach: CoachSelector, coach_hours) -> None:
    if not isinstance(duration_hours, int) or duration_hours <= 0:
        raise ValidationError(
            "duration_hours must be a positive whole number of hours",
            details={"duration_hours": duration_hours},
        )
    if isinstance(coach, NoCoach):
        if coach_hours:
            raise ValidationError(
                "coach_hours given without a coach",
                details={"coach_hours": coach_hours},
            )
        return
    if not isinstance(coach_hours, int) or not 1 <= coach_hours <= duration_hours:
        raise ValidationError(
            "coach_hours must be between 1 and the session duration",
            details={"coach_hours": coach_hours, "duration_hours": duration_hours},
        )


class UnavailableReason(str, Enum):
    CLOSED = "CLOSED"
    TOO_SOON = "TOO_SOON"
    TOO_FAR_AHEAD = "TOO_FAR_AHEAD"
    COACH_OFF_DAY = "COACH_OFF_DAY"
    COACH_OUTSIDE_HOURS = "COACH_OUTSIDE_HOURS"
    COACH_BOOKED = "COACH_BOOKED"
    NO_COACH_AVAILABLE = "NO_COACH_AVAILABLE"
    SIMULATORS_FULL = "SIMULATORS_FULL"


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    label: str
    available: bool = True
    reason: Optional[str] = None
    reason_code: Optional[UnavailableReason] = None
    is_placeholder: bool = False

    @property
    def start_hour(self) -> int:
        return self.start.hour

    @property
    def duration_hours(self) -> int:
        return int((self.end - self.start).total_seconds() // 3600)

    def mark_unavailable(self, code: UnavailableReason, reason: str) -> "Slot":
        return replace(self, available=False, reason=reason, reason_code=code)

    def to_dict(self) -> dict:
        return {
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
            "formatted_time": self.label,
            "is_available": self.available,
            "unavailable_reason": self.reason,
            "reason_code": self.reason_code.value if self.reason_code else None,
        }


@dataclass
class AllocationResult:
    booking_id: int
    remaining_credits: int
    simulator_id: int
    coach_id: Optional[str] = None
    status: str = "confirmed"
