"""
Tracks what's already booked for one evaluation or allocation pass.
Acts as an in-memory constraint checker over a snapshot of the booking set.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from simbook.config import SIMULATOR_COUNT
from simbook.models import ACTIVE_STATUSES
from simbook.scheduling.availability import overlaps
from simbook.scheduling.types import ExistingBooking


@dataclass
class BookingState:
    bookings: list[ExistingBooking] = field(default_factory=list)
    simulator_count: int = SIMULATOR_COUNT
    by_coach: dict = field(default_factory=dict)   # coach_id → [ExistingBooking]

    @classmethod
    def from_bookings(cls, bookings: Iterable[ExistingBooking],
                      simulator_count: int = SIMULATOR_COUNT) -> "BookingState":
        state = cls(simulator_count=simulator_count)
        for b in bookings:
            if b.status in ACTIVE_STATUSES:
                state.book(b)
        return state

    def book(self, booking: ExistingBooking):
        self.bookings.append(booking)
        if booking.coach_id:
            self.by_coach.setdefault(booking.coach_id, []).append(booking)

    # ── Simulators ────────────────────────────────────────────────────────────

    def overlapping(self, start: datetime, end: datetime) -> list[ExistingBooking]:
        return [b for b in self.bookings if overlaps(b.start, b.end, start, end)]

    def simulators_full(self, start: datetime, end: datetime) -> bool:
        return len(self.overlapping(start, end)) >= self.simulator_count

    def free_simulator(self, start: datetime, end: datetime) -> Optional[int]:
        """Lowest simulator id with nothing overlapping, or None."""
        taken = self.overlapping(start, end)
        if len(taken) >= self.simulator_count:
            return None
        used = {b.simulator_id for b in taken}
        for sim_id in range(1, self.simulator_count + 1):
            if sim_id not in used:
                return sim_id
        return None

    # ── Coaches ───────────────────────────────────────────────────────────────

    def coach_is_free(self, coach_id: str, start: datetime, end: datetime) -> bool:
        for b in self.by_coach.get(coach_id, []):
            if overlaps(b.start, b.coach_end, start, end):
                return False
        return True
