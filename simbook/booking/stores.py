"""
Interfaces of the collaborators the engine reads from and writes to.

The engine never reaches for a global store: every call receives the stores
it needs. `SqlStore` in sql_store.py implements all of them.
"""
from datetime import date, datetime
from typing import ContextManager, Optional, Protocol

from simbook.scheduling.types import (
    BusinessHoursRule, SpecialDateOverride, CoachAvailabilityBlock, ExistingBooking,
)


class CalendarRuleStore(Protocol):
    def get_business_hours(self) -> list[BusinessHoursRule]: ...

    def get_special_dates(self, start: date, end: date) -> list[SpecialDateOverride]:
        """Overrides with start <= date < end."""
        ...


class CoachScheduleStore(Protocol):
    def get_coach_availability(
        self, coach_id: Optional[str] = None
    ) -> dict[str, list[CoachAvailabilityBlock]]: ...

    def get_coach_roster(self) -> list[str]:
        """Active coach ids in a stable order (registration order)."""
        ...


class LedgerTransaction(Protocol):
    """One serializable unit of work against bookings and credits."""

    def get_bookings(self, start: Optional[datetime] = None,
                     end: Optional[datetime] = None) -> list[ExistingBooking]: ...

    def get_booking(self, booking_id: int) -> Optional[ExistingBooking]: ...

    def get_credit_balance(self, user_id: int) -> int: ...

    def create_booking(self, user_id: int, simulator_id: int, start: datetime,
                       end: datetime, coach_id: Optional[str], coach_hours: int,
                       status: str, credits_debited: int) -> int: ...

    def debit_credit(self, user_id: int, hours: int) -> int:
        """New balance. Raises InsufficientCreditsError if it would go negative."""
        ...

    def add_credit(self, user_id: int, hours: int) -> int: ...

    def cancel_booking(self, booking_id: int, reason: Optional[str]) -> int:
        """Hours refunded."""
        ...

    def confirm_payment(self, booking_id: int, payment_ref: str) -> None: ...


class BookingLedger(Protocol):
    def get_bookings(self, start: Optional[datetime] = None,
                     end: Optional[datetime] = None) -> list[ExistingBooking]:
        """Active bookings overlapping [start, end); all active bookings if no range."""
        ...

    def transaction(self) -> ContextManager[LedgerTransaction]:
        """Commit on clean exit, roll back on any exception. Transient
        conflicts surface as StoreConflict."""
        ...


class CreditLedger(Protocol):
    def get_credit_balance(self, user_id: int) -> int: ...
