"""
Resource allocator: turns a chosen slot into a persisted booking.

Steps, all inside one store transaction (all or nothing):
  1. re-read active bookings overlapping the slot → lowest free simulator
  2. claim the coach: resolve "any", or re-check the specific coach
  3. credit check (skipped only for explicit pending-payment placeholders)
  4. insert booking + debit credits
  5. return booking id and remaining balance

Evaluation results are only used to pick candidates; everything is
re-validated here against the booking set as it is *now*. A transient
store conflict re-runs the whole allocation (fresh read, fresh simulator
pick) with backoff, then gives up with ConcurrencyConflictError.
"""
import logging
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from simbook.booking.stores import BookingLedger, CalendarRuleStore, CoachScheduleStore
from simbook.config import (
    ALLOCATION_MAX_ATTEMPTS, ALLOCATION_RETRY_BACKOFF, ALLOCATION_RETRY_DELAY,
    SIMULATOR_COUNT,
)
from simbook.errors import (
    CoachConflictError, CoachUnavailableError, ConcurrencyConflictError,
    InsufficientCreditsError, ResourceExhaustedError, StoreConflict, ValidationError,
)
from simbook.models import BookingStatus
from simbook.scheduling.availability import at_hour, format_hour
from simbook.scheduling.calendar_rules import (
    index_business_hours, index_special_dates, resolve_day,
)
from simbook.scheduling.coach_resolver import check_coach, resolve_any_coach
from simbook.scheduling.evaluator import MESSAGES, earliest_start, latest_start
from simbook.scheduling.state import BookingState
from simbook.scheduling.types import (
    AllocationResult, AnyCoach, CoachSelector, NoCoach, Slot, SpecificCoach,
    UnavailableReason, NO_COACH, validate_durations,
)
from simbook.utils.helpers import now_local
from simbook.utils.retry import retry

logger = logging.getLogger(__name__)


class BookingMode(str, Enum):
    STANDARD = "standard"
    # Placeholder created by the payment-redirect flow before payment clears.
    # Holds capacity, debits nothing; confirmed later via confirm_payment().
    PENDING_PAYMENT = "pending_payment"


class ResourceAllocator:
    def __init__(
        self,
        calendar: CalendarRuleStore,
        coaches: CoachScheduleStore,
        ledger: BookingLedger,
        simulator_count: int = SIMULATOR_COUNT,
        max_attempts: int = ALLOCATION_MAX_ATTEMPTS,
        retry_delay: float = ALLOCATION_RETRY_DELAY,
        retry_backoff: float = ALLOCATION_RETRY_BACKOFF,
        clock: Callable[[], datetime] = now_local,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.calendar = calendar
        self.coaches = coaches
        self.ledger = ledger
        self.simulator_count = simulator_count
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.clock = clock
        self.sleep = sleep

    # ── Allocation ────────────────────────────────────────────────────────────

    def allocate(
        self,
        user_id: int,
        slot: Slot,
        coach: CoachSelector = NO_COACH,
        coach_hours: int = 0,
        mode: BookingMode = BookingMode.STANDARD,
        now: Optional[datetime] = None,
    ) -> AllocationResult:
        hours = self._validate(user_id, slot, coach, coach_hours)
        now = now or self.clock()
        self._check_booking_window(slot, now)
        self._check_opening_hours(slot)

        coach_blocks, roster = {}, []
        if isinstance(coach, SpecificCoach):
            coach_blocks = self.coaches.get_coach_availability(coach.coach_id)
        elif isinstance(coach, AnyCoach):
            coach_blocks = self.coaches.get_coach_availability()
            roster = self.coaches.get_coach_roster()

        attempt = self._with_retries(self._allocate_once)
        return attempt(user_id, slot, hours, coach, coach_hours, mode, coach_blocks, roster)

    def _allocate_once(self, user_id, slot, hours, coach, coach_hours, mode,
                       coach_blocks, roster) -> AllocationResult:
        with self.ledger.transaction() as txn:
            state = BookingState.from_bookings(
                txn.get_bookings(slot.start, slot.end), self.simulator_count
            )

            simulator_id = state.free_simulator(slot.start, slot.end)
            if simulator_id is None:
                logger.info("No simulator free for %s - %s", slot.start, slot.end)
                raise ResourceExhaustedError(
                    "No available simulators for selected time",
                    details={"start_time": slot.start.isoformat(),
                             "end_time": slot.end.isoformat()},
                )

            coach_id = self._claim_coach(coach, slot, coach_hours, coach_blocks, roster, state)

            if mode is BookingMode.PENDING_PAYMENT:
                logger.warning("Pending-payment booking for user %s at %s: credit check bypassed",
                               user_id, slot.start.isoformat())
                status, debit = BookingStatus.PENDING_PAYMENT.value, 0
            else:
                available = txn.get_credit_balance(user_id)
                if available < hours:
                    logger.info("User %s has %s credits, needs %s", user_id, available, hours)
                    raise InsufficientCreditsError(required=hours, available=available)
                status, debit = BookingStatus.CONFIRMED.value, hours

            booking_id = txn.create_booking(
                user_id=user_id,
                simulator_id=simulator_id,
                start=slot.start,
                end=slot.end,
                coach_id=coach_id,
                coach_hours=coach_hours if coach_id else 0,
                status=status,
                credits_debited=debit,
            )
            remaining = txn.debit_credit(user_id, debit)

        logger.info("Booking %s created: user=%s sim=%s coach=%s %s - %s, %s credits left",
                    booking_id, user_id, simulator_id, coach_id or "none",
                    slot.start.isoformat(), slot.end.isoformat(), remaining)
        return AllocationResult(
            booking_id=booking_id,
            remaining_credits=remaining,
            simulator_id=simulator_id,
            coach_id=coach_id,
            status=status,
        )

    def _claim_coach(self, coach, slot, coach_hours, coach_blocks, roster, state) -> Optional[str]:
        if isinstance(coach, NoCoach):
            return None

        if isinstance(coach, AnyCoach):
            return resolve_any_coach(slot.start, coach_hours, roster, coach_blocks, state)

        failure = check_coach(coach.coach_id, slot.start, coach_hours, coach_blocks, state)
        if failure is None:
            return coach.coach_id

        code, message = failure
        details = {"coach": coach.coach_id, "start_time": slot.start.isoformat(),
                   "coach_hours": coach_hours}
        if code is UnavailableReason.COACH_BOOKED:
            raise CoachConflictError(message, details=details)
        raise CoachUnavailableError(message, details=details)

    # ── Cancellation / payment / credits ──────────────────────────────────────

    def cancel(self, booking_id: int, reason: Optional[str] = None) -> int:
        """Cancel a booking and refund what it debited. Returns hours refunded."""

        def _cancel_once():
            with self.ledger.transaction() as txn:
                return txn.cancel_booking(booking_id, reason)

        refunded = self._with_retries(_cancel_once)()
        logger.info("Booking %s cancelled (%s), %s hours refunded",
                    booking_id, reason or "no reason given", refunded)
        return refunded

    def confirm_payment(self, booking_id: int, payment_ref: str) -> None:
        if not payment_ref:
            raise ValidationError("payment_ref is required")

        def _confirm_once():
            with self.ledger.transaction() as txn:
                txn.confirm_payment(booking_id, payment_ref)

        self._with_retries(_confirm_once)()
        logger.info("Booking %s confirmed by payment %s", booking_id, payment_ref)

    def add_credits(self, user_id: int, hours: int) -> int:
        """Top up a balance (purchase flows). Returns the new balance."""

        def _add_once():
            with self.ledger.transaction() as txn:
                return txn.add_credit(user_id, hours)

        balance = self._with_retries(_add_once)()
        logger.info("Added %s credits to user %s, balance %s", hours, user_id, balance)
        return balance

    # ── Checks ────────────────────────────────────────────────────────────────

    def _with_retries(self, func: Callable) -> Callable:
        return retry(
            max_attempts=self.max_attempts,
            delay=self.retry_delay,
            backoff=self.retry_backoff,
            exceptions=(StoreConflict,),
            give_up=lambda e: ConcurrencyConflictError(
                "Could not complete the booking because of concurrent changes, please retry",
                details={"attempts": self.max_attempts},
            ),
            sleep=self.sleep,
        )(func)

    @staticmethod
    def _validate(user_id, slot: Slot, coach: CoachSelector, coach_hours) -> int:
        if not isinstance(user_id, int) or user_id <= 0:
            raise ValidationError("Invalid user id", details={"user_id": user_id})
        if slot.is_placeholder or slot.end <= slot.start:
            raise ValidationError("Slot is not a bookable session",
                                  details={"start_time": slot.start.isoformat()})
        if (slot.start.minute, slot.start.second, slot.start.microsecond) != (0, 0, 0):
            raise ValidationError("Sessions start on the hour",
                                  details={"start_time": slot.start.isoformat()})
        hours, remainder = divmod((slot.end - slot.start).total_seconds(), 3600)
        if remainder:
            raise ValidationError("Sessions last whole hours",
                                  details={"end_time": slot.end.isoformat()})
        validate_durations(int(hours), coach, coach_hours)
        return int(hours)

    @staticmethod
    def _check_booking_window(slot: Slot, now: datetime):
        if slot.start < earliest_start(now):
            raise ValidationError(MESSAGES[UnavailableReason.TOO_SOON],
                                  code=UnavailableReason.TOO_SOON.value)
        if slot.start > latest_start(now):
            raise ValidationError(MESSAGES[UnavailableReason.TOO_FAR_AHEAD],
                                  code=UnavailableReason.TOO_FAR_AHEAD.value)

    def _check_opening_hours(self, slot: Slot):
        day = slot.start.date()
        window = resolve_day(
            day,
            index_business_hours(self.calendar.get_business_hours()),
            index_special_dates(self.calendar.get_special_dates(day, day + timedelta(days=1))),
        )
        if window.is_closed:
            raise ValidationError(window.reason or "Bookings not available on this date",
                                  code=UnavailableReason.CLOSED.value)
        if slot.start < at_hour(day, window.open_hour) or slot.end > at_hour(day, window.close_hour):
            raise ValidationError(
                f"Bookings on this date must be between {format_hour(window.open_hour)} "
                f"and {format_hour(window.close_hour)}",
                details={"open_hour": window.open_hour, "close_hour": window.close_hour},
            )
