"""
SQLAlchemy implementation of every store the engine talks to.

Reads open a short session and return plain dataclasses, so nothing
ORM-bound leaks into the engine; they open a deferred transaction and
never queue behind a writer. Writes happen inside `transaction()`, which
asks database.py for a writer connection (BEGIN IMMEDIATE on SQLite,
SERIALIZABLE elsewhere).
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from simbook.database import SessionLocal, WRITE_TRANSACTION
from simbook.errors import (
    BookingNotFoundError, InsufficientCreditsError, StoreConflict, ValidationError,
)
from simbook.models import (
    ACTIVE_STATUSES, Booking, BookingStatus, BusinessHours, Coach,
    CoachAvailability, Credit, SpecialDate,
)
from simbook.scheduling.types import (
    BusinessHoursRule, CoachAvailabilityBlock, ExistingBooking, SpecialDateOverride,
)

logger = logging.getLogger(__name__)


# ── Row → dataclass ───────────────────────────────────────────────────────────

def _to_rule(row: BusinessHours) -> BusinessHoursRule:
    return BusinessHoursRule(row.day_of_week, row.open_hour, row.close_hour, bool(row.is_closed))


def _to_override(row: SpecialDate) -> SpecialDateOverride:
    return SpecialDateOverride(row.date, bool(row.is_closed), row.open_hour,
                               row.close_hour, row.description)


def _to_block(row: CoachAvailability) -> CoachAvailabilityBlock:
    return CoachAvailabilityBlock(row.coach_id, row.day_of_week, row.start_hour, row.end_hour)


def _to_booking(row: Booking) -> ExistingBooking:
    return ExistingBooking(
        id=row.id,
        simulator_id=row.simulator_id,
        start=row.start_time,
        end=row.end_time,
        coach_id=row.coach_id,
        coach_hours=row.coach_hours or 0,
        user_id=row.user_id,
        status=row.status,
        credits_debited=row.credits_debited or 0,
    )


# ── Unit of work ──────────────────────────────────────────────────────────────

class SqlLedgerTransaction:
    def __init__(self, db: Session):
        self.db = db

    def get_bookings(self, start: Optional[datetime] = None,
                     end: Optional[datetime] = None) -> list[ExistingBooking]:
        q = self.db.query(Booking).filter(Booking.status.in_(ACTIVE_STATUSES))
        if start is not None:
            q = q.filter(Booking.end_time > start)
        if end is not None:
            q = q.filter(Booking.start_time < end)
        return [_to_booking(b) for b in q.order_by(Booking.start_time, Booking.id).all()]

    def get_booking(self, booking_id: int) -> Optional[ExistingBooking]:
        row = self.db.get(Booking, booking_id)
        return _to_booking(row) if row else None

    def get_credit_balance(self, user_id: int) -> int:
        balance = self.db.scalar(
            select(Credit.simulator_hours).where(Credit.user_id == user_id)
        )
        return balance or 0

    def create_booking(self, user_id: int, simulator_id: int, start: datetime,
                       end: datetime, coach_id: Optional[str], coach_hours: int,
                       status: str, credits_debited: int) -> int:
        booking = Booking(
            user_id=user_id,
            simulator_id=simulator_id,
            start_time=start,
            end_time=end,
            coach_id=coach_id,
            coach_hours=coach_hours,
            status=status,
            credits_debited=credits_debited,
        )
        self.db.add(booking)
        self.db.flush()
        return booking.id

    def debit_credit(self, user_id: int, hours: int) -> int:
        if hours <= 0:
            return self.get_credit_balance(user_id)
        # Conditional write: never lets the balance go below zero.
        result = self.db.execute(
            update(Credit)
            .where(Credit.user_id == user_id, Credit.simulator_hours >= hours)
            .values(simulator_hours=Credit.simulator_hours - hours)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientCreditsError(required=hours,
                                           available=self.get_credit_balance(user_id))
        return self.get_credit_balance(user_id)

    def add_credit(self, user_id: int, hours: int) -> int:
        if hours <= 0:
            raise ValidationError("Hours must be a positive number", details={"hours": hours})
        exists = self.db.scalar(select(Credit.user_id).where(Credit.user_id == user_id))
        if exists is None:
            self.db.add(Credit(user_id=user_id, simulator_hours=hours))
            self.db.flush()
        else:
            self.db.execute(
                update(Credit)
                .where(Credit.user_id == user_id)
                .values(simulator_hours=Credit.simulator_hours + hours)
                .execution_options(synchronize_session=False)
            )
        return self.get_credit_balance(user_id)

    def cancel_booking(self, booking_id: int, reason: Optional[str]) -> int:
        booking = self._load(booking_id)
        if booking.status == BookingStatus.CANCELLED.value:
            raise ValidationError(f"Booking {booking_id} is already cancelled",
                                  details={"booking_id": booking_id})

        refund = booking.credits_debited or 0
        booking.status = BookingStatus.CANCELLED.value
        booking.cancellation_reason = reason
        self.db.flush()
        if refund:
            self.add_credit(booking.user_id, refund)
        return refund

    def confirm_payment(self, booking_id: int, payment_ref: str) -> None:
        booking = self._load(booking_id)
        if booking.status != BookingStatus.PENDING_PAYMENT.value:
            raise ValidationError(f"Booking {booking_id} is not awaiting payment",
                                  details={"booking_id": booking_id, "status": booking.status})
        booking.status = BookingStatus.CONFIRMED.value
        booking.payment_ref = payment_ref
        self.db.flush()

    def _load(self, booking_id: int) -> Booking:
        booking = self.db.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking


# ── Store ─────────────────────────────────────────────────────────────────────

class SqlStore:
    """Calendar rules, coach schedules, booking ledger and credit ledger."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator[SqlLedgerTransaction]:
        db = self.session_factory()
        try:
            db.connection(execution_options=WRITE_TRANSACTION)
            yield SqlLedgerTransaction(db)
            db.commit()
        except (OperationalError, IntegrityError) as e:
            db.rollback()
            logger.warning("Store conflict, transaction rolled back: %s", e.orig)
            raise StoreConflict(str(e.orig)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ── Calendar ──────────────────────────────────────────────────────────────

    def get_business_hours(self) -> list[BusinessHoursRule]:
        with self.session_factory() as db:
            rows = db.query(BusinessHours).order_by(BusinessHours.day_of_week).all()
            return [_to_rule(r) for r in rows]

    def get_special_dates(self, start: date, end: date) -> list[SpecialDateOverride]:
        with self.session_factory() as db:
            rows = (
                db.query(SpecialDate)
                .filter(SpecialDate.date >= start, SpecialDate.date < end)
                .order_by(SpecialDate.date)
                .all()
            )
            return [_to_override(r) for r in rows]

    # ── Coaches ───────────────────────────────────────────────────────────────

    def get_coach_availability(self, coach_id: Optional[str] = None) -> dict[str, list[CoachAvailabilityBlock]]:
        with self.session_factory() as db:
            q = (
                db.query(CoachAvailability)
                .join(Coach, Coach.id == CoachAvailability.coach_id)
                .filter(Coach.is_active.is_(True))
            )
            if coach_id is not None:
                q = q.filter(CoachAvailability.coach_id == coach_id)
            rows = q.order_by(CoachAvailability.coach_id, CoachAvailability.day_of_week,
                              CoachAvailability.start_hour).all()

            blocks: dict[str, list[CoachAvailabilityBlock]] = {}
            for r in rows:
                blocks.setdefault(r.coach_id, []).append(_to_block(r))
            return blocks

    def get_coach_roster(self) -> list[str]:
        with self.session_factory() as db:
            rows = (
                db.query(Coach.id)
                .filter(Coach.is_active.is_(True))
                .order_by(Coach.registered_at, Coach.id)
                .all()
            )
            return [r.id for r in rows]

    # ── Ledgers (read side) ───────────────────────────────────────────────────

    def get_bookings(self, start: Optional[datetime] = None,
                     end: Optional[datetime] = None) -> list[ExistingBooking]:
        with self.session_factory() as db:
            return SqlLedgerTransaction(db).get_bookings(start, end)

    def get_credit_balance(self, user_id: int) -> int:
        with self.session_factory() as db:
            return SqlLedgerTransaction(db).get_credit_balance(user_id)
