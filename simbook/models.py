from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime,
    Date, JSON, ForeignKey, Text, UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
import enum

Base = declarative_base()


# ── Enums ────────────────────────────────────────────────────────────────────

class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    PENDING_PAYMENT = "pending_payment"
    CANCELLED = "cancelled"


# Statuses that hold a simulator (and coach) for their interval
ACTIVE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.PENDING_PAYMENT.value)


# ── Calendar configuration ────────────────────────────────────────────────────

class BusinessHours(Base):
    __tablename__ = "business_hours"

    id = Column(Integer, primary_key=True, autoincrement=True)
    day_of_week = Column(Integer, nullable=False, unique=True)   # 0=Sun … 6=Sat
    open_hour = Column(Integer, nullable=False, default=8)
    close_hour = Column(Integer, nullable=False, default=18)
    is_closed = Column(Boolean, nullable=False, default=False)


class SpecialDate(Base):
    __tablename__ = "special_dates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, unique=True)
    is_closed = Column(Boolean, nullable=False, default=True)
    open_hour = Column(Integer, nullable=True)
    close_hour = Column(Integer, nullable=True)
    description = Column(String, nullable=True)                  # "Christmas Day"


# ── Coaches ───────────────────────────────────────────────────────────────────

class Coach(Base):
    __tablename__ = "coaches"

    id = Column(String, primary_key=True)                        # e.g. "sam"
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    registered_at = Column(DateTime, server_default=func.now())

    availability = relationship(
        "CoachAvailability", back_populates="coach", cascade="all, delete-orphan"
    )


class CoachAvailability(Base):
    __tablename__ = "coach_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coach_id = Column(String, ForeignKey("coaches.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_hour = Column(Integer, nullable=False)
    end_hour = Column(Integer, nullable=False)

    coach = relationship("Coach", back_populates="availability")

    __table_args__ = (
        UniqueConstraint("coach_id", "day_of_week", "start_hour", name="uq_coach_block"),
    )


# ── Ledgers ───────────────────────────────────────────────────────────────────

class Credit(Base):
    __tablename__ = "credits"

    user_id = Column(Integer, primary_key=True)
    simulator_hours = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("simulator_hours >= 0", name="ck_credits_non_negative"),
    )


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    simulator_id = Column(Integer, nullable=False)               # 1..SIMULATOR_COUNT
    start_time = Column(DateTime, nullable=False)                # studio wall clock
    end_time = Column(DateTime, nullable=False)
    coach_id = Column(String, ForeignKey("coaches.id"), nullable=True)
    coach_hours = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default=BookingStatus.CONFIRMED.value)
    credits_debited = Column(Integer, nullable=False, default=0)
    payment_ref = Column(String, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_booking_interval"),
        Index("ix_bookings_window", "start_time", "end_time"),
    )


# ── Ingestion tracking ────────────────────────────────────────────────────────

class IngestionRun(Base):
    __tablename__ = "ingestion_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_at = Column(DateTime, server_default=func.now())
    source_hash = Column(String, nullable=False)       # hash of input files
    status = Column(String, default="success")
    diff_summary = Column(JSON, default=dict)          # what changed
