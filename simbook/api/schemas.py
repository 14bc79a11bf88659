from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from simbook.config import DEFAULT_HORIZON_DAYS


# ── Requests ──────────────────────────────────────────────────────────────────
# Range checks live in the engine so they surface as 400 ValidationError.

class SessionsRequest(BaseModel):
    duration_hours: int
    coach: Optional[str] = None            # None / "none" / "any" / coach id
    coach_hours: int = 0
    horizon_days: int = DEFAULT_HORIZON_DAYS
    reference_date: Optional[date] = None
    include_unavailable: Optional[bool] = None


class BookingCreate(BaseModel):
    user_id: int
    start_time: datetime
    duration_hours: int
    coach: Optional[str] = None
    coach_hours: int = 0
    pending_payment: bool = False


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class ConfirmPaymentRequest(BaseModel):
    payment_ref: str


class CreditTopUp(BaseModel):
    hours: int


# ── Responses ─────────────────────────────────────────────────────────────────

class SlotOut(BaseModel):
    start_time: str
    end_time: str
    formatted_time: str
    is_available: bool
    unavailable_reason: Optional[str] = None
    reason_code: Optional[str] = None


class SessionsResponse(BaseModel):
    sessions: dict[str, list[SlotOut]]
    available_count: int
    no_availability_reason: Optional[str] = None


class BookingResponse(BaseModel):
    booking_id: int
    remaining_credits: int
    simulator_id: int
    coach_id: Optional[str] = None
    status: str


class CancelResponse(BaseModel):
    booking_id: int
    status: str = "cancelled"
    refunded_hours: int


class CreditBalance(BaseModel):
    user_id: int
    simulator_hours: int
