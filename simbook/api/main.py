"""
FastAPI app: thin transport over the booking engine:
  POST /sessions
  POST /sessions/first-available
  POST /bookings
  POST /bookings/{booking_id}/cancel
  POST /bookings/{booking_id}/confirm-payment
  GET  /credits/{user_id}
  POST /credits/{user_id}
  POST /ingest/run
  GET  /metrics/occupancy
"""
import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from simbook.api.schemas import (
    BookingCreate, BookingResponse, CancelRequest, CancelResponse,
    ConfirmPaymentRequest, CreditBalance, CreditTopUp, SessionsRequest,
    SessionsResponse, SlotOut,
)
from simbook.booking.allocator import BookingMode, ResourceAllocator
from simbook.booking.sql_store import SqlStore
from simbook.config import SHOW_UNAVAILABLE_SESSIONS, STUDIO_TIMEZONE
from simbook.database import get_db, init_db
from simbook.errors import DomainException, ValidationError
from simbook.ingestion.job import run_ingestion
from simbook.observability.metrics import get_occupancy_metrics
from simbook.scheduling.availability import format_time_range
from simbook.scheduling.sessions import generate_sessions
from simbook.scheduling.types import (
    BookingRequest, Slot, parse_coach_selector,
)
from simbook.utils.helpers import now_local

logger = logging.getLogger(__name__)

app = FastAPI(title="Simbook Booking API", version="1.0.0")


# Initialize DB tables on startup
@app.on_event("startup")
def startup():
    init_db()
    logger.info("Database initialized")


@app.exception_handler(DomainException)
def domain_exception_handler(request: Request, exc: DomainException):
    http = exc.to_http_exception()
    return JSONResponse(status_code=http.status_code, content={"detail": http.detail})


def get_store() -> SqlStore:
    return SqlStore()


def get_allocator(store: SqlStore = Depends(get_store)) -> ResourceAllocator:
    return ResourceAllocator(calendar=store, coaches=store, ledger=store)


# ── Sessions ──────────────────────────────────────────────────────────────────

def _search(body: SessionsRequest, store: SqlStore, include_unavailable: bool):
    request = BookingRequest(
        duration_hours=body.duration_hours,
        coach=parse_coach_selector(body.coach),
        coach_hours=body.coach_hours,
        horizon_days=body.horizon_days,
        reference_date=body.reference_date,
    )
    return generate_sessions(request, store, store, store,
                             include_unavailable=include_unavailable)


@app.post("/sessions", response_model=SessionsResponse)
def sessions(body: SessionsRequest, store: SqlStore = Depends(get_store)):
    """
    Candidate sessions for every date in the horizon.
    - closed dates carry one "Not Available" placeholder with the reason
    - every unavailable slot carries exactly one reason
    - no_availability_reason is set when nothing at all is bookable
    """
    include = SHOW_UNAVAILABLE_SESSIONS if body.include_unavailable is None \
        else body.include_unavailable
    return _search(body, store, include).to_dict()


@app.post("/sessions/first-available", response_model=SlotOut)
def first_available(body: SessionsRequest, store: SqlStore = Depends(get_store)):
    result = _search(body, store, include_unavailable=False).require_available()
    return result.first_available().to_dict()


# ── Bookings ──────────────────────────────────────────────────────────────────

@app.post("/bookings", response_model=BookingResponse, status_code=201)
def create_booking(body: BookingCreate,
                   allocator: ResourceAllocator = Depends(get_allocator)):
    coach = parse_coach_selector(body.coach)
    start = body.start_time
    if start.tzinfo is not None:
        start = start.astimezone(STUDIO_TIMEZONE).replace(tzinfo=None)
    end = start + timedelta(hours=body.duration_hours)

    result = allocator.allocate(
        user_id=body.user_id,
        slot=Slot(start=start, end=end, label=format_time_range(start, end)),
        coach=coach,
        coach_hours=body.coach_hours,
        mode=BookingMode.PENDING_PAYMENT if body.pending_payment else BookingMode.STANDARD,
    )
    return vars(result)


@app.post("/bookings/{booking_id}/cancel", response_model=CancelResponse)
def cancel_booking(booking_id: int, body: Optional[CancelRequest] = None,
                   allocator: ResourceAllocator = Depends(get_allocator)):
    refunded = allocator.cancel(booking_id, body.reason if body else None)
    return {"booking_id": booking_id, "refunded_hours": refunded}


@app.post("/bookings/{booking_id}/confirm-payment")
def confirm_payment(booking_id: int, body: ConfirmPaymentRequest,
                    allocator: ResourceAllocator = Depends(get_allocator)):
    allocator.confirm_payment(booking_id, body.payment_ref)
    return {"booking_id": booking_id, "status": "confirmed"}


# ── Credits ───────────────────────────────────────────────────────────────────

@app.get("/credits/{user_id}", response_model=CreditBalance)
def credit_balance(user_id: int, store: SqlStore = Depends(get_store)):
    return {"user_id": user_id, "simulator_hours": store.get_credit_balance(user_id)}


@app.post("/credits/{user_id}", response_model=CreditBalance)
def credit_top_up(user_id: int, body: CreditTopUp,
                  allocator: ResourceAllocator = Depends(get_allocator)):
    return {"user_id": user_id, "simulator_hours": allocator.add_credits(user_id, body.hours)}


# ── Ingestion ─────────────────────────────────────────────────────────────────

@app.post("/ingest/run")
def ingest_run(force: bool = False, db: Session = Depends(get_db)):
    """
    Run ingestion pipeline.
    - Reads data/bucket/*.json
    - Validates, upserts to DB
    - Idempotent (skips if unchanged unless force=True)
    """
    try:
        return run_ingestion(db, force=force)
    except PydanticValidationError as e:
        raise ValidationError("Invalid bucket data",
                              details={"errors": e.errors(include_url=False, include_context=False,
                                                          include_input=False)}) from e


# ── Metrics ───────────────────────────────────────────────────────────────────

@app.get("/metrics/occupancy")
def occupancy(start_date: Optional[date] = None, days: int = 7,
              store: SqlStore = Depends(get_store)):
    return get_occupancy_metrics(store, store, start_date or now_local().date(), days)


# ── Health check ──────────────────────────────────────────────────────────────

@app.get("/")
def root():
    return {
        "service": "Simbook Booking API",
        "version": "1.0.0",
        "endpoints": ["/sessions", "/sessions/first-available", "/bookings",
                      "/credits/{user_id}", "/ingest/run", "/metrics/occupancy"],
    }
