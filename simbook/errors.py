"""
Domain errors raised by the booking engine.

Per-slot unavailability is never an error: it travels as data on each Slot.
These exceptions cover malformed requests and allocation-time faults, and
know how to turn themselves into an HTTP response for the API layer.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationError(DomainException):
    """Malformed request. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST


class NoAvailabilityError(DomainException):
    """Session generation found nothing bookable."""

    status_code = status.HTTP_404_NOT_FOUND


class BookingNotFoundError(DomainException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, booking_id: int) -> None:
        super().__init__(
            f"Booking {booking_id} not found",
            details={"booking_id": booking_id},
        )


class ResourceExhaustedError(DomainException):
    """Every simulator is taken for the requested interval."""

    status_code = status.HTTP_409_CONFLICT


class CoachUnavailableError(DomainException):
    """The coach's weekly schedule does not cover the requested window."""

    status_code = status.HTTP_409_CONFLICT


class CoachConflictError(DomainException):
    """The coach already has a booking overlapping the requested window."""

    status_code = status.HTTP_409_CONFLICT


class InsufficientCreditsError(DomainException):
    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            "Insufficient credits",
            details={"required": required, "available": available},
        )


class ConcurrencyConflictError(DomainException):
    """Lost a race for a contested resource. Safe to retry from a fresh search."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class StoreConflict(Exception):
    """
    Transient store-level conflict (lock timeout, serialization failure,
    conditional write miss). Raised by stores, consumed by the allocator's
    retry loop; callers of the engine never see it.
    """
