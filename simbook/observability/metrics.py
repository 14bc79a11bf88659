"""
Observability metrics for the studio.

Tracks:
- Simulator occupancy (booked simulator-hours vs. open capacity, per date)
- Coach hours booked
- Pending-payment placeholders still holding capacity
- Availability coverage of a generated session set
"""
from datetime import date, timedelta

from simbook.booking.stores import BookingLedger, CalendarRuleStore
from simbook.config import SIMULATOR_COUNT
from simbook.models import BookingStatus
from simbook.scheduling.availability import at_hour, date_range
from simbook.scheduling.calendar_rules import (
    index_business_hours, index_special_dates, resolve_day,
)
from simbook.scheduling.sessions import SessionsResult


def get_occupancy_metrics(
    calendar: CalendarRuleStore,
    ledger: BookingLedger,
    start: date,
    days: int = 7,
    simulator_count: int = SIMULATOR_COUNT,
) -> dict:
    """
    Per-date occupancy for [start, start + days).
    Capacity is open hours × simulators; closed dates have zero capacity.
    """
    end = start + timedelta(days=days)
    rules = index_business_hours(calendar.get_business_hours())
    overrides = index_special_dates(calendar.get_special_dates(start, end))
    bookings = ledger.get_bookings(at_hour(start, 0), at_hour(end, 0))

    per_day = []
    for d in date_range(start, days):
        window = resolve_day(d, rules, overrides)
        capacity = 0 if window.is_closed else \
            (window.close_hour - window.open_hour) * simulator_count

        day_start, day_end = at_hour(d, 0), at_hour(d, 24)
        todays = [b for b in bookings if day_start <= b.start < day_end]
        booked = sum(int((b.end - b.start).total_seconds() // 3600) for b in todays)

        per_day.append({
            "date": d.isoformat(),
            "is_closed": window.is_closed,
            "capacity_hours": capacity,
            "booked_hours": booked,
            "coach_hours": sum(b.coach_hours for b in todays if b.coach_id),
            "bookings": len(todays),
            "pending_payment": sum(
                1 for b in todays if b.status == BookingStatus.PENDING_PAYMENT.value
            ),
            "occupancy_rate": (booked / capacity * 100) if capacity > 0 else 0.0,
        })

    total_capacity = sum(d["capacity_hours"] for d in per_day)
    total_booked = sum(d["booked_hours"] for d in per_day)
    return {
        "start_date": start.isoformat(),
        "period_days": days,
        "total_capacity_hours": total_capacity,
        "total_booked_hours": total_booked,
        "total_coach_hours": sum(d["coach_hours"] for d in per_day),
        "occupancy_rate": (total_booked / total_capacity * 100) if total_capacity > 0 else 0.0,
        "days": per_day,
    }


def get_coverage_metrics(result: SessionsResult) -> dict:
    """
    Compute coverage metrics for a generated session set.
    """
    slots = [s for day in result.sessions.values() for s in day if not s.is_placeholder]
    closed_days = sum(
        1 for day in result.sessions.values() if any(s.is_placeholder for s in day)
    )

    reasons = {}
    for s in slots:
        if not s.available:
            reasons[s.reason_code.value] = reasons.get(s.reason_code.value, 0) + 1

    available = sum(1 for s in slots if s.available)
    return {
        "total_slots": len(slots),
        "available_slots": available,
        "closed_days": closed_days,
        "unavailable_reasons": reasons,
        "coverage_rate": (available / len(slots) * 100) if slots else 0.0,
    }
