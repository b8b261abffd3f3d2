"""
Driver task transitions on bookings: start, submit cash, complete.

Every operation first checks that the acting driver is the booking's
assigned driver. Task status only moves forward:
ASSIGNED -> IN_PROGRESS -> COMPLETED.
"""

import logging

from models import (
    db, Booking, local_now,
    BOOKING_ASSIGNED, BOOKING_PAID,
    TASK_ASSIGNED, TASK_IN_PROGRESS, TASK_COMPLETED,
    PAYMENT_PAID,
)
from errors import TaskError
from pricing import round_half_away
from business_events import emit_business_event
from validators import parse_amount

logger = logging.getLogger(__name__)

COLLECT_CASH = "COLLECT_CASH"


def get_owned_booking(booking_id, driver_id):
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise TaskError("Booking not found", status=404)
    if booking.driver_id != driver_id:
        logger.warning("Driver %s touched booking %s assigned to %s", driver_id, booking_id, booking.driver_id)
        raise TaskError("Booking not assigned to this driver", status=403)
    return booking


def _event_payload(booking, driver_id, **extra):
    payload = {
        "booking_id": booking.id,
        "user_id": booking.user_id,
        "driver_id": driver_id,
        "service_name": booking.service.name if booking.service else None,
    }
    payload.update(extra)
    return payload


def is_paid_online(booking):
    return booking.payment is not None and booking.payment.status == PAYMENT_PAID


def start_task(booking_id, driver_id, now=None):
    booking = get_owned_booking(booking_id, driver_id)
    if booking.task_status != TASK_ASSIGNED:
        raise TaskError("Task must be assigned before it can be started")

    booking.task_status = TASK_IN_PROGRESS
    booking.status = BOOKING_ASSIGNED
    booking.task_started_at = now or local_now()
    db.session.commit()
    logger.info("Driver %s started booking %s", driver_id, booking.id)

    emit_business_event("booking.started", _event_payload(booking, driver_id))
    return booking


def submit_cash_details(booking_id, driver_id, cash_collected, cash_amount=None, driver_notes=None):
    """Record whether cash was collected and how much.

    ``cash_amount`` is in currency units. Without it the stored override or
    the service price is used.
    """
    booking = get_owned_booking(booking_id, driver_id)

    if booking.cash_amount_cents and booking.cash_amount_cents > 0:
        fallback_cents = booking.cash_amount_cents
    else:
        fallback_cents = booking.service.price_cents if booking.service else None
    if not fallback_cents:
        raise TaskError("Unable to determine booking amount")

    if cash_amount is not None:
        amount = parse_amount(cash_amount, TaskError, "Invalid cash amount")
        amount_cents = round_half_away(amount * 100)
        if amount_cents < 0:
            raise TaskError("Cash amount cannot be negative")
    else:
        amount_cents = fallback_cents

    booking.cash_collected = bool(cash_collected)
    booking.cash_amount_cents = amount_cents if cash_collected else None
    booking.cash_settled = False
    booking.driver_notes = driver_notes or None
    if cash_collected:
        booking.status = BOOKING_PAID
    db.session.commit()
    logger.info("Driver %s submitted cash for booking %s (collected=%s, %d cents)",
                driver_id, booking.id, booking.cash_collected, amount_cents)

    if cash_collected:
        emit_business_event("booking.cash_collected",
                            _event_payload(booking, driver_id, amount_cents=amount_cents))
    return booking


def complete_task(booking_id, driver_id, now=None):
    booking = get_owned_booking(booking_id, driver_id)
    if booking.task_status != TASK_IN_PROGRESS:
        raise TaskError("Task must be in progress to complete")

    if not is_paid_online(booking) and not booking.cash_collected:
        raise TaskError("Cannot complete task until cash is collected", requires_action=COLLECT_CASH)

    booking.task_status = TASK_COMPLETED
    booking.status = BOOKING_PAID
    booking.task_completed_at = now or local_now()
    db.session.commit()
    logger.info("Driver %s completed booking %s", driver_id, booking.id)

    emit_business_event("booking.completed", _event_payload(booking, driver_id))
    return booking


def list_driver_tasks(driver_id, include_completed=False):
    query = Booking.query.filter(Booking.driver_id == driver_id)
    if not include_completed:
        query = query.filter(Booking.task_status != TASK_COMPLETED)
    return query.order_by(Booking.start_at.asc()).all()
