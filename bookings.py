"""
Admin-side booking operations: status override, full edit and deletion.

No driver-ownership check applies here; routes require an admin or a staff
user holding ``booking.manage``.
"""

import logging
from datetime import timedelta

from dateutil import parser as date_parser

from models import (
    db, Booking, CouponRedemption, Service, User,
    BOOKING_STATUSES, BOOKING_PAID, BOOKING_ASSIGNED,
    TASK_ASSIGNED, ROLE_DRIVER,
)
from errors import BookingError
from financials import resolve_commission_percentage
from pricing import round_half_away
from settings_provider import AdminSettingsProvider, load_pricing_settings
from business_events import emit_business_event
from validators import parse_amount, parse_flag

logger = logging.getLogger(__name__)


def _get_booking(booking_id):
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise BookingError("Booking not found", status=404)
    return booking


def _normalise_status(status):
    status = (status or "").strip().upper()
    if status not in BOOKING_STATUSES:
        raise BookingError("Invalid status")
    return status


def _event_payload(booking, **extra):
    payload = {
        "booking_id": booking.id,
        "user_id": booking.user_id,
        "service_name": booking.service.name if booking.service else None,
    }
    payload.update(extra)
    return payload


def update_booking_status(booking_id, status):
    status = _normalise_status(status)
    booking = _get_booking(booking_id)
    booking.status = status
    db.session.commit()
    logger.info("Booking %s status set to %s by admin", booking.id, status)

    emit_business_event("booking.status_updated", _event_payload(booking, status=status))
    return booking


def _parse_start(value):
    if not value:
        raise BookingError("Missing field: startAt")
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, OverflowError):
        raise BookingError("Invalid start date")
    # Stored as naive business-local time
    return parsed.replace(tzinfo=None)


def _parse_cash_amount(value):
    amount = parse_amount(value, BookingError, "Invalid cash amount")
    if amount is None:
        return None
    cents = round_half_away(amount * 100)
    if cents < 0:
        raise BookingError("Invalid cash amount")
    return cents


def _commission_snapshot(partner, settings):
    pricing = load_pricing_settings(settings)
    return resolve_commission_percentage(
        partner.commission_percentage if partner else None,
        pricing.default_partner_commission,
    )


def update_booking(booking_id, data, settings=None):
    """Full admin edit of a booking.

    ``data`` keys: service_id, start_at, status, driver_id, cash_collected,
    cash_amount (currency units), driver_notes.
    """
    settings = settings or AdminSettingsProvider()
    booking = _get_booking(booking_id)

    service_id = (data.get("service_id") or "").strip()
    if not service_id:
        raise BookingError("Missing field: serviceId")
    status = _normalise_status(data.get("status"))

    service = db.session.get(Service, service_id)
    if service is None:
        raise BookingError("Service not found", status=404)

    start_at = _parse_start(data.get("start_at"))
    cash_amount_cents = _parse_cash_amount(data.get("cash_amount"))
    cash_collected = parse_flag(data.get("cash_collected"), "cash_collected", BookingError)
    driver_notes = (data.get("driver_notes") or "").strip() or None

    driver = None
    driver_id = (data.get("driver_id") or "").strip() or None
    if driver_id:
        driver = db.session.get(User, driver_id)
        if driver is None or driver.role != ROLE_DRIVER:
            raise BookingError("Driver not found", status=404)

    previous_status = booking.status
    previous_cash_collected = bool(booking.cash_collected)
    previous_amount = booking.cash_amount_cents or 0
    next_amount = cash_amount_cents if cash_amount_cents is not None else (0 if cash_collected else None)

    booking.service_id = service.id
    booking.service = service
    booking.start_at = start_at
    booking.end_at = start_at + timedelta(minutes=service.duration_min or 0)
    booking.cash_collected = cash_collected
    booking.cash_amount_cents = next_amount
    booking.driver_notes = driver_notes

    if driver is not None:
        if booking.driver_id != driver.id:
            booking.task_status = TASK_ASSIGNED
        booking.driver_id = driver.id
        if driver.partner_id:
            booking.partner_id = driver.partner_id
            booking.partner_commission_percentage = _commission_snapshot(driver.partner, settings)
        next_status = BOOKING_PAID if status == BOOKING_PAID else BOOKING_ASSIGNED
    else:
        booking.driver_id = None
        if booking.partner_id and booking.partner_commission_percentage is None:
            booking.partner_commission_percentage = _commission_snapshot(booking.partner, settings)
        next_status = status
    booking.status = next_status

    db.session.commit()
    logger.info("Booking %s updated by admin (driver=%s, partner=%s, commission=%s)",
                booking.id, booking.driver_id, booking.partner_id, booking.partner_commission_percentage)

    if previous_status != next_status:
        emit_business_event("booking.status_updated", _event_payload(booking, status=next_status))

    amount_now = next_amount if next_amount is not None else previous_amount
    if cash_collected and (not previous_cash_collected or previous_amount != amount_now):
        emit_business_event("booking.cash_collected", _event_payload(booking, amount_cents=amount_now))

    return booking


def delete_booking(booking_id):
    booking = _get_booking(booking_id)
    payload = _event_payload(booking)

    CouponRedemption.query.filter_by(booking_id=booking.id).delete()
    db.session.delete(booking)
    db.session.commit()
    logger.info("Booking %s deleted by admin", booking_id)

    emit_business_event("booking.deleted", payload)
    return payload
