"""
Business events fan out to customer pushes and the admin notification log.

Events are emitted after the primary update has been committed; a failing
notification is logged and never rolls that update back.
"""

import logging

from notifications import (
    send_push_notification, record_admin_notification,
    CATEGORY_ORDER, CATEGORY_PAYMENT,
)

logger = logging.getLogger(__name__)


def _service_label(payload, fallback="booking"):
    return payload.get("service_name") or fallback


def _status_body(status, service_name):
    if status == "PAID":
        return "Your {} is completed.".format(service_name)
    if status == "CANCELLED":
        return "Your {} was cancelled.".format(service_name)
    return "Your {} status is now {}.".format(service_name, status)


def _on_started(payload):
    send_push_notification(
        payload.get("user_id"), "Booking in progress",
        "Your {} has started.".format(_service_label(payload)),
        {"booking_id": payload["booking_id"], "type": "BOOKING_STARTED"},
    )
    record_admin_notification(
        "Driver started a task",
        "{} is now in progress.".format(_service_label(payload, "A booking")),
        CATEGORY_ORDER, "BOOKING", payload["booking_id"],
    )


def _on_completed(payload):
    send_push_notification(
        payload.get("user_id"), "Booking completed",
        "Your {} is complete. Thank you!".format(_service_label(payload)),
        {"booking_id": payload["booking_id"], "type": "BOOKING_COMPLETED"},
    )
    record_admin_notification(
        "Driver completed a task",
        "{} was completed.".format(_service_label(payload, "A booking")),
        CATEGORY_ORDER, "BOOKING", payload["booking_id"],
    )


def _on_cash_collected(payload):
    amount = payload.get("amount_cents") or 0
    send_push_notification(
        payload.get("user_id"), "Cash payment received",
        "Payment for {} has been recorded as collected.".format(_service_label(payload)),
        {"booking_id": payload["booking_id"], "type": "CASH_COLLECTED"},
    )
    record_admin_notification(
        "Cash collection submitted",
        "Driver collected {:.2f} for {}.".format(amount / 100, _service_label(payload, "a booking")),
        CATEGORY_PAYMENT, "BOOKING", payload["booking_id"],
    )


def _on_status_updated(payload):
    status = payload.get("status")
    send_push_notification(
        payload.get("user_id"), "Booking status updated",
        _status_body(status, _service_label(payload)),
        {"booking_id": payload["booking_id"], "status": status},
    )
    record_admin_notification(
        "Booking status updated",
        "{} moved to {}.".format(_service_label(payload, "A booking"), status),
        CATEGORY_PAYMENT if status == "PAID" else CATEGORY_ORDER,
        "BOOKING", payload["booking_id"],
    )


def _on_deleted(payload):
    send_push_notification(
        payload.get("user_id"), "Booking removed",
        "{} was removed by the admin.".format(payload.get("service_name") or "Your booking"),
        {"booking_id": payload["booking_id"], "type": "BOOKING_DELETED"},
    )


_HANDLERS = {
    "booking.started": _on_started,
    "booking.completed": _on_completed,
    "booking.cash_collected": _on_cash_collected,
    "booking.status_updated": _on_status_updated,
    "booking.deleted": _on_deleted,
}


def emit_business_event(event_type, payload):
    """Dispatch ``event_type``. Unknown events are logged and ignored. Never raises."""
    handler = _HANDLERS.get(event_type)
    if handler is None:
        logger.warning("No handler for business event %s", event_type)
        return False
    try:
        handler(payload)
        return True
    except Exception:
        logger.exception("Business event %s failed for %s", event_type, payload.get("booking_id"))
        return False
