"""
Notification helpers for WashOps.

In-app push notifications for customers and drivers, and the admin
notification log.

IMPORTANT: No function in this module should ever raise an exception.
All errors are caught and logged so that a notification failure never
undoes a booking or shift update that has already been committed.
"""

import logging

logger = logging.getLogger(__name__)

CATEGORY_ORDER = "ORDER"
CATEGORY_PAYMENT = "PAYMENT"
CATEGORY_SYSTEM = "SYSTEM"


def send_push_notification(user_id, title, body, data=None, notification_type="booking_update"):
    """Store an in-app notification for ``user_id``. Returns the id or None.

    Never raises.
    """
    from models import db, Notification, generate_uuid

    if not user_id:
        return None
    try:
        notification = Notification(
            id=generate_uuid(),
            user_id=user_id,
            type=notification_type,
            title=title,
            body=body,
            data=data or {},
        )
        db.session.add(notification)
        db.session.commit()
        logger.info("Push to %s: %s", user_id, title)
        return notification.id
    except Exception:
        db.session.rollback()
        logger.exception("Failed to store push notification for %s", user_id)
        return None


def record_admin_notification(title, message, category=CATEGORY_ORDER, entity_type=None, entity_id=None):
    """Append an entry to the admin notification log. Never raises."""
    from models import db, AdminNotification, generate_uuid

    try:
        entry = AdminNotification(
            id=generate_uuid(),
            title=title,
            message=message,
            category=category,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(entry)
        db.session.commit()
        return entry.id
    except Exception:
        db.session.rollback()
        logger.exception("Failed to record admin notification '%s'", title)
        return None
