"""
Permission keys for staff access to admin features.

Effective permissions are the grants of the user's role with per-user
overrides applied on top. Admins hold every permission.
"""

import logging
from functools import wraps

from flask import jsonify

from models import db, PermissionOverride, RolePermission, User, ROLE_ADMIN
from errors import ServiceError

logger = logging.getLogger(__name__)

BOOKING_MANAGE = "booking.manage"
PARTNER_MANAGE = "partner.manage"
PARTNER_FINANCIALS_VIEW = "partner.financials.view"
COUPON_MANAGE = "coupon.manage"
SUBSCRIPTION_MANAGE = "subscription.manage"
DRIVER_DAY_VIEW = "driver_day.view"

ALL_PERMISSIONS = (
    BOOKING_MANAGE,
    PARTNER_MANAGE,
    PARTNER_FINANCIALS_VIEW,
    COUPON_MANAGE,
    SUBSCRIPTION_MANAGE,
    DRIVER_DAY_VIEW,
)


def get_user_permissions(user):
    if user is None:
        return set()
    if user.role == ROLE_ADMIN:
        return set(ALL_PERMISSIONS)

    granted = {
        row.permission_key
        for row in RolePermission.query.filter_by(role=user.role).all()
    }
    for override in PermissionOverride.query.filter_by(user_id=user.id).all():
        if override.granted:
            granted.add(override.permission_key)
        else:
            granted.discard(override.permission_key)
    return granted


def has_permission(user, key):
    return key in get_user_permissions(user)


def set_permission_override(user_id, key, granted):
    """Grant or revoke ``key`` for one user; ``granted=None`` removes the override."""
    if key not in ALL_PERMISSIONS:
        raise ServiceError("Unknown permission: {}".format(key))
    user = db.session.get(User, user_id)
    if user is None:
        raise ServiceError("User not found", status=404)

    override = PermissionOverride.query.filter_by(user_id=user.id, permission_key=key).first()
    if granted is None:
        if override is not None:
            db.session.delete(override)
    elif override is None:
        db.session.add(PermissionOverride(user_id=user.id, permission_key=key, granted=bool(granted)))
    else:
        override.granted = bool(granted)
    db.session.commit()

    logger.info("Permission %s for user %s set to %s", key, user.id, granted)
    return get_user_permissions(user)


def require_permission(key):
    """Route decorator; must sit below ``require_auth`` so ``user_id`` is passed in."""
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            user = db.session.get(User, kwargs.get("user_id"))
            if not has_permission(user, key):
                logger.warning("User %s denied %s", kwargs.get("user_id"), key)
                return jsonify({"error": "Forbidden", "permission": key}), 403
            return f(*args, **kwargs)
        return wrapper
    return decorator
