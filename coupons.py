"""
Coupon validation and redemption.
"""

import logging

from dateutil import parser as date_parser

from models import (
    db, Booking, Coupon, CouponRedemption, Service,
    BOOKING_PENDING, local_now,
)
from errors import CouponError
from pricing import discounted_price
from validators import parse_flag

logger = logging.getLogger(__name__)

DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_FIXED = "FIXED"


def normalise_code(code):
    return (code or "").strip().upper()


def find_coupon_by_code(code):
    normalised = normalise_code(code)
    if not normalised:
        raise CouponError("Enter a coupon code")
    coupon = Coupon.query.filter_by(code=normalised).first()
    if coupon is None:
        raise CouponError("Coupon not found", status=404)
    return coupon


def compute_discount(coupon, price_cents):
    """Discount in cents for ``price_cents``, bounded by the price."""
    if coupon.discount_type == DISCOUNT_PERCENTAGE:
        discount = (price_cents * coupon.discount_value) // 100
    else:
        discount = coupon.discount_value
    if discount <= 0:
        raise CouponError("This coupon does not provide any discount")
    return min(discount, price_cents)


def validate_coupon(code, user_id, service, booking_id=None, now=None):
    """Check every redemption rule.

    Returns ``(coupon, discount_cents)``; raises :class:`CouponError` with a
    user-facing message otherwise.
    """
    now = now or local_now()
    coupon = find_coupon_by_code(code)

    if not coupon.active:
        raise CouponError("This coupon is not active")
    if coupon.valid_from and coupon.valid_from > now:
        raise CouponError("This coupon is not yet active")
    if coupon.valid_until and coupon.valid_until < now:
        raise CouponError("This coupon has expired")

    if not coupon.applies_to_all_services and service.id not in (coupon.applicable_service_ids or []):
        raise CouponError("This coupon cannot be used for the selected service")

    price = discounted_price(service.price_cents, service.discount_percentage)
    if price <= 0:
        raise CouponError("This booking already qualifies for a free service")
    if coupon.min_booking_amount_cents and price < coupon.min_booking_amount_cents:
        raise CouponError("Booking total does not meet the minimum amount for this coupon")

    redemptions = CouponRedemption.query.filter(CouponRedemption.coupon_id == coupon.id)
    if booking_id:
        # Re-applying to the same booking does not count against the limits
        redemptions = redemptions.filter(
            (CouponRedemption.booking_id != booking_id) | (CouponRedemption.booking_id.is_(None))
        )
    if coupon.max_redemptions is not None and redemptions.count() >= coupon.max_redemptions:
        raise CouponError("This coupon has reached its usage limit")
    if coupon.max_redemptions_per_user is not None and \
            redemptions.filter(CouponRedemption.user_id == user_id).count() >= coupon.max_redemptions_per_user:
        raise CouponError("You have already used this coupon the maximum number of times")

    return coupon, compute_discount(coupon, price)


def _load_owned_pending_booking(booking_id, user_id):
    booking = db.session.get(Booking, booking_id)
    # Someone else's booking looks the same as a missing one
    if booking is None or booking.user_id != user_id:
        raise CouponError("Booking not found", status=404)
    if booking.status != BOOKING_PENDING:
        raise CouponError("Cannot apply coupons to this booking")
    if booking.service is None:
        raise CouponError("Booking has no service")
    return booking


def apply_coupon_to_booking(booking_id, user_id, code):
    booking = _load_owned_pending_booking(booking_id, user_id)
    coupon, discount = validate_coupon(code, user_id, booking.service, booking_id=booking.id)

    CouponRedemption.query.filter_by(booking_id=booking.id).delete()
    db.session.add(CouponRedemption(
        coupon_id=coupon.id,
        user_id=user_id,
        booking_id=booking.id,
        amount_cents=discount,
    ))
    booking.coupon_id = coupon.id
    booking.coupon_code = coupon.code
    booking.coupon_discount_cents = discount
    db.session.commit()
    logger.info("Coupon %s applied to booking %s (%d cents)", coupon.code, booking.id, discount)

    price = discounted_price(booking.service.price_cents, booking.service.discount_percentage)
    return {
        "coupon_id": coupon.id,
        "coupon_code": coupon.code,
        "discount_cents": discount,
        "remaining_amount_cents": max(0, price - discount),
    }


def remove_coupon_from_booking(booking_id, user_id):
    booking = _load_owned_pending_booking(booking_id, user_id)
    CouponRedemption.query.filter_by(booking_id=booking.id).delete()
    booking.coupon_id = None
    booking.coupon_code = None
    booking.coupon_discount_cents = 0
    db.session.commit()

    price = discounted_price(booking.service.price_cents, booking.service.discount_percentage)
    return {"remaining_amount_cents": price}


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------
def _parse_datetime(value, field):
    if value in (None, ""):
        return None
    try:
        return date_parser.isoparse(str(value)).replace(tzinfo=None)
    except (ValueError, OverflowError):
        raise CouponError("Invalid {}".format(field))


def _parse_int(value, field, minimum=0, allow_none=True):
    if value in (None, ""):
        if allow_none:
            return None
        raise CouponError("{} is required".format(field))
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise CouponError("{} must be a whole number".format(field))
    if parsed < minimum:
        raise CouponError("{} must be at least {}".format(field, minimum))
    return parsed


def _apply_fields(coupon, data, creating):
    if creating or "code" in data:
        code = normalise_code(data.get("code"))
        if len(code) < 3:
            raise CouponError("Coupon code must be at least 3 characters")
        clash = Coupon.query.filter(Coupon.code == code)
        if coupon.id is not None:
            clash = clash.filter(Coupon.id != coupon.id)
        clash = clash.first()
        if clash is not None:
            raise CouponError("A coupon with this code already exists", status=409)
        coupon.code = code

    if creating or "discount_type" in data:
        discount_type = (data.get("discount_type") or DISCOUNT_PERCENTAGE).upper()
        if discount_type not in (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED):
            raise CouponError("discount_type must be PERCENTAGE or FIXED")
        coupon.discount_type = discount_type

    if creating or "discount_value" in data:
        value = _parse_int(data.get("discount_value"), "discount_value", minimum=1, allow_none=False)
        if coupon.discount_type == DISCOUNT_PERCENTAGE and value > 100:
            raise CouponError("Percentage discount cannot exceed 100")
        coupon.discount_value = value

    if "description" in data:
        coupon.description = data.get("description") or None
    if "active" in data:
        coupon.active = parse_flag(data.get("active"), "active", CouponError)
    if "valid_from" in data:
        coupon.valid_from = _parse_datetime(data.get("valid_from"), "valid_from")
    if "valid_until" in data:
        coupon.valid_until = _parse_datetime(data.get("valid_until"), "valid_until")
    if coupon.valid_from and coupon.valid_until and coupon.valid_until < coupon.valid_from:
        raise CouponError("valid_until must be after valid_from")

    if "applicable_service_ids" in data:
        service_ids = [str(sid) for sid in (data.get("applicable_service_ids") or [])]
        known = {s.id for s in Service.query.filter(Service.id.in_(service_ids)).all()} if service_ids else set()
        missing = [sid for sid in service_ids if sid not in known]
        if missing:
            raise CouponError("Unknown services: {}".format(", ".join(missing)))
        coupon.applicable_service_ids = service_ids
        coupon.applies_to_all_services = not service_ids

    for field in ("min_booking_amount_cents", "max_redemptions", "max_redemptions_per_user"):
        if field in data:
            setattr(coupon, field, _parse_int(data.get(field), field))


def create_coupon(data):
    coupon = Coupon()
    _apply_fields(coupon, data, creating=True)
    db.session.add(coupon)
    db.session.commit()
    logger.info("Coupon %s created", coupon.code)
    return coupon


def update_coupon(coupon_id, data):
    coupon = db.session.get(Coupon, coupon_id)
    if coupon is None:
        raise CouponError("Coupon not found", status=404)
    _apply_fields(coupon, data, creating=False)
    db.session.commit()
    return coupon


def delete_coupon(coupon_id):
    coupon = db.session.get(Coupon, coupon_id)
    if coupon is None:
        raise CouponError("Coupon not found", status=404)
    code = coupon.code
    Booking.query.filter_by(coupon_id=coupon.id).update({"coupon_id": None})
    CouponRedemption.query.filter_by(coupon_id=coupon.id).delete()
    db.session.delete(coupon)
    db.session.commit()
    logger.info("Coupon %s deleted", code)
