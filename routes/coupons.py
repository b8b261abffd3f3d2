"""
Coupon API routes for WashOps.
Customer: validate a code, apply/remove it on a pending booking.
Admin: CRUD coupons (requires ``coupon.manage``).
"""

from flask import Blueprint, request, jsonify

from models import db, Coupon, Service
from auth_routes import require_auth
from permissions import require_permission, COUPON_MANAGE
from errors import CouponError
import coupons

coupons_bp = Blueprint("coupons", __name__)


# ---------------------------------------------------------------------------
# POST /api/coupons/validate
# ---------------------------------------------------------------------------
@coupons_bp.route("/api/coupons/validate", methods=["POST"])
@require_auth
def validate_coupon(user_id):
    """Body JSON: code, service_id, booking_id (optional)."""
    data = request.get_json(silent=True) or {}
    service = db.session.get(Service, data.get("service_id") or "")
    if service is None:
        raise CouponError("Service not found", status=404)

    coupon, discount = coupons.validate_coupon(
        data.get("code"), user_id, service, booking_id=data.get("booking_id"))
    return jsonify({
        "valid": True,
        "coupon_id": coupon.id,
        "code": coupon.code,
        "discount_type": coupon.discount_type,
        "discount_cents": discount,
    }), 200


# ---------------------------------------------------------------------------
# POST/DELETE /api/bookings/<id>/coupon
# ---------------------------------------------------------------------------
@coupons_bp.route("/api/bookings/<booking_id>/coupon", methods=["POST"])
@require_auth
def apply_coupon(user_id, booking_id):
    data = request.get_json(silent=True) or {}
    result = coupons.apply_coupon_to_booking(booking_id, user_id, data.get("code"))
    return jsonify(dict(success=True, **result)), 200


@coupons_bp.route("/api/bookings/<booking_id>/coupon", methods=["DELETE"])
@require_auth
def remove_coupon(user_id, booking_id):
    result = coupons.remove_coupon_from_booking(booking_id, user_id)
    return jsonify(dict(success=True, **result)), 200


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------
@coupons_bp.route("/api/admin/coupons", methods=["GET"])
@require_auth
@require_permission(COUPON_MANAGE)
def list_coupons(user_id):
    rows = Coupon.query.order_by(Coupon.created_at.desc()).all()
    return jsonify({"success": True, "coupons": [c.to_dict() for c in rows]}), 200


@coupons_bp.route("/api/admin/coupons", methods=["POST"])
@require_auth
@require_permission(COUPON_MANAGE)
def create_coupon(user_id):
    coupon = coupons.create_coupon(request.get_json(silent=True) or {})
    return jsonify({"success": True, "coupon": coupon.to_dict()}), 201


@coupons_bp.route("/api/admin/coupons/<coupon_id>", methods=["PUT"])
@require_auth
@require_permission(COUPON_MANAGE)
def update_coupon(user_id, coupon_id):
    coupon = coupons.update_coupon(coupon_id, request.get_json(silent=True) or {})
    return jsonify({"success": True, "coupon": coupon.to_dict()}), 200


@coupons_bp.route("/api/admin/coupons/<coupon_id>", methods=["DELETE"])
@require_auth
@require_permission(COUPON_MANAGE)
def delete_coupon(user_id, coupon_id):
    coupons.delete_coupon(coupon_id)
    return jsonify({"success": True, "deleted": coupon_id}), 200
