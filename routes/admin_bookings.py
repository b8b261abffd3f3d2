"""
Admin booking routes for WashOps.
Status override, full edit and deletion. Requires ``booking.manage``.
"""

from flask import Blueprint, request, jsonify

from auth_routes import require_auth
from permissions import require_permission, BOOKING_MANAGE
import bookings

admin_bookings_bp = Blueprint("admin_bookings", __name__, url_prefix="/api/admin/bookings")


@admin_bookings_bp.route("/<booking_id>/status", methods=["PUT"])
@require_auth
@require_permission(BOOKING_MANAGE)
def update_status(user_id, booking_id):
    data = request.get_json(silent=True) or {}
    booking = bookings.update_booking_status(booking_id, data.get("status"))
    return jsonify({"success": True, "booking": booking.to_dict()}), 200


@admin_bookings_bp.route("/<booking_id>", methods=["PUT"])
@require_auth
@require_permission(BOOKING_MANAGE)
def update_booking(user_id, booking_id):
    """Full edit.

    Body JSON:
        service_id, start_at (ISO 8601), status, driver_id (optional),
        cash_collected, cash_amount (currency units), driver_notes
    """
    data = request.get_json(silent=True) or {}
    booking = bookings.update_booking(booking_id, data)
    return jsonify({"success": True, "booking": booking.to_dict()}), 200


@admin_bookings_bp.route("/<booking_id>", methods=["DELETE"])
@require_auth
@require_permission(BOOKING_MANAGE)
def delete_booking(user_id, booking_id):
    bookings.delete_booking(booking_id)
    return jsonify({"success": True, "deleted": booking_id}), 200
