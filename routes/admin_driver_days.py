"""
Driver-day administration routes for WashOps.
"""

from datetime import date

from flask import Blueprint, request, jsonify

from models import local_now
from auth_routes import require_auth
from permissions import require_permission, DRIVER_DAY_VIEW
import driver_days
from driver_days import serialize_day

admin_driver_days_bp = Blueprint("admin_driver_days", __name__, url_prefix="/api/admin/driver-days")


@admin_driver_days_bp.route("", methods=["GET"])
@require_auth
@require_permission(DRIVER_DAY_VIEW)
def list_driver_days(user_id):
    """Day records for ``?date=YYYY-MM-DD`` (default today) with driver names."""
    target = local_now().date()
    if request.args.get("date"):
        try:
            target = date.fromisoformat(request.args["date"])
        except ValueError:
            return jsonify({"error": "Invalid date, expected YYYY-MM-DD"}), 400

    days = []
    for day, driver in driver_days.list_days(target):
        item = serialize_day(day)
        item["driverName"] = driver.name
        days.append(item)
    return jsonify({"success": True, "date": target.isoformat(), "driverDays": days}), 200


@admin_driver_days_bp.route("/<day_id>/reset", methods=["POST"])
@require_auth
@require_permission(DRIVER_DAY_VIEW)
def reset_driver_day(user_id, day_id):
    day = driver_days.reset_day(day_id, now=local_now())
    return jsonify({"success": True, "driverDay": serialize_day(day)}), 200


@admin_driver_days_bp.route("/<day_id>/settle", methods=["POST"])
@require_auth
@require_permission(DRIVER_DAY_VIEW)
def settle_driver_day(user_id, day_id):
    day, count = driver_days.settle_day(day_id, now=local_now())
    return jsonify({"success": True, "driverDay": serialize_day(day), "settledBookings": count}), 200
