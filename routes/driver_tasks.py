"""
Driver task API routes for WashOps.
Start, cash submission and completion of bookings assigned to the driver.
"""

from flask import Blueprint, request, jsonify

from models import local_now
from auth_routes import require_driver
from errors import TaskError
from validators import parse_amount, parse_flag
import driver_tasks

driver_tasks_bp = Blueprint("driver_tasks", __name__, url_prefix="/api/driver/tasks")


@driver_tasks_bp.route("", methods=["GET"])
@require_driver
def list_tasks(user_id):
    include_completed = request.args.get("include_completed", "").lower() == "true"
    bookings = driver_tasks.list_driver_tasks(user_id, include_completed=include_completed)
    return jsonify({"success": True, "tasks": [b.to_dict() for b in bookings]}), 200


@driver_tasks_bp.route("/<booking_id>/start", methods=["POST"])
@require_driver
def start_task(user_id, booking_id):
    booking = driver_tasks.start_task(booking_id, user_id, now=local_now())
    return jsonify({"success": True, "booking": booking.to_dict()}), 200


@driver_tasks_bp.route("/<booking_id>/cash", methods=["POST"])
@require_driver
def submit_cash(user_id, booking_id):
    """Record cash collection.

    Body JSON:
        cash_collected: bool
        cash_amount: number in currency units (optional)
        driver_notes: str (optional)
    """
    data = request.get_json(silent=True) or {}
    amount = parse_amount(data.get("cash_amount"), TaskError, "Invalid cash amount")

    booking = driver_tasks.submit_cash_details(
        booking_id,
        user_id,
        cash_collected=parse_flag(data.get("cash_collected"), "cash_collected", TaskError),
        cash_amount=amount,
        driver_notes=(data.get("driver_notes") or "").strip() or None,
    )
    return jsonify({"success": True, "booking": booking.to_dict()}), 200


@driver_tasks_bp.route("/<booking_id>/complete", methods=["POST"])
@require_driver
def complete_task(user_id, booking_id):
    booking = driver_tasks.complete_task(booking_id, user_id, now=local_now())
    return jsonify({"success": True, "booking": booking.to_dict()}), 200
