"""
Driver day API routes for WashOps.
Lets an authenticated driver read, start and end their daily shift.
"""

import logging
from datetime import date

from flask import Blueprint, request, jsonify

from models import local_now
from auth_routes import require_driver
import driver_days
from driver_days import serialize_day

driver_day_bp = Blueprint("driver_day", __name__, url_prefix="/api/driver/day")

logger = logging.getLogger(__name__)


def _overview_response(overview):
    body = {
        "driverDay": None,
        "date": overview.target_date.isoformat(),
        "dutyWindows": [w.to_dict() for w in overview.duty.windows],
        "onDuty": overview.duty.on_duty,
        "nextDutyWindowStart": (
            overview.duty.next_window_start.isoformat() if overview.duty.next_window_start else None
        ),
        "autoClosedDays": [serialize_day(d) for d in overview.auto_closed],
        "unsettledCollections": [c.to_dict() for c in overview.unsettled_collections],
    }
    if overview.day is not None:
        day = serialize_day(overview.day)
        day["tasksCompleted"] = overview.tasks_completed
        day["tasksInProgress"] = overview.tasks_in_progress
        body["driverDay"] = day
    else:
        body["message"] = "No shift started for this date"
    if overview.requires_action:
        body["requiresAction"] = overview.requires_action
        body["previousDay"] = serialize_day(overview.previous_open_day)
    return body


# ---------------------------------------------------------------------------
# GET /api/driver/day
# ---------------------------------------------------------------------------
@driver_day_bp.route("", methods=["GET"])
@require_driver
def get_driver_day(user_id):
    """Day overview for the driver.

    Query params:
        test=true    connectivity check
        status=true  raw status of today's record, no auto-close
        date         YYYY-MM-DD, defaults to today
    """
    now = local_now()

    if request.args.get("test") == "true":
        return jsonify({
            "success": True,
            "message": "API connectivity test successful",
            "driverId": user_id,
            "timestamp": now.isoformat(),
        }), 200

    if request.args.get("status") == "true":
        day, has_active_day = driver_days.get_status(user_id, now=now)
        return jsonify({
            "hasActiveDay": has_active_day,
            "driverDay": serialize_day(day),
            "currentDate": now.date().isoformat(),
            "driverId": user_id,
        }), 200

    target = now.date()
    date_param = request.args.get("date")
    if date_param:
        try:
            target = date.fromisoformat(date_param)
        except ValueError:
            return jsonify({"error": "Invalid date, expected YYYY-MM-DD"}), 400

    overview = driver_days.get_day_overview(user_id, target_date=target, now=now)
    return jsonify(_overview_response(overview)), 200


# ---------------------------------------------------------------------------
# POST /api/driver/day
# ---------------------------------------------------------------------------
@driver_day_bp.route("", methods=["POST"])
@require_driver
def manage_driver_day(user_id):
    """Start or end the driver's shift.

    Body JSON:
        action: "start" | "end"
        notes: str (optional)
    """
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    notes = (data.get("notes") or "").strip() or None

    if action == "start":
        day = driver_days.start_day(user_id, notes=notes, now=local_now())
        body = serialize_day(day)
        body.update({"tasksCompleted": 0, "tasksInProgress": 0})
        return jsonify({"driverDay": body, "message": "Shift started successfully"}), 200

    if action == "end":
        day = driver_days.end_day(user_id, notes=notes, now=local_now())
        return jsonify({"driverDay": serialize_day(day), "message": "Shift ended successfully"}), 200

    return jsonify({"error": "Invalid action. Use 'start' or 'end'"}), 400
