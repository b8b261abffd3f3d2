"""
Subscription administration routes for WashOps.
Driver assignment and wash scheduling (requires ``subscription.manage``).
"""

from flask import Blueprint, request, jsonify

from auth_routes import require_auth
from permissions import require_permission, SUBSCRIPTION_MANAGE
import subscriptions

admin_subscriptions_bp = Blueprint(
    "admin_subscriptions", __name__, url_prefix="/api/admin/subscriptions")


@admin_subscriptions_bp.route("/<subscription_id>/driver", methods=["PUT"])
@require_auth
@require_permission(SUBSCRIPTION_MANAGE)
def assign_driver(user_id, subscription_id):
    """Body JSON: driver_id (null clears the default driver)."""
    data = request.get_json(silent=True) or {}
    subscription = subscriptions.assign_subscription_driver(subscription_id, data.get("driver_id"))
    return jsonify({"success": True, "subscription": subscription.to_dict()}), 200


@admin_subscriptions_bp.route("/<subscription_id>/days/<day>/driver", methods=["PUT"])
@require_auth
@require_permission(SUBSCRIPTION_MANAGE)
def assign_day_driver(user_id, subscription_id, day):
    data = request.get_json(silent=True) or {}
    subscription = subscriptions.assign_subscription_day_driver(subscription_id, day, data.get("driver_id"))
    return jsonify({"success": True, "subscription": subscription.to_dict()}), 200


@admin_subscriptions_bp.route("/<subscription_id>/schedule", methods=["PUT"])
@require_auth
@require_permission(SUBSCRIPTION_MANAGE)
def update_schedule(user_id, subscription_id):
    """Body JSON: dates, a list or comma separated string of YYYY-MM-DD."""
    data = request.get_json(silent=True) or {}
    subscription = subscriptions.update_subscription_schedule(subscription_id, data.get("dates"))
    return jsonify({"success": True, "subscription": subscription.to_dict()}), 200
