"""
Permission routes for WashOps.
"""

from flask import Blueprint, request, jsonify

from models import db, User
from auth_routes import require_auth, require_admin
import permissions

admin_permissions_bp = Blueprint("admin_permissions", __name__, url_prefix="/api/admin/permissions")


@admin_permissions_bp.route("/me", methods=["GET"])
@require_auth
def my_permissions(user_id):
    user = db.session.get(User, user_id)
    return jsonify({
        "success": True,
        "role": user.role,
        "permissions": sorted(permissions.get_user_permissions(user)),
    }), 200


@admin_permissions_bp.route("/users/<target_id>", methods=["PUT"])
@require_admin
def set_override(user_id, target_id):
    """Body JSON: permission, granted (true / false / null to clear)."""
    data = request.get_json(silent=True) or {}
    effective = permissions.set_permission_override(target_id, data.get("permission"), data.get("granted"))
    return jsonify({"success": True, "user_id": target_id, "permissions": sorted(effective)}), 200
