"""
Partner administration routes for WashOps.
CRUD, payouts and the financial snapshot, plus the partner's own view.
"""

from flask import Blueprint, request, jsonify

from models import db, Partner, User
from auth_routes import require_auth, require_role
from permissions import require_permission, PARTNER_MANAGE, PARTNER_FINANCIALS_VIEW
from financials import load_partner_financial_snapshot
import partners

admin_partners_bp = Blueprint("admin_partners", __name__, url_prefix="/api/admin/partners")
partner_bp = Blueprint("partner", __name__, url_prefix="/api/partner")


@admin_partners_bp.route("", methods=["GET"])
@require_auth
@require_permission(PARTNER_MANAGE)
def list_partners(user_id):
    rows = Partner.query.order_by(Partner.name.asc()).all()
    return jsonify({"success": True, "partners": [p.to_dict() for p in rows]}), 200


@admin_partners_bp.route("", methods=["POST"])
@require_auth
@require_permission(PARTNER_MANAGE)
def create_partner(user_id):
    """Create a partner.

    Body JSON:
        name, email (optional), commission_percentage (optional),
        create_credentials (bool), password (when create_credentials)
    """
    partner = partners.create_partner(request.get_json(silent=True) or {})
    return jsonify({"success": True, "partner": partner.to_dict()}), 201


@admin_partners_bp.route("/<partner_id>", methods=["PUT"])
@require_auth
@require_permission(PARTNER_MANAGE)
def update_partner(user_id, partner_id):
    partner = partners.update_partner(partner_id, request.get_json(silent=True) or {})
    return jsonify({"success": True, "partner": partner.to_dict()}), 200


@admin_partners_bp.route("/<partner_id>", methods=["DELETE"])
@require_auth
@require_permission(PARTNER_MANAGE)
def delete_partner(user_id, partner_id):
    partners.delete_partner(partner_id)
    return jsonify({"success": True, "deleted": partner_id}), 200


@admin_partners_bp.route("/<partner_id>/payouts", methods=["POST"])
@require_auth
@require_permission(PARTNER_MANAGE)
def create_payout(user_id, partner_id):
    """Body JSON: amount (currency units), period_month, period_year, note (optional)."""
    payout = partners.create_partner_payout(partner_id, request.get_json(silent=True) or {}, admin_id=user_id)
    return jsonify({"success": True, "payout": payout.to_dict()}), 201


@admin_partners_bp.route("/<partner_id>/financials", methods=["GET"])
@require_auth
@require_permission(PARTNER_FINANCIALS_VIEW)
def partner_financials(user_id, partner_id):
    snapshot = load_partner_financial_snapshot(partner_id)
    return jsonify({"success": True, "financials": snapshot.to_dict()}), 200


# ---------------------------------------------------------------------------
# GET /api/partner/financials  -- logged-in partner's own snapshot
# ---------------------------------------------------------------------------
@partner_bp.route("/financials", methods=["GET"])
@require_role("partner")
def own_financials(user_id):
    user = db.session.get(User, user_id)
    if not user.partner_id:
        return jsonify({"error": "Partner account is not linked"}), 404
    snapshot = load_partner_financial_snapshot(user.partner_id)
    return jsonify({"success": True, "financials": snapshot.to_dict()}), 200
