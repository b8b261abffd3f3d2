"""
Pricing API routes for WashOps.
Price breakdown for a service, online (card) or cash.
"""

from flask import Blueprint, request, jsonify

from models import db, Service
from pricing import compute_booking_pricing, discounted_price
from settings_provider import AdminSettingsProvider, load_pricing_settings

pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


@pricing_bp.route("/quote", methods=["GET"])
def get_quote():
    """Query params: service_id, payment ("card" default, or "cash")."""
    service = db.session.get(Service, request.args.get("service_id") or "")
    if service is None or not service.active:
        return jsonify({"error": "Service not found"}), 404

    payment = (request.args.get("payment") or "card").lower()
    if payment not in ("card", "cash"):
        return jsonify({"error": "payment must be card or cash"}), 400

    settings = load_pricing_settings(AdminSettingsProvider())
    net = discounted_price(service.price_cents, service.discount_percentage)
    breakdown = compute_booking_pricing(net, settings, card=payment == "card")
    return jsonify({
        "success": True,
        "service": service.to_dict(),
        "payment": payment,
        "pricing": breakdown,
    }), 200
