"""
WashOps API server: application factory.
"""

import html
import logging
import os

import click
from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import config
from extensions import limiter
from errors import ServiceError
from models import db
from auth_routes import auth_bp
from routes import (
    driver_day_bp, driver_tasks_bp, admin_bookings_bp, admin_partners_bp, partner_bp,
    admin_driver_days_bp, admin_subscriptions_bp, admin_permissions_bp, coupons_bp, pricing_bp,
)

logger = logging.getLogger(__name__)

# Bodies on these paths are passed through untouched (passwords).
_SANITIZE_SKIP_PREFIXES = ("/api/auth/",)


def _escape_strings(data):
    """Recursively HTML-escape every string in a decoded JSON body."""
    if isinstance(data, dict):
        return {key: _escape_strings(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_escape_strings(item) for item in data]
    if isinstance(data, str):
        return html.escape(data, quote=True)
    return data


def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.1,
    )


def create_app(config_name=None):
    """Flask application factory"""
    if config_name is None:
        config_name = os.getenv("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config["default"]))
    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))

    _init_sentry(app)

    # -----------------------------------------------------------------------
    # Extensions
    # -----------------------------------------------------------------------
    origins = app.config["CORS_ORIGINS"]
    if origins != "*":
        origins = [o.strip() for o in origins.split(",") if o.strip()]
    CORS(app, resources={r"/api/*": {"origins": origins}})
    db.init_app(app)
    limiter.init_app(app)

    # -----------------------------------------------------------------------
    # Blueprints
    # -----------------------------------------------------------------------
    for blueprint in (
        auth_bp, driver_day_bp, driver_tasks_bp, admin_bookings_bp, admin_partners_bp, partner_bp,
        admin_driver_days_bp, admin_subscriptions_bp, admin_permissions_bp, coupons_bp, pricing_bp,
    ):
        app.register_blueprint(blueprint)

    # -----------------------------------------------------------------------
    # Error handlers
    # -----------------------------------------------------------------------
    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        db.session.rollback()
        return error.to_response()

    @app.errorhandler(429)
    def ratelimit_handler(e):
        retry_after = e.get_headers().get("Retry-After") if hasattr(e, "get_headers") else None
        return jsonify({
            "error": "Too many requests. Please try again later.",
            "retry_after": int(retry_after) if retry_after else 60,
        }), 429

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return jsonify({"error": error.description}), error.code
        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500

    # -----------------------------------------------------------------------
    # Input sanitization / security headers
    # -----------------------------------------------------------------------
    @app.before_request
    def sanitize_json_input():
        if request.path.startswith(_SANITIZE_SKIP_PREFIXES) or not request.is_json:
            return
        raw = request.get_json(silent=True)
        if raw is not None:
            sanitized = _escape_strings(raw)
            # get_json() reads from this cache for both silent and strict calls
            request._cached_json = (sanitized, sanitized)

    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'"
        if not app.debug and not app.testing:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------
    @app.route("/api/health", methods=["GET"])
    @limiter.exempt
    def health_check():
        return jsonify({"status": "healthy", "service": "WashOps API"}), 200

    # -----------------------------------------------------------------------
    # CLI:  flask seed-settings
    # -----------------------------------------------------------------------
    @app.cli.command("seed-settings")
    @click.option("--overwrite", is_flag=True, help="Replace values that already exist.")
    def seed_settings(overwrite):
        """Write the default pricing and commission settings."""
        from models import AdminSetting
        from settings_provider import DEFAULT_SETTINGS

        for key, value in DEFAULT_SETTINGS.items():
            row = db.session.get(AdminSetting, key)
            if row is None:
                db.session.add(AdminSetting(key=key, value=value))
                click.echo("  -> {} = {}".format(key, value))
            elif overwrite:
                row.value = value
                click.echo("  -> {} = {} (overwritten)".format(key, value))
        db.session.commit()
        click.echo("Settings seeded.")

    with app.app_context():
        db.create_all()

    from scheduler import init_scheduler
    app.extensions["washops_scheduler"] = init_scheduler(app)

    return app
