"""
WashOps API Route Blueprints
"""
from .driver_day import driver_day_bp
from .driver_tasks import driver_tasks_bp
from .admin_bookings import admin_bookings_bp
from .admin_partners import admin_partners_bp, partner_bp
from .admin_driver_days import admin_driver_days_bp
from .admin_subscriptions import admin_subscriptions_bp
from .admin_permissions import admin_permissions_bp
from .coupons import coupons_bp
from .pricing import pricing_bp

__all__ = [
    "driver_day_bp",
    "driver_tasks_bp",
    "admin_bookings_bp",
    "admin_partners_bp",
    "partner_bp",
    "admin_driver_days_bp",
    "admin_subscriptions_bp",
    "admin_permissions_bp",
    "coupons_bp",
    "pricing_bp",
]
