"""
Configuration lookups shared by pricing, financials and the driver-day flow.

Computations take a ``SettingsProvider`` instead of querying ``AdminSetting``
directly so callers (and tests) can substitute fixed values.
"""

import math
from typing import NamedTuple, Optional

from duty_windows import build_schedule
from pricing import round_half_away

TAX_PERCENTAGE = "TAX_PERCENTAGE"
STRIPE_FEE_PERCENTAGE = "STRIPE_FEE_PERCENTAGE"
EXTRA_FEE_AMOUNT = "EXTRA_FEE_AMOUNT"
DEFAULT_PARTNER_COMMISSION = "DEFAULT_PARTNER_COMMISSION_PERCENTAGE"

DEFAULT_SETTINGS = {
    TAX_PERCENTAGE: "5",
    STRIPE_FEE_PERCENTAGE: "2.9",
    EXTRA_FEE_AMOUNT: "1",
    DEFAULT_PARTNER_COMMISSION: "100",
}


class PricingSettings(NamedTuple):
    tax_percentage: float = 0.0
    stripe_fee_percentage: float = 0.0
    extra_fee_cents: int = 0
    default_partner_commission: Optional[float] = None


class SettingsProvider:
    """Read-only view over platform configuration."""

    def get(self, key, default=None):
        raise NotImplementedError

    def get_duty_schedule(self, driver_id):
        """Return the driver's duty schedule as a list of shifts (empty = unrestricted)."""
        raise NotImplementedError


class StaticSettingsProvider(SettingsProvider):
    def __init__(self, values=None, duty_schedules=None, default_duty_schedule=None):
        self.values = dict(values or {})
        self.duty_schedules = dict(duty_schedules or {})
        self.default_duty_schedule = default_duty_schedule or []

    def get(self, key, default=None):
        return self.values.get(key, default)

    def get_duty_schedule(self, driver_id):
        return self.duty_schedules.get(driver_id, self.default_duty_schedule)


class AdminSettingsProvider(SettingsProvider):
    """Backed by the ``admin_settings`` and ``duty_settings`` tables."""

    def get(self, key, default=None):
        from models import db, AdminSetting

        row = db.session.get(AdminSetting, key)
        if row is None or row.value is None:
            return default
        return row.value

    def get_duty_schedule(self, driver_id):
        from models import DutySettings

        row = DutySettings.query.filter_by(driver_id=driver_id).first()
        if row is None:
            row = DutySettings.query.filter(DutySettings.driver_id.is_(None)).first()
        if row is None:
            return []
        return build_schedule(row.start_time, row.end_time, row.shifts)


def parse_percentage_setting(raw) -> Optional[float]:
    """Parse a stored percentage; ``None`` if missing, non-finite or outside 0..100."""
    if raw is None:
        return None
    try:
        value = float(str(raw).strip().replace(",", "."))
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0 or value > 100:
        return None
    return value


def parse_amount_setting_cents(raw) -> int:
    if raw is None:
        return 0
    try:
        value = float(str(raw).strip().replace(",", "."))
    except ValueError:
        return 0
    if not math.isfinite(value) or value < 0:
        return 0
    return round_half_away(value * 100)


def load_pricing_settings(provider: SettingsProvider) -> PricingSettings:
    tax = parse_percentage_setting(provider.get(TAX_PERCENTAGE))
    stripe = parse_percentage_setting(provider.get(STRIPE_FEE_PERCENTAGE))
    return PricingSettings(
        tax_percentage=tax or 0.0,
        stripe_fee_percentage=stripe or 0.0,
        extra_fee_cents=parse_amount_setting_cents(provider.get(EXTRA_FEE_AMOUNT)),
        default_partner_commission=parse_percentage_setting(provider.get(DEFAULT_PARTNER_COMMISSION)),
    )
