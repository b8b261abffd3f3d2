"""
Booking price arithmetic. All money is integer cents.
"""

from decimal import Decimal, ROUND_HALF_UP


def round_half_away(value) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_percentage(value):
    return min(100.0, max(0.0, float(value)))


def discounted_price(price_cents, discount_percentage=None):
    """Service list price after its own percentage discount."""
    if not price_cents or price_cents <= 0:
        return 0
    if not discount_percentage or discount_percentage <= 0:
        return round_half_away(price_cents)
    pct = clamp_percentage(discount_percentage)
    return max(0, round_half_away(price_cents - price_cents * pct / 100))


def compute_booking_pricing(net_cents, settings, card=True):
    """Forward price breakdown for a net service price.

    VAT applies to every booking. The processor percentage fee and the
    fixed extra fee only apply to card payments.
    """
    net = max(0, int(net_cents))
    vat = round_half_away(net * settings.tax_percentage / 100)
    processor_fee = 0
    extra_fee = 0
    if card:
        processor_fee = round_half_away((net + vat) * settings.stripe_fee_percentage / 100)
        extra_fee = settings.extra_fee_cents
    return {
        "net_cents": net,
        "vat_cents": vat,
        "processor_fee_cents": processor_fee,
        "extra_fee_cents": extra_fee,
        "total_cents": net + vat + processor_fee + extra_fee,
    }


def reverse_net_base(gross_cents, settings, card):
    """Recover the pre-tax, pre-fee service value from a collected gross amount.

    Returns a float; the caller rounds once after applying commission.
    """
    tax_factor = 1 + settings.tax_percentage / 100
    if not card:
        return max(0.0, gross_cents / tax_factor)
    fee_factor = 1 + settings.stripe_fee_percentage / 100
    return max(0.0, (gross_cents - settings.extra_fee_cents) / fee_factor / tax_factor)
