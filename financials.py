"""
Partner earnings reconciliation.

A partner earns a commission on every settled booking it owns, directly or
through one of its drivers. Settled gross amounts are converted back to a
net service value (tax, and for card payments the processor fees, are
removed) before the commission is applied. Recorded payouts are netted
off to give the outstanding balance.
"""

import logging
from collections import defaultdict
from typing import List, NamedTuple

from sqlalchemy import or_

from models import (
    db, Booking, Partner, PartnerPayout, User,
    ROLE_DRIVER, PAYMENT_PAID, TASK_COMPLETED,
)
from errors import PartnerError
from pricing import clamp_percentage, reverse_net_base, round_half_away
from settings_provider import AdminSettingsProvider, load_pricing_settings

logger = logging.getLogger(__name__)

FALLBACK_COMMISSION = 100.0


class FinancialTotals(NamedTuple):
    total_net_cents: int = 0
    cash_pending_gross_cents: int = 0
    cash_settled_gross_cents: int = 0
    invoices_paid_gross_cents: int = 0
    invoices_pending_gross_cents: int = 0

    def to_dict(self):
        return {
            "total_net_cents": self.total_net_cents,
            "cash_pending_gross_cents": self.cash_pending_gross_cents,
            "cash_settled_gross_cents": self.cash_settled_gross_cents,
            "invoices_paid_gross_cents": self.invoices_paid_gross_cents,
            "invoices_pending_gross_cents": self.invoices_pending_gross_cents,
        }


class MonthlyPayouts(NamedTuple):
    year: int
    month: int
    total_cents: int
    count: int

    def to_dict(self):
        return {"year": self.year, "month": self.month, "total_cents": self.total_cents, "count": self.count}


class PartnerFinancialSnapshot(NamedTuple):
    partner: Partner
    commission_percentage: float
    totals: FinancialTotals
    payouts: List[PartnerPayout]
    total_payouts_cents: int
    outstanding_cents: int
    monthly_payouts: List[MonthlyPayouts]
    active_jobs: int
    completed_jobs: int

    def to_dict(self):
        return {
            "partner": self.partner.to_dict(),
            "commission_percentage": self.commission_percentage,
            "totals": self.totals.to_dict(),
            "payouts": [p.to_dict() for p in self.payouts],
            "total_payouts_cents": self.total_payouts_cents,
            "outstanding_cents": self.outstanding_cents,
            "monthly_payouts": [m.to_dict() for m in self.monthly_payouts],
            "active_jobs": self.active_jobs,
            "completed_jobs": self.completed_jobs,
        }


def resolve_commission_percentage(partner_commission, default_commission):
    """Partner override, else platform default, else 100.

    An override of exactly 0 counts as unset and falls back to the default.
    """
    if partner_commission is not None and partner_commission > 0:
        return clamp_percentage(partner_commission)
    if default_commission is not None:
        return clamp_percentage(default_commission)
    return FALLBACK_COMMISSION


def collect_partner_bookings(partner_id):
    """Bookings owned by the partner or any of its drivers, each listed once."""
    driver_ids = [
        row.id for row in
        User.query.with_entities(User.id).filter_by(partner_id=partner_id, role=ROLE_DRIVER).all()
    ]
    conditions = [Booking.partner_id == partner_id]
    if driver_ids:
        conditions.append(Booking.driver_id.in_(driver_ids))
    bookings = Booking.query.filter(or_(*conditions)).all()

    seen = {}
    for booking in bookings:
        seen.setdefault(booking.id, booking)
    return list(seen.values())


def _service_price(booking):
    return booking.service.price_cents if booking.service else 0


def _payment_amount(booking):
    amount = booking.payment.amount_cents
    return amount if amount is not None else _service_price(booking)


def booking_gross_value(booking):
    payment = booking.payment
    if payment is not None and payment.status == PAYMENT_PAID:
        return _payment_amount(booking)
    if booking.cash_collected:
        return booking.cash_amount_cents if booking.cash_amount_cents is not None else _service_price(booking)
    return 0


def is_booking_settled(booking):
    if booking.payment is not None:
        return booking.payment.status == PAYMENT_PAID
    if booking.cash_collected:
        return bool(booking.cash_settled)
    return False


def summarise_financials(bookings, commission_percentage, pricing):
    """Headline totals for a partner's bookings."""
    total_net = 0
    cash_pending = cash_settled = 0
    invoices_paid = invoices_pending = 0

    for booking in bookings:
        gross = booking_gross_value(booking)
        settled = is_booking_settled(booking)
        card = booking.payment is not None

        if settled and gross > 0:
            net_base = reverse_net_base(gross, pricing, card=card)
            total_net += round_half_away(net_base * commission_percentage / 100)

        # A booking can sit in both buckets: an open invoice paid in cash
        if gross > 0 and booking.cash_collected:
            if booking.cash_settled:
                cash_settled += gross
            else:
                cash_pending += gross

        if gross > 0 and card:
            if booking.payment.status == PAYMENT_PAID:
                invoices_paid += gross
            else:
                invoices_pending += gross

    return FinancialTotals(
        total_net_cents=total_net,
        cash_pending_gross_cents=cash_pending,
        cash_settled_gross_cents=cash_settled,
        invoices_paid_gross_cents=invoices_paid,
        invoices_pending_gross_cents=invoices_pending,
    )


def count_active_jobs(bookings):
    return sum(1 for b in bookings if b.task_status != TASK_COMPLETED)


def count_completed_jobs(bookings):
    return sum(1 for b in bookings if b.task_status == TASK_COMPLETED)


def group_payouts_by_month(payouts):
    groups = defaultdict(lambda: [0, 0])
    for payout in payouts:
        bucket = groups[(payout.period_year, payout.period_month)]
        bucket[0] += payout.amount_cents
        bucket[1] += 1
    return [
        MonthlyPayouts(year, month, total, count)
        for (year, month), (total, count) in sorted(groups.items(), reverse=True)
    ]


def load_partner_financial_snapshot(partner_id, settings=None):
    settings = settings or AdminSettingsProvider()
    partner = db.session.get(Partner, partner_id)
    if partner is None:
        raise PartnerError("Partner not found", status=404)

    pricing = load_pricing_settings(settings)
    commission = resolve_commission_percentage(partner.commission_percentage, pricing.default_partner_commission)

    bookings = collect_partner_bookings(partner.id)
    totals = summarise_financials(bookings, commission, pricing)

    payouts = (
        PartnerPayout.query
        .filter_by(partner_id=partner.id)
        .order_by(PartnerPayout.created_at.desc())
        .all()
    )
    total_payouts = sum(p.amount_cents for p in payouts)

    return PartnerFinancialSnapshot(
        partner=partner,
        commission_percentage=commission,
        totals=totals,
        payouts=payouts,
        total_payouts_cents=total_payouts,
        outstanding_cents=max(0, totals.total_net_cents - total_payouts),
        monthly_payouts=group_payouts_by_month(payouts),
        active_jobs=count_active_jobs(bookings),
        completed_jobs=count_completed_jobs(bookings),
    )
