"""
Partner administration: CRUD, login provisioning and payouts.
"""

import logging
import re

from models import (
    db, Booking, Partner, PartnerPayout, User,
    ROLE_PARTNER,
)
from errors import PartnerError
from pricing import round_half_away
from validators import parse_amount, parse_flag

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

MIN_PASSWORD_LENGTH = 8


def _clean_input(data):
    name = (data.get("name") or "").strip()
    if len(name) < 2:
        raise PartnerError("Name is required")

    email = (data.get("email") or "").strip().lower() or None
    if email and not _EMAIL_RE.match(email):
        raise PartnerError("Enter a valid email")

    commission = data.get("commission_percentage")
    if commission in (None, ""):
        commission = None
    else:
        commission = parse_amount(commission, PartnerError, "Commission must be a number")
        if commission < 0 or commission > 100:
            raise PartnerError("Commission must be between 0 and 100")
    return name, email, commission


def _ensure_unique_partner_email(email, exclude_id=None):
    if not email:
        return
    query = Partner.query.filter(Partner.email == email)
    if exclude_id:
        query = query.filter(Partner.id != exclude_id)
    if query.first() is not None:
        raise PartnerError("A partner with this email already exists.", status=409)


def _validate_credentials(email, password):
    if not email:
        raise PartnerError("Email is required to create partner login credentials.")
    if not isinstance(password, str) or len(password.strip()) < MIN_PASSWORD_LENGTH:
        raise PartnerError("Partner password must be at least 8 characters long.")
    if User.query.filter_by(email=email).first() is not None:
        raise PartnerError("A user with this email already exists.", status=409)


def _provision_login(partner, name, email, password):
    user = User(name=name, email=email, role=ROLE_PARTNER, partner_id=partner.id)
    user.set_password(password)
    db.session.add(user)
    return user


def create_partner(data):
    name, email, commission = _clean_input(data)
    create_login = parse_flag(data.get("create_credentials"), "create_credentials", PartnerError)
    password = data.get("password")

    _ensure_unique_partner_email(email)
    if create_login:
        _validate_credentials(email, password)

    partner = Partner(name=name, email=email, commission_percentage=commission)
    db.session.add(partner)
    db.session.flush()
    if create_login:
        _provision_login(partner, name, email, password)
    db.session.commit()

    logger.info("Partner %s created (login=%s)", partner.id, create_login)
    return partner


def update_partner(partner_id, data):
    partner = db.session.get(Partner, partner_id)
    if partner is None:
        raise PartnerError("Partner not found.", status=404)

    name, email, commission = _clean_input(data)
    create_login = parse_flag(data.get("create_credentials"), "create_credentials", PartnerError)
    password = data.get("password")
    login = partner.login_user

    _ensure_unique_partner_email(email, exclude_id=partner.id)
    if create_login:
        if login is not None:
            raise PartnerError("This partner already has login credentials.")
        _validate_credentials(email, password)
    elif login is not None and email and email != login.email:
        if User.query.filter(User.email == email, User.id != login.id).first() is not None:
            raise PartnerError("A user with this email already exists.", status=409)

    partner.name = name
    partner.email = email
    partner.commission_percentage = commission
    if login is not None and email:
        login.email = email
    if create_login:
        _provision_login(partner, name, email, password)
    db.session.commit()

    logger.info("Partner %s updated", partner.id)
    return partner


def delete_partner(partner_id):
    partner = db.session.get(Partner, partner_id)
    if partner is None:
        raise PartnerError("Partner not found.", status=404)

    login = partner.login_user
    User.query.filter(User.partner_id == partner.id, User.role != ROLE_PARTNER) \
        .update({"partner_id": None}, synchronize_session=False)
    Booking.query.filter_by(partner_id=partner.id).update({"partner_id": None}, synchronize_session=False)
    PartnerPayout.query.filter_by(partner_id=partner.id).delete(synchronize_session=False)
    if login is not None:
        db.session.delete(login)
    db.session.delete(partner)
    db.session.commit()

    logger.info("Partner %s deleted", partner_id)


def create_partner_payout(partner_id, data, admin_id=None):
    """Record a payout. Payouts are never edited once created."""
    partner = db.session.get(Partner, partner_id)
    if partner is None:
        raise PartnerError("Partner not found.", status=404)

    amount = parse_amount(data.get("amount"), PartnerError, "Enter a valid payout amount")
    if amount is None:
        raise PartnerError("Enter a valid payout amount")
    amount_cents = round_half_away(amount * 100)
    if amount_cents <= 0:
        raise PartnerError("Payout amount must be greater than zero")

    try:
        month = int(data.get("period_month"))
        year = int(data.get("period_year"))
    except (TypeError, ValueError):
        raise PartnerError("Payout period is required")
    if month < 1 or month > 12:
        raise PartnerError("Payout month must be between 1 and 12")
    if year < 2000 or year > 2100:
        raise PartnerError("Payout year is out of range")

    payout = PartnerPayout(
        partner_id=partner.id,
        amount_cents=amount_cents,
        note=(data.get("note") or "").strip() or None,
        period_month=month,
        period_year=year,
        created_by_admin_id=admin_id,
    )
    db.session.add(payout)
    db.session.commit()

    logger.info("Payout of %d cents recorded for partner %s (%02d/%d)", amount_cents, partner.id, month, year)
    return payout
