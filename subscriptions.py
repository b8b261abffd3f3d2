"""
Monthly wash subscriptions: driver assignment and wash scheduling.
"""

import logging
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from models import (
    db, MonthlyPackage, PackageSubscription, SubscriptionDailyDriver, User,
    ROLE_DRIVER,
)
from errors import SubscriptionError

logger = logging.getLogger(__name__)

SUBSCRIPTION_PENDING = "PENDING"
SUBSCRIPTION_ACTIVE = "ACTIVE"
SUBSCRIPTION_EXPIRED = "EXPIRED"
SUBSCRIPTION_CANCELLED = "CANCELLED"

OUTSIDE_SUBSCRIPTION_WINDOW = "OUTSIDE_SUBSCRIPTION_WINDOW"


def subscription_end_date(start_date):
    """Last day covered by a one-month subscription starting on ``start_date``."""
    return start_date + relativedelta(months=1) - timedelta(days=1)


def _parse_date(value):
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise SubscriptionError("Invalid date: {}".format(value))


def _get_subscription(subscription_id):
    subscription = db.session.get(PackageSubscription, subscription_id)
    if subscription is None:
        raise SubscriptionError("Subscription not found", status=404)
    return subscription


def _get_driver(driver_id):
    driver = db.session.get(User, driver_id)
    if driver is None or driver.role != ROLE_DRIVER:
        raise SubscriptionError("Driver not found", status=404)
    return driver


def _ensure_in_window(subscription, day):
    if subscription.status != SUBSCRIPTION_ACTIVE:
        raise SubscriptionError(
            "Subscription is not active",
            requires_action=OUTSIDE_SUBSCRIPTION_WINDOW,
        )
    if day < subscription.start_date or day > subscription.end_date:
        raise SubscriptionError(
            "{} is outside the subscription period ({} to {})".format(
                day.isoformat(), subscription.start_date.isoformat(), subscription.end_date.isoformat()),
            requires_action=OUTSIDE_SUBSCRIPTION_WINDOW,
        )


def create_subscription(user_id, package_id, start_date, driver_id=None):
    package = db.session.get(MonthlyPackage, package_id)
    if package is None:
        raise SubscriptionError("Package not found", status=404)
    start_date = _parse_date(start_date)
    if driver_id:
        _get_driver(driver_id)

    subscription = PackageSubscription(
        user_id=user_id,
        package_id=package.id,
        driver_id=driver_id,
        status=SUBSCRIPTION_ACTIVE,
        start_date=start_date,
        end_date=subscription_end_date(start_date),
        preferred_wash_dates=[],
    )
    db.session.add(subscription)
    db.session.commit()
    logger.info("Subscription %s created for user %s (%s to %s)",
                subscription.id, user_id, subscription.start_date, subscription.end_date)
    return subscription


def assign_subscription_driver(subscription_id, driver_id):
    """Set or clear (``driver_id=None``) the default driver."""
    subscription = _get_subscription(subscription_id)
    if driver_id:
        _get_driver(driver_id)
    subscription.driver_id = driver_id or None
    db.session.commit()
    logger.info("Subscription %s default driver set to %s", subscription.id, subscription.driver_id)
    return subscription


def assign_subscription_day_driver(subscription_id, day, driver_id):
    """Override the driver for one date; ``driver_id=None`` removes the override."""
    subscription = _get_subscription(subscription_id)
    day = _parse_date(day)
    _ensure_in_window(subscription, day)
    if driver_id:
        _get_driver(driver_id)

    SubscriptionDailyDriver.query.filter_by(subscription_id=subscription.id, date=day).delete()
    if driver_id:
        db.session.add(SubscriptionDailyDriver(subscription_id=subscription.id, date=day, driver_id=driver_id))
    db.session.commit()
    logger.info("Subscription %s driver for %s set to %s", subscription.id, day, driver_id)
    return subscription


def _split_dates(dates):
    if isinstance(dates, str):
        dates = dates.split(",")
    return [str(d).strip() for d in (dates or []) if str(d).strip()]


def update_subscription_schedule(subscription_id, dates):
    subscription = _get_subscription(subscription_id)
    raw = _split_dates(dates)
    if not raw:
        raise SubscriptionError("Select at least one wash date")

    parsed = sorted({_parse_date(value) for value in raw})
    allowed = subscription.package.washes_per_month if subscription.package else 0
    if len(parsed) > allowed:
        raise SubscriptionError(
            "Selected {} dates but the package allows {} washes per month".format(len(parsed), allowed))
    for day in parsed:
        _ensure_in_window(subscription, day)

    subscription.preferred_wash_dates = [d.isoformat() for d in parsed]
    db.session.commit()
    logger.info("Subscription %s schedule updated (%d dates)", subscription.id, len(parsed))
    return subscription


def resolve_driver_for_date(subscription, day):
    override = subscription.daily_drivers.filter_by(date=day).first()
    if override is not None:
        return override.driver_id
    return subscription.driver_id


def expire_subscriptions(today):
    """Mark ACTIVE subscriptions whose period ended before ``today`` as EXPIRED."""
    expired = (
        PackageSubscription.query
        .filter(
            PackageSubscription.status == SUBSCRIPTION_ACTIVE,
            PackageSubscription.end_date < today,
        )
        .all()
    )
    for subscription in expired:
        subscription.status = SUBSCRIPTION_EXPIRED
    if expired:
        db.session.commit()
        logger.info("Expired %d subscriptions", len(expired))
    return len(expired)
