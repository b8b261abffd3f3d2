"""
WashOps SQLAlchemy Models
All database entities for the car-wash operations dashboard.
"""

import uuid
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import (
    Column, String, Float, Boolean, Integer, Text, Date, DateTime, ForeignKey, JSON,
    CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


def generate_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


def local_now():
    """Naive wall-clock time in the business timezone.

    Driver days and duty windows are expressed in local time, so every
    timestamp those flows compare against comes from here.
    """
    tz_name = "UTC"
    if has_app_context():
        tz_name = current_app.config.get("TIMEZONE") or "UTC"
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


# Roles
ROLE_CUSTOMER = "customer"
ROLE_DRIVER = "driver"
ROLE_PARTNER = "partner"
ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"

# Booking.status
BOOKING_PENDING = "PENDING"
BOOKING_ASSIGNED = "ASSIGNED"
BOOKING_PAID = "PAID"
BOOKING_CANCELLED = "CANCELLED"
BOOKING_STATUSES = (BOOKING_ASSIGNED, BOOKING_PENDING, BOOKING_PAID, BOOKING_CANCELLED)

# Booking.task_status
TASK_ASSIGNED = "ASSIGNED"
TASK_IN_PROGRESS = "IN_PROGRESS"
TASK_COMPLETED = "COMPLETED"

# Payment
PAYMENT_REQUIRES_PAYMENT = "REQUIRES_PAYMENT"
PAYMENT_PENDING = "PENDING"
PAYMENT_PAID = "PAID"
PAYMENT_FAILED = "FAILED"
PAYMENT_REFUNDED = "REFUNDED"

# DriverDay.status
DAY_OPEN = "OPEN"
DAY_CLOSED = "CLOSED"


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(db.Model):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=True, index=True)
    phone = Column(String(20), nullable=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_CUSTOMER)
    status = Column(String(20), nullable=False, default="active")
    # Drivers belong to a partner fleet; partner login users point at their partner
    partner_id = Column(String(36), ForeignKey("partners.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    partner = relationship("Partner", back_populates="members")
    notifications = relationship("Notification", back_populates="user", lazy="dynamic",
                                 cascade="all, delete-orphan")

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "phone": self.phone,
            "name": self.name,
            "role": self.role,
            "status": self.status,
            "partner_id": self.partner_id,
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# Partner
# ---------------------------------------------------------------------------
class Partner(db.Model):
    __tablename__ = "partners"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=True, index=True)
    # Null means "use the platform default"
    commission_percentage = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    members = relationship("User", back_populates="partner", lazy="dynamic")
    payouts = relationship("PartnerPayout", back_populates="partner", lazy="dynamic",
                           cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        CheckConstraint(
            "commission_percentage IS NULL OR (commission_percentage >= 0 AND commission_percentage <= 100)",
            name="ck_partner_commission_range",
        ),
    )

    @property
    def drivers(self):
        return self.members.filter(User.role == ROLE_DRIVER).all()

    @property
    def login_user(self):
        return self.members.filter(User.role == ROLE_PARTNER).first()

    def to_dict(self):
        login = self.login_user
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "commission_percentage": self.commission_percentage,
            "login_user_id": login.id if login else None,
            "driver_count": len(self.drivers),
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class Service(db.Model):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    price_cents = Column(Integer, nullable=False, default=0)
    duration_min = Column(Integer, nullable=False, default=60)
    discount_percentage = Column(Float, nullable=True)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "duration_min": self.duration_min,
            "discount_percentage": self.discount_percentage,
            "active": self.active,
        }


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------
class Booking(db.Model):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True, index=True)
    driver_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    partner_id = Column(String(36), ForeignKey("partners.id", ondelete="SET NULL"), nullable=True, index=True)

    status = Column(String(20), nullable=False, default=BOOKING_PENDING)
    task_status = Column(String(20), nullable=True)
    start_at = Column(DateTime, nullable=True)
    end_at = Column(DateTime, nullable=True)
    vehicle_plate = Column(String(32), nullable=True)

    cash_collected = Column(Boolean, nullable=False, default=False)
    cash_amount_cents = Column(Integer, nullable=True)
    cash_settled = Column(Boolean, nullable=False, default=False)
    driver_notes = Column(Text, nullable=True)

    task_started_at = Column(DateTime, nullable=True)
    task_completed_at = Column(DateTime, nullable=True)

    # Commission rate captured when the booking was tied to a partner
    partner_commission_percentage = Column(Float, nullable=True)

    coupon_id = Column(String(36), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    coupon_code = Column(String(64), nullable=True)
    coupon_discount_cents = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    customer = relationship("User", foreign_keys=[user_id])
    driver = relationship("User", foreign_keys=[driver_id])
    partner = relationship("Partner")
    service = relationship("Service")
    payment = relationship("Payment", back_populates="booking", uselist=False,
                           cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index("ix_bookings_driver_completed", "driver_id", "task_completed_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "service_id": self.service_id,
            "service_name": self.service.name if self.service else None,
            "driver_id": self.driver_id,
            "partner_id": self.partner_id,
            "status": self.status,
            "task_status": self.task_status,
            "start_at": _iso(self.start_at),
            "end_at": _iso(self.end_at),
            "vehicle_plate": self.vehicle_plate,
            "cash_collected": self.cash_collected,
            "cash_amount_cents": self.cash_amount_cents,
            "cash_settled": self.cash_settled,
            "driver_notes": self.driver_notes,
            "task_started_at": _iso(self.task_started_at),
            "task_completed_at": _iso(self.task_completed_at),
            "partner_commission_percentage": self.partner_commission_percentage,
            "coupon_code": self.coupon_code,
            "coupon_discount_cents": self.coupon_discount_cents,
            "payment": self.payment.to_dict() if self.payment else None,
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# Payment (online payments only; cash lives on the booking itself)
# ---------------------------------------------------------------------------
class Payment(db.Model):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    provider = Column(String(20), nullable=False, default="STRIPE")
    status = Column(String(20), nullable=False, default=PAYMENT_REQUIRES_PAYMENT)
    amount_cents = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    booking = relationship("Booking", back_populates="payment")

    def to_dict(self):
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "provider": self.provider,
            "status": self.status,
            "amount_cents": self.amount_cents,
        }


# ---------------------------------------------------------------------------
# DriverDay
# ---------------------------------------------------------------------------
class DriverDay(db.Model):
    __tablename__ = "driver_days"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    driver_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_date = Column(Date, nullable=False)
    status = Column(String(10), nullable=False, default=DAY_OPEN)
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    cash_collected_cents = Column(Integer, nullable=False, default=0)
    cash_settled_cents = Column(Integer, nullable=False, default=0)
    start_notes = Column(Text, nullable=True)
    end_notes = Column(Text, nullable=True)
    auto_closed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    driver = relationship("User")

    __table_args__ = (
        UniqueConstraint("driver_id", "day_date", name="uq_driver_day_date"),
        Index("ix_driver_days_driver_status", "driver_id", "status"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "driver_id": self.driver_id,
            "date": self.day_date.isoformat() if self.day_date else None,
            "status": self.status,
            "started_at": _iso(self.started_at),
            "ended_at": _iso(self.ended_at),
            "cash_collected_cents": self.cash_collected_cents,
            "cash_settled_cents": self.cash_settled_cents,
            "start_notes": self.start_notes,
            "end_notes": self.end_notes,
            "auto_closed": self.auto_closed,
        }


# ---------------------------------------------------------------------------
# DutySettings (driver_id NULL is the platform default)
# ---------------------------------------------------------------------------
class DutySettings(db.Model):
    __tablename__ = "duty_settings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    driver_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, unique=True)
    start_time = Column(String(5), nullable=True)   # "HH:MM"
    end_time = Column(String(5), nullable=True)
    # [{"name": "Morning", "startTime": "08:00", "endTime": "12:00", "days": ["MON"]}]
    shifts = Column(JSON, nullable=True, default=list)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "driver_id": self.driver_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "shifts": self.shifts or [],
        }


# ---------------------------------------------------------------------------
# PartnerPayout
# ---------------------------------------------------------------------------
class PartnerPayout(db.Model):
    __tablename__ = "partner_payouts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    partner_id = Column(String(36), ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)
    period_month = Column(Integer, nullable=False)
    period_year = Column(Integer, nullable=False)
    created_by_admin_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    partner = relationship("Partner", back_populates="payouts")

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_payout_amount_positive"),
        CheckConstraint("period_month >= 1 AND period_month <= 12", name="ck_payout_month_range"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "amount_cents": self.amount_cents,
            "note": self.note,
            "period_month": self.period_month,
            "period_year": self.period_year,
            "created_by_admin_id": self.created_by_admin_id,
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# AdminSetting (key/value)
# ---------------------------------------------------------------------------
class AdminSetting(db.Model):
    __tablename__ = "admin_settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {"key": self.key, "value": self.value}


# ---------------------------------------------------------------------------
# Coupon
# ---------------------------------------------------------------------------
class Coupon(db.Model):
    __tablename__ = "coupons"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    code = Column(String(64), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False, default="PERCENTAGE")  # PERCENTAGE | FIXED
    # Percentage points for PERCENTAGE, cents for FIXED
    discount_value = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    valid_from = Column(DateTime, nullable=True)
    valid_until = Column(DateTime, nullable=True)
    applies_to_all_services = Column(Boolean, nullable=False, default=True)
    applicable_service_ids = Column(JSON, nullable=True, default=list)
    min_booking_amount_cents = Column(Integer, nullable=True)
    max_redemptions = Column(Integer, nullable=True)
    max_redemptions_per_user = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    redemptions = relationship("CouponRedemption", back_populates="coupon", lazy="dynamic",
                               cascade="all, delete-orphan", passive_deletes=True)

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "active": self.active,
            "valid_from": _iso(self.valid_from),
            "valid_until": _iso(self.valid_until),
            "applies_to_all_services": self.applies_to_all_services,
            "applicable_service_ids": self.applicable_service_ids or [],
            "min_booking_amount_cents": self.min_booking_amount_cents,
            "max_redemptions": self.max_redemptions,
            "max_redemptions_per_user": self.max_redemptions_per_user,
            "redemption_count": self.redemptions.count(),
        }


class CouponRedemption(db.Model):
    __tablename__ = "coupon_redemptions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    coupon_id = Column(String(36), ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True, index=True)
    amount_cents = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    coupon = relationship("Coupon", back_populates="redemptions")


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------
class MonthlyPackage(db.Model):
    __tablename__ = "monthly_packages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    washes_per_month = Column(Integer, nullable=False)
    price_cents = Column(Integer, nullable=False, default=0)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "washes_per_month": self.washes_per_month,
            "price_cents": self.price_cents,
            "service_id": self.service_id,
        }


class PackageSubscription(db.Model):
    __tablename__ = "package_subscriptions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(String(36), ForeignKey("monthly_packages.id"), nullable=False)
    driver_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")  # PENDING | ACTIVE | EXPIRED | CANCELLED
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    preferred_wash_dates = Column(JSON, nullable=True, default=list)
    created_at = Column(DateTime, default=utcnow)

    package = relationship("MonthlyPackage")
    daily_drivers = relationship("SubscriptionDailyDriver", back_populates="subscription", lazy="dynamic",
                                 cascade="all, delete-orphan", passive_deletes=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "package_id": self.package_id,
            "driver_id": self.driver_id,
            "status": self.status,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "preferred_wash_dates": self.preferred_wash_dates or [],
            "daily_drivers": {
                d.date.isoformat(): d.driver_id for d in self.daily_drivers
            },
        }


class SubscriptionDailyDriver(db.Model):
    __tablename__ = "subscription_daily_drivers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    subscription_id = Column(String(36), ForeignKey("package_subscriptions.id", ondelete="CASCADE"),
                             nullable=False)
    date = Column(Date, nullable=False)
    driver_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    subscription = relationship("PackageSubscription", back_populates="daily_drivers")

    __table_args__ = (
        UniqueConstraint("subscription_id", "date", name="uq_subscription_daily_driver"),
    )


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------
class RolePermission(db.Model):
    __tablename__ = "role_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role = Column(String(20), nullable=False)
    permission_key = Column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("role", "permission_key", name="uq_role_permission"),
    )


class PermissionOverride(db.Model):
    __tablename__ = "permission_overrides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_key = Column(String(100), nullable=False)
    granted = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("user_id", "permission_key", name="uq_user_permission_override"),
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class Notification(db.Model):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="notifications")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "is_read": self.is_read,
            "created_at": _iso(self.created_at),
        }


class AdminNotification(db.Model):
    __tablename__ = "admin_notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    category = Column(String(20), nullable=False, default="ORDER")  # ORDER | PAYMENT | SYSTEM
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(36), nullable=True)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "is_read": self.is_read,
            "created_at": _iso(self.created_at),
        }
