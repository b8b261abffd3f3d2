"""
Driver shift ("driver day") lifecycle.

One DriverDay per (driver, calendar date), moving NONE -> OPEN -> CLOSED.
A driver may hold at most one OPEN day across all dates. The database
enforces uniqueness per date; the cross-date rule is enforced here, with
per-driver operations serialised through an in-process lock.

Shifts whose duty schedule ended before "now" are auto-closed whenever the
driver's day is read or a new day is started.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, time, timedelta
from typing import List, NamedTuple, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import (
    db, Booking, DriverDay, User,
    DAY_OPEN, DAY_CLOSED, TASK_COMPLETED, TASK_IN_PROGRESS,
    local_now,
)
from duty_windows import (
    DutyWindow, compute_duty_windows, windows_covering,
    is_within_duty_window, last_window_end, next_window_start,
)
from errors import DriverDayError
from settings_provider import AdminSettingsProvider

logger = logging.getLogger(__name__)

AUTO_CLOSE_REASON = "Auto-ended after duty schedule"

END_PREVIOUS_DAY = "END_PREVIOUS_DAY"
DAY_ALREADY_OPEN = "DAY_ALREADY_OPEN"
DAY_ALREADY_CLOSED = "DAY_ALREADY_CLOSED"
WAIT_FOR_DUTY_WINDOW = "WAIT_FOR_DUTY_WINDOW"
NO_OPEN_DAY = "NO_OPEN_DAY"

# Look this far ahead for the next duty window when today has none left
_NEXT_WINDOW_LOOKAHEAD_DAYS = 7


class UnsettledCollection(NamedTuple):
    id: str
    amount_cents: int
    completed_at: Optional[datetime]
    vehicle_plate: Optional[str]
    service_name: Optional[str]

    def to_dict(self):
        return {
            "id": self.id,
            "amountCents": self.amount_cents,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "vehiclePlate": self.vehicle_plate,
            "serviceName": self.service_name,
        }


class DutyStatus(NamedTuple):
    windows: List[DutyWindow]
    on_duty: bool
    next_window_start: Optional[datetime]


class DayOverview(NamedTuple):
    target_date: object
    day: Optional[DriverDay]
    duty: DutyStatus
    auto_closed: List[DriverDay]
    previous_open_day: Optional[DriverDay]
    requires_action: Optional[str]
    tasks_completed: int
    tasks_in_progress: int
    unsettled_collections: List[UnsettledCollection]


# ---------------------------------------------------------------------------
# Per-driver serialisation
# ---------------------------------------------------------------------------
_locks_guard = threading.Lock()
_driver_locks = {}


@contextmanager
def driver_lock(driver_id):
    with _locks_guard:
        lock = _driver_locks.setdefault(driver_id, threading.Lock())
    with lock:
        yield


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def serialize_day(day):
    if day is None:
        return None
    return {
        "id": day.id,
        "driverId": day.driver_id,
        "date": day.day_date.isoformat(),
        "status": day.status,
        "startedAt": day.started_at.isoformat() if day.started_at else None,
        "endedAt": day.ended_at.isoformat() if day.ended_at else None,
        "cashCollectedCents": day.cash_collected_cents,
        "cashSettledCents": day.cash_settled_cents,
        "startNotes": day.start_notes,
        "endNotes": day.end_notes,
        "autoClosed": day.auto_closed,
    }


def shift_cash_cents(driver_id, started_at):
    """Cash the driver collected on bookings completed at or after ``started_at``."""
    total = (
        db.session.query(func.coalesce(func.sum(Booking.cash_amount_cents), 0))
        .filter(
            Booking.driver_id == driver_id,
            Booking.cash_collected == True,  # noqa: E712
            Booking.task_completed_at >= started_at,
        )
        .scalar()
    )
    return int(total or 0)


def duty_status(schedule, now):
    """Duty windows around ``now`` and whether the driver may work right now.

    An empty schedule is unrestricted. A schedule with no window today
    (weekday shifts) is treated as off duty, not unrestricted.
    """
    windows = windows_covering(schedule, now.date())
    if not schedule:
        return DutyStatus(windows, True, None)

    on_duty = bool(windows) and is_within_duty_window(now, windows)
    upcoming = None
    if not on_duty:
        upcoming = next_window_start(now, windows)
        offset = 1
        while upcoming is None and offset <= _NEXT_WINDOW_LOOKAHEAD_DAYS:
            later = compute_duty_windows(schedule, now.date() + timedelta(days=offset))
            upcoming = next_window_start(now, later)
            offset += 1
    return DutyStatus(windows, on_duty, upcoming)


def _stale_end(day, now, settings):
    """The schedule end that makes ``day`` stale, or None if it is not stale."""
    windows = compute_duty_windows(settings.get_duty_schedule(day.driver_id), day.day_date)
    end = last_window_end(windows)
    if end is not None and end < now:
        return end
    return None


def close_day(day, ended_at, notes=None, auto=False):
    day.cash_collected_cents = shift_cash_cents(day.driver_id, day.started_at)
    day.status = DAY_CLOSED
    day.ended_at = ended_at
    day.auto_closed = auto
    if notes:
        day.end_notes = notes


def auto_close_stale_days(driver_id, now, settings, up_to):
    """Auto-close the driver's OPEN days dated ``up_to`` or earlier whose schedule has ended.

    Changes are left in the session; the caller commits.
    """
    open_days = (
        DriverDay.query
        .filter(
            DriverDay.driver_id == driver_id,
            DriverDay.status == DAY_OPEN,
            DriverDay.day_date <= up_to,
        )
        .order_by(DriverDay.day_date.asc())
        .all()
    )
    closed = []
    for day in open_days:
        end = _stale_end(day, now, settings)
        if end is None:
            continue
        close_day(day, max(end, day.started_at), day.end_notes or AUTO_CLOSE_REASON, auto=True)
        closed.append(day)
        logger.info("Auto-closed driver day %s for driver %s (%s)", day.id, driver_id, day.day_date)
    return closed


def _previous_open_day(driver_id, before):
    return (
        DriverDay.query
        .filter(
            DriverDay.driver_id == driver_id,
            DriverDay.status == DAY_OPEN,
            DriverDay.day_date < before,
        )
        .order_by(DriverDay.day_date.desc())
        .first()
    )


def _day_bounds(target_date):
    start = datetime.combine(target_date, time.min)
    return start, start + timedelta(days=1)


def unsettled_collections(day, now):
    """Cash collected during ``day``'s shift that has not been settled yet."""
    if day is None:
        return []
    until = day.ended_at or now
    bookings = (
        Booking.query
        .filter(
            Booking.driver_id == day.driver_id,
            Booking.cash_collected == True,  # noqa: E712
            Booking.cash_settled == False,  # noqa: E712
            Booking.task_completed_at >= day.started_at,
            Booking.task_completed_at <= until,
        )
        .order_by(Booking.task_completed_at.desc())
        .all()
    )
    return [
        UnsettledCollection(
            id=b.id,
            amount_cents=b.cash_amount_cents or 0,
            completed_at=b.task_completed_at,
            vehicle_plate=b.vehicle_plate,
            service_name=b.service.name if b.service else None,
        )
        for b in bookings
    ]


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------
def get_day_overview(driver_id, target_date=None, now=None, settings=None):
    """Read the driver's day for ``target_date``, auto-closing stale shifts first."""
    now = now or local_now()
    settings = settings or AdminSettingsProvider()
    target_date = target_date or now.date()

    with driver_lock(driver_id):
        closed = auto_close_stale_days(driver_id, now, settings, up_to=target_date)
        if closed:
            db.session.commit()

    day = DriverDay.query.filter_by(driver_id=driver_id, day_date=target_date).first()

    previous = None
    requires_action = None
    if day is None:
        previous = _previous_open_day(driver_id, target_date)
        if previous is not None:
            requires_action = END_PREVIOUS_DAY

    start, end = _day_bounds(target_date)
    tasks_completed = Booking.query.filter(
        Booking.driver_id == driver_id,
        Booking.task_status == TASK_COMPLETED,
        Booking.task_completed_at >= start,
        Booking.task_completed_at < end,
    ).count()
    tasks_in_progress = Booking.query.filter(
        Booking.driver_id == driver_id,
        Booking.task_status == TASK_IN_PROGRESS,
        Booking.task_started_at >= start,
        Booking.task_started_at < end,
    ).count()

    schedule = settings.get_duty_schedule(driver_id)
    if target_date == now.date():
        duty = duty_status(schedule, now)
    else:
        windows = compute_duty_windows(schedule, target_date)
        duty = DutyStatus(windows, False, None)

    return DayOverview(
        target_date=target_date,
        day=day,
        duty=duty,
        auto_closed=closed,
        previous_open_day=previous,
        requires_action=requires_action,
        tasks_completed=tasks_completed,
        tasks_in_progress=tasks_in_progress,
        unsettled_collections=unsettled_collections(day, now),
    )


def get_status(driver_id, now=None):
    """Raw status of today's record, no auto-close."""
    now = now or local_now()
    day = DriverDay.query.filter_by(driver_id=driver_id, day_date=now.date()).first()
    return day, day is not None and day.status == DAY_OPEN


# ---------------------------------------------------------------------------
# Start / End
# ---------------------------------------------------------------------------
def start_day(driver_id, notes=None, now=None, settings=None):
    now = now or local_now()
    settings = settings or AdminSettingsProvider()
    today = now.date()

    with driver_lock(driver_id):
        if auto_close_stale_days(driver_id, now, settings, up_to=today):
            db.session.commit()

        previous = _previous_open_day(driver_id, today)
        if previous is not None:
            logger.warning("Driver %s tried to start a day with %s still open", driver_id, previous.day_date)
            raise DriverDayError(
                "You still have an open shift from {}. End it before starting a new day.".format(
                    previous.day_date.isoformat()),
                requires_action=END_PREVIOUS_DAY,
                previousDay=serialize_day(previous),
            )

        existing = DriverDay.query.filter_by(driver_id=driver_id, day_date=today).first()
        if existing is not None and existing.status == DAY_OPEN:
            raise DriverDayError(
                "Shift already started for today",
                requires_action=DAY_ALREADY_OPEN,
                driverDay=serialize_day(existing),
            )
        if existing is not None:
            raise DriverDayError(
                "Today's shift has already been ended. Contact administrator to reset the day.",
                requires_action=DAY_ALREADY_CLOSED,
                previousDay=serialize_day(existing),
                canStartNewDay=False,
                nextAvailableDate=(today + timedelta(days=1)).isoformat(),
            )

        duty = duty_status(settings.get_duty_schedule(driver_id), now)
        if not duty.on_duty:
            logger.warning("Driver %s tried to start outside duty hours", driver_id)
            raise DriverDayError(
                "You can only start your shift during your duty hours.",
                requires_action=WAIT_FOR_DUTY_WINDOW,
                nextDutyWindowStart=duty.next_window_start.isoformat() if duty.next_window_start else None,
                dutyWindows=[w.to_dict() for w in duty.windows],
            )

        day = DriverDay(
            driver_id=driver_id,
            day_date=today,
            status=DAY_OPEN,
            started_at=now,
            cash_collected_cents=0,
            cash_settled_cents=0,
            start_notes=notes or None,
        )
        db.session.add(day)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DriverDayError("Shift already started for today", requires_action=DAY_ALREADY_OPEN)

    logger.info("Driver %s started day %s", driver_id, day.id)
    return day


def end_day(driver_id, notes=None, now=None):
    """Close the driver's most recent OPEN day, whatever its date."""
    now = now or local_now()

    with driver_lock(driver_id):
        day = (
            DriverDay.query
            .filter_by(driver_id=driver_id, status=DAY_OPEN)
            .order_by(DriverDay.day_date.desc(), DriverDay.started_at.desc())
            .first()
        )
        if day is None:
            raise DriverDayError("No active shift found", requires_action=NO_OPEN_DAY)

        close_day(day, now, notes)
        db.session.commit()

    logger.info("Driver %s ended day %s with %d cents collected", driver_id, day.id, day.cash_collected_cents)
    return day


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------
def list_days(day_date):
    return (
        db.session.query(DriverDay, User)
        .join(User, User.id == DriverDay.driver_id)
        .filter(DriverDay.day_date == day_date)
        .order_by(User.name.asc())
        .all()
    )


def reset_day(day_id, now=None):
    """Reopen today's CLOSED day so the driver can continue working."""
    now = now or local_now()
    day = db.session.get(DriverDay, day_id)
    if day is None:
        raise DriverDayError("Driver day not found", status=404)
    if day.status != DAY_CLOSED:
        raise DriverDayError("Only a closed day can be reset")
    if day.day_date != now.date():
        raise DriverDayError("Only today's day can be reset")

    with driver_lock(day.driver_id):
        other = DriverDay.query.filter(
            DriverDay.driver_id == day.driver_id,
            DriverDay.status == DAY_OPEN,
            DriverDay.id != day.id,
        ).first()
        if other is not None:
            raise DriverDayError(
                "Driver already has an open shift",
                requires_action=END_PREVIOUS_DAY,
                previousDay=serialize_day(other),
            )
        day.status = DAY_OPEN
        day.ended_at = None
        day.auto_closed = False
        db.session.commit()

    logger.info("Driver day %s reset by admin", day.id)
    return day


def settle_day(day_id, now=None):
    """Mark the cash collected during a shift as handed over."""
    now = now or local_now()
    day = db.session.get(DriverDay, day_id)
    if day is None:
        raise DriverDayError("Driver day not found", status=404)

    pending = unsettled_collections(day, now)
    settled_cents = 0
    for item in pending:
        booking = db.session.get(Booking, item.id)
        booking.cash_settled = True
        settled_cents += item.amount_cents
    day.cash_settled_cents = (day.cash_settled_cents or 0) + settled_cents
    db.session.commit()

    logger.info("Settled %d cents across %d bookings for day %s", settled_cents, len(pending), day.id)
    return day, len(pending)
