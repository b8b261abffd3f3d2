"""
WashOps Background Scheduler

Runs periodic tasks:
- Auto-close driver days whose duty schedule has ended (every 15 minutes)
- Expire subscriptions past their end date (hourly)

Only starts when ENABLE_SCHEDULER is on to prevent running on multiple instances.
"""

import logging

logger = logging.getLogger(__name__)


def sweep_stale_driver_days(app, now=None):
    """Apply the read-time auto-close rule to every driver with an OPEN day."""
    with app.app_context():
        from models import db, DriverDay, DAY_OPEN, local_now
        from driver_days import auto_close_stale_days, driver_lock
        from settings_provider import AdminSettingsProvider

        now = now or local_now()
        settings = AdminSettingsProvider()
        driver_ids = [
            row.driver_id for row in
            db.session.query(DriverDay.driver_id).filter(DriverDay.status == DAY_OPEN).distinct().all()
        ]

        count = 0
        for driver_id in driver_ids:
            try:
                with driver_lock(driver_id):
                    closed = auto_close_stale_days(driver_id, now, settings, up_to=now.date())
                    if closed:
                        db.session.commit()
                        count += len(closed)
            except Exception:
                db.session.rollback()
                logger.exception("Failed to auto-close days for driver %s", driver_id)

        if count > 0:
            logger.info("Scheduler: auto-closed %d driver days", count)
        return count


def expire_finished_subscriptions(app, today=None):
    with app.app_context():
        from models import local_now
        from subscriptions import expire_subscriptions

        return expire_subscriptions(today or local_now().date())


def init_scheduler(app):
    """Initialize and start the background scheduler.

    Only runs if ENABLE_SCHEDULER is set in the app config.
    """
    if not app.config.get("ENABLE_SCHEDULER"):
        logger.info("Scheduler disabled (set ENABLE_SCHEDULER=true to enable)")
        return None

    try:
        from apscheduler.schedulers.background import BackgroundScheduler

        scheduler = BackgroundScheduler(daemon=True)

        scheduler.add_job(
            sweep_stale_driver_days,
            "interval",
            minutes=15,
            args=[app],
            id="sweep_stale_driver_days",
            name="Auto-close finished driver days",
        )

        scheduler.add_job(
            expire_finished_subscriptions,
            "interval",
            hours=1,
            args=[app],
            id="expire_subscriptions",
            name="Expire finished subscriptions",
        )

        scheduler.start()
        logger.info("Background scheduler started with 2 jobs")
        return scheduler
    except Exception:
        logger.exception("Failed to start scheduler")
        return None
