"""
Scheduler Service - Background scheduler lifecycle management
Handles starting, stopping, and configuring the APScheduler instance
"""
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.core.constants import BROADCAST_TICK_SECONDS, SESSION_CLEANUP_INTERVAL_SECONDS
from app.utils.timezone import get_reference_tz
from .jobs import broadcast_tick, cleanup_sessions, send_due_reminders

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def start_scheduler():
    """
    Start the background scheduler
    Reminders fire at the top of every minute in the reference timezone
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return

    scheduler = BackgroundScheduler(timezone=get_reference_tz())

    scheduler.add_job(
        func=send_due_reminders,
        trigger=CronTrigger(second=0, timezone=get_reference_tz()),
        id='habit_reminders',
        name='Send habit reminders',
        replace_existing=True,
        max_instances=1
    )

    scheduler.add_job(
        func=cleanup_sessions,
        trigger=IntervalTrigger(seconds=SESSION_CLEANUP_INTERVAL_SECONDS),
        id='session_cleanup',
        name='Cleanup expired chat sessions',
        replace_existing=True
    )

    scheduler.add_job(
        func=broadcast_tick,
        trigger=IntervalTrigger(seconds=BROADCAST_TICK_SECONDS),
        id='broadcast_tick',
        name='Deliver next broadcast batch',
        replace_existing=True,
        max_instances=1
    )

    scheduler.start()
    logger.info(f"Scheduler started - reminders every minute, broadcast tick every {BROADCAST_TICK_SECONDS} seconds")


def stop_scheduler():
    """Stop the background scheduler"""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")
