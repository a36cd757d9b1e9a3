"""
Scheduler Job Definitions
Contains all scheduled job functions for reminders, sessions and broadcasts
"""
import logging

from app.core.dependencies import get_container

logger = logging.getLogger(__name__)


def send_due_reminders(container=None) -> int:
    """
    Send reminders for habits scheduled at the current minute
    Called every minute by the scheduler

    Returns:
        Number of reminders sent
    """
    container = container or get_container()
    try:
        due = container.reminders.get_due_reminders()
        if not due:
            return 0

        logger.info(f"[SCHEDULER] Found {len(due)} reminder(s) to send")

        sent = 0
        for user, habit in due:
            if container.notifications.send_reminder(user.external_id, habit):
                sent += 1
                logger.info(f"[SCHEDULER] Reminder sent for habit {habit.id} to user {user.id}")
            else:
                logger.warning(f"[SCHEDULER] Failed to send reminder for habit {habit.id}")
        return sent

    except Exception as e:
        logger.error(f"[SCHEDULER] Error in send_due_reminders: {e}", exc_info=True)
        return 0


def cleanup_sessions(container=None) -> int:
    """Drop chat sessions that have been idle past the timeout"""
    container = container or get_container()
    removed = container.sessions.cleanup_expired_sessions()
    if removed:
        logger.info(f"[SCHEDULER] Removed {removed} expired session(s)")
    return removed


def broadcast_tick(container=None) -> None:
    """
    Deliver the next batch of the running broadcast
    Pause takes effect between batches
    """
    container = container or get_container()
    try:
        broadcast = container.broadcasts.run_batch()
        if broadcast is not None:
            logger.info(
                f"[SCHEDULER] Broadcast {broadcast.id}: {broadcast.status.value}, "
                f"sent={broadcast.sent_count}, failed={broadcast.failed_count}"
            )
    except Exception as e:
        logger.error(f"[SCHEDULER] Error in broadcast_tick: {e}", exc_info=True)
