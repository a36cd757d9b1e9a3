"""
Notifications Service - Message formatting and delivery
Renders progression events, reminders and ads into chat messages
"""
import logging
from typing import Callable, Iterable, List, Optional, Tuple

from app.core.constants import REFERRAL_UNLOCK_STREAK
from app.models import (
    Ad,
    AchievementUnlocked,
    Event,
    Habit,
    PaymentConfirmed,
    ReferralProgramUnlocked,
    ReferralStageCompleted
)
from app.services.referrals.service import build_invite_link

logger = logging.getLogger(__name__)


# ============================================================================
# MESSAGE FORMATTING
# ============================================================================

def format_achievement(event: AchievementUnlocked) -> str:
    """
    Format an achievement unlock message

    Args:
        event: The unlock event

    Returns:
        Formatted message
    """
    tier = event.tier
    message = f"{tier.emoji} ACHIEVEMENT UNLOCKED: {tier.title}\n\n{tier.streak_days} days in a row!"
    if event.bonus_days > 0:
        message += f"\n🎁 +{event.bonus_days} days of Premium added."
    else:
        message += f"\n{tier.description}"
    return message


def format_referral_for_referrer(event: ReferralStageCompleted) -> str:
    if event.stage == 1 and event.is_discount:
        return (
            "🤝 A friend joined with your invite link!\n\n"
            f"You've used all bonus slots, so you get a {event.referrer_bonus}% discount "
            "on your next Premium payment instead."
        )
    if event.stage == 1:
        return f"🤝 A friend joined with your invite link!\n\n🎁 +{event.referrer_bonus} days of Premium for you."
    return (
        f"🔥 Your friend kept a {REFERRAL_UNLOCK_STREAK}-day streak!\n\n"
        f"🎁 +{event.referrer_bonus} more days of Premium for you."
    )


def format_referral_for_referred(event: ReferralStageCompleted) -> str:
    if event.stage == 1:
        return f"🎁 Invite code applied: +{event.referred_bonus} days of Premium."
    return (
        f"🔥 {REFERRAL_UNLOCK_STREAK} days in a row! Your invite bonus is complete: "
        f"+{event.referred_bonus} more days of Premium."
    )


def format_referral_unlocked(referral_code: str) -> str:
    return (
        f"🔓 REFERRAL PROGRAM UNLOCKED\n\n"
        f"Invite friends with your link:\n{build_invite_link(referral_code)}\n\n"
        "You both get Premium days when they join and again when they keep a 7-day streak."
    )


def format_payment_confirmed(event: PaymentConfirmed) -> str:
    return f"✅ Payment received. Premium extended by {event.days} days. Thank you!"


def format_reminder(habit: Habit) -> str:
    """
    Format a habit reminder

    Args:
        habit: The habit to remind about

    Returns:
        Formatted reminder message
    """
    return f"🔔 REMINDER: {habit.name}\n\nReply 'done' with the habit number once it's finished."


def format_ad(ad: Ad) -> str:
    message = f"📢 {ad.text}"
    if ad.button_text and ad.button_url:
        message += f"\n\n{ad.button_text}: {ad.button_url}"
    return message


# ============================================================================
# NOTIFICATION SENDING
# ============================================================================

class NotificationService:
    """
    Service for delivering notifications to users over the chat transport
    """

    def __init__(self, send_callback: Optional[Callable[[str, str], object]] = None, repo=None):
        """
        Initialize notification service

        Args:
            send_callback: Callback for sending messages
                          Should have signature: callback(recipient: str, message: str)
            repo: Storage repository used to resolve user ids to chat addresses
        """
        self.send_callback = send_callback
        self.repo = repo

    def send_notification(self, recipient: str, message: str) -> bool:
        """
        Send a notification message

        Args:
            recipient: Chat address
            message: The message to send

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.send_callback:
            logger.warning("No send callback configured - notification not sent")
            logger.info(f"Would have sent to {recipient}: {message}")
            return False

        try:
            self.send_callback(recipient, message)
            return True
        except Exception as e:
            logger.error(f"Failed to send notification to {recipient}: {e}")
            return False

    def render(self, event: Event) -> List[Tuple[int, str]]:
        """
        Render an event into (user_id, message) pairs

        Args:
            event: A progression or payment event

        Returns:
            Messages to deliver, one per recipient
        """
        if isinstance(event, AchievementUnlocked):
            return [(event.user_id, format_achievement(event))]
        if isinstance(event, ReferralStageCompleted):
            return [
                (event.referrer_id, format_referral_for_referrer(event)),
                (event.referred_id, format_referral_for_referred(event)),
            ]
        if isinstance(event, ReferralProgramUnlocked):
            user = self.repo.get_user_by_id(event.user_id)
            return [(event.user_id, format_referral_unlocked(user.referral_code))] if user else []
        if isinstance(event, PaymentConfirmed):
            return [(event.user_id, format_payment_confirmed(event))]

        logger.error(f"Unknown event type: {type(event).__name__}")
        return []

    def dispatch(self, events: Iterable[Event]) -> int:
        """
        Deliver every message produced by the given events

        Returns:
            Number of messages sent successfully
        """
        sent = 0
        for event in events:
            for user_id, message in self.render(event):
                user = self.repo.get_user_by_id(user_id)
                if user is None:
                    logger.warning(f"Cannot notify missing user {user_id}")
                    continue
                if self.send_notification(user.external_id, message):
                    sent += 1
        return sent

    def send_reminder(self, recipient: str, habit: Habit) -> bool:
        return self.send_notification(recipient, format_reminder(habit))
