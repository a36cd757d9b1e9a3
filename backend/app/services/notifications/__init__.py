"""
Notifications module
Message formatting and delivery for progression events and reminders
"""
from .service import (
    NotificationService,
    format_achievement,
    format_referral_for_referrer,
    format_referral_for_referred,
    format_referral_unlocked,
    format_payment_confirmed,
    format_reminder,
    format_ad
)

__all__ = [
    'NotificationService',
    'format_achievement',
    'format_referral_for_referrer',
    'format_referral_for_referred',
    'format_referral_unlocked',
    'format_payment_confirmed',
    'format_reminder',
    'format_ad'
]
