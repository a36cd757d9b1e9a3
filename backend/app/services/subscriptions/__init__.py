"""
Subscriptions module - Premium expiry ledger
"""
from .service import SubscriptionService

__all__ = ['SubscriptionService']
