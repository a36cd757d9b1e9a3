"""
Subscription Service - Premium expiry ledger and referral discounts

Premium status is always derived from subscription_end against the clock;
no boolean flag is stored.
"""
from datetime import datetime
from typing import Callable
import logging

from app.core.constants import MAX_GRANT_ATTEMPTS
from app.core.exceptions import UserNotFoundError, DatabaseError
from app.models.user import User, extend_subscription_end, add_capped_discount
from app.utils.timezone import get_reference_now

logger = logging.getLogger(__name__)


class SubscriptionService:
    """
    Grants subscription days and discounts with compare-and-set writes

    Concurrent grants for the same user each re-read the current value and
    retry when another writer got in first, so they stack instead of
    overwriting each other.
    """

    def __init__(self, repo, clock: Callable[[], datetime] = get_reference_now):
        self.repo = repo
        self.clock = clock

    def _get_user(self, user_id: int) -> User:
        user = self.repo.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def add_days(self, user_id: int, days: int) -> datetime:
        """
        Extend a user's subscription by a number of days

        Args:
            user_id: The user ID
            days: Days to add, must be >= 0

        Returns:
            The new subscription end

        Raises:
            ValueError: If days is negative
            UserNotFoundError: If the user does not exist
            DatabaseError: If the write keeps losing races or storage fails
        """
        if days < 0:
            raise ValueError(f"Cannot grant a negative number of days: {days}")

        for _ in range(MAX_GRANT_ATTEMPTS):
            user = self._get_user(user_id)
            new_end = extend_subscription_end(user.subscription_end, days, self.clock())
            if self.repo.compare_and_set_subscription_end(user_id, user.subscription_end, new_end):
                logger.info(f"[SUBSCRIPTION] Granted {days} day(s) to user {user_id}, active until {new_end.isoformat()}")
                return new_end
            logger.info(f"[SUBSCRIPTION] Concurrent update on user {user_id}, retrying grant")

        raise DatabaseError(f"Could not extend subscription for user {user_id} after {MAX_GRANT_ATTEMPTS} attempts")

    def set_expiry(self, user_id: int, end: datetime) -> None:
        """Absolute override of the subscription end (manual/admin path)"""
        self._get_user(user_id)
        self.repo.set_subscription_end(user_id, end)
        logger.info(f"[SUBSCRIPTION] Subscription end for user {user_id} set to {end.isoformat()}")

    def is_active(self, user_id: int) -> bool:
        return self._get_user(user_id).has_active_subscription(self.clock())

    def add_discount(self, user_id: int, increment: int, cap: int) -> int:
        """
        Raise a user's accumulated discount, never past the cap

        Args:
            user_id: The user ID
            increment: Percent to add
            cap: Maximum discount percent

        Returns:
            The new discount percent

        Raises:
            UserNotFoundError: If the user does not exist
            DatabaseError: If the write keeps losing races or storage fails
        """
        for _ in range(MAX_GRANT_ATTEMPTS):
            user = self._get_user(user_id)
            new_percent = add_capped_discount(user.discount_percent, increment, cap)
            if new_percent == user.discount_percent:
                return new_percent
            if self.repo.compare_and_set_discount(user_id, user.discount_percent, new_percent):
                logger.info(f"[SUBSCRIPTION] Discount for user {user_id} raised to {new_percent}%")
                return new_percent

        raise DatabaseError(f"Could not update discount for user {user_id} after {MAX_GRANT_ATTEMPTS} attempts")
