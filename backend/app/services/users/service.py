"""
Users Service - Registration and profile summaries
"""
from datetime import datetime
from typing import Callable, Optional
import logging

from app.core.exceptions import ReferralError, UserNotFoundError
from app.models import RegistrationResult, User, UserProfile
from app.models.user import generate_referral_code
from app.utils.timezone import get_reference_now, get_reference_tz

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, repo, habits, referrals, clock: Callable[[], datetime] = get_reference_now):
        self.repo = repo
        self.habits = habits
        self.referrals = referrals
        self.clock = clock

    def get_user(self, user_id: int) -> User:
        user = self.repo.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def get_by_external_id(self, external_id: str) -> Optional[User]:
        return self.repo.get_user_by_external_id(external_id)

    def register_user(self, external_id: str, username: Optional[str] = None,
                      first_name: Optional[str] = None,
                      referral_code: Optional[str] = None) -> RegistrationResult:
        """
        Create or refresh a user, running referral stage 1 for new users

        A rejected referral never blocks registration; the reason is
        returned so the caller can tell the user.

        Args:
            external_id: Chat address
            username: Chat username
            first_name: Display name
            referral_code: Code from an invite link, if any

        Returns:
            RegistrationResult with the user, whether it was created, and
            the referral outcome

        Raises:
            DatabaseError: If database operation fails
        """
        user, created = self.repo.upsert_user(
            external_id,
            username,
            first_name,
            get_reference_tz().zone,
            generate_referral_code()
        )
        if created:
            logger.info(f"[USERS] Registered new user {user.id} ({external_id})")

        result = RegistrationResult(user=user, is_new=created)
        if not created or not referral_code:
            return result

        try:
            result.referral = self.referrals.apply_stage1(user, referral_code)
        except ReferralError as e:
            logger.info(f"[REFERRAL] Stage 1 rejected for user {user.id}: {type(e).__name__}: {e}")
            result.referral_error = type(e).__name__
            return result

        if result.referral is not None:
            result.user = self.get_user(user.id)
        return result

    def get_profile(self, user_id: int) -> UserProfile:
        """
        Profile summary with premium status and overall streak

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = self.get_user(user_id)
        return UserProfile(
            user_id=user.id,
            display_name=user.display_name,
            is_premium=user.has_active_subscription(self.clock()),
            subscription_end=user.subscription_end,
            discount_percent=user.discount_percent,
            overall_streak=self.habits.overall_streak(user.id),
            active_habits=self.repo.count_active_habits(user.id),
            habit_limit=self.habits.habit_limit(user)
        )
