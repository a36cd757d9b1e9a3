"""
Referral Service - Two-stage referral reward protocol

Stage 1 runs once when a new user registers with a referral code.
Stage 2 runs on completion events once the referred user's own overall
streak reaches the stage-2 threshold.
"""
from typing import Optional
import logging

from app.core.config import settings
from app.core.constants import (
    REFERRAL_STAGE1_BONUS_DAYS,
    REFERRAL_STAGE2_BONUS_DAYS,
    REFERRAL_UNLOCK_STREAK,
    REFERRAL_STAGE2_STREAK,
    REFERRAL_BONUS_LIMIT,
    REFERRAL_DISCOUNT_PER_REFERRAL,
    MAX_REFERRAL_DISCOUNT
)
from app.core.exceptions import (
    AlreadyReferredError,
    InvalidReferralCodeError,
    ReferralNotUnlockedError,
    SelfReferralError,
    UserNotFoundError
)
from app.models import ReferralResult, ReferralStats, User

logger = logging.getLogger(__name__)


def build_invite_link(referral_code: str) -> str:
    """
    Deep link that opens a chat with the bot prefilled with the start command

    Args:
        referral_code: The inviting user's code

    Returns:
        Invite URL
    """
    phone = settings.BOT_PHONE_NUMBER.replace("whatsapp:", "").lstrip("+")
    return f"{settings.BOT_LINK_BASE}{phone}?text=start%20ref_{referral_code}"


class ReferralService:
    """Referral engine over the storage repository"""

    def __init__(self, repo, habits, subscriptions):
        self.repo = repo
        self.habits = habits
        self.subscriptions = subscriptions

    # ========================================================================
    # STAGE 1 - REGISTRATION
    # ========================================================================

    def apply_stage1(self, new_user: User, referral_code: str) -> Optional[ReferralResult]:
        """
        Reward a referrer and a freshly registered user

        The referral row is written before any grant so an interrupted call
        leaves a row that records what was decided.

        Args:
            new_user: The user who just registered
            referral_code: Code presented at registration

        Returns:
            Result descriptor, or None if a concurrent replay already
            created the referral row

        Raises:
            InvalidReferralCodeError: If no user owns the code
            SelfReferralError: If the code belongs to the new user
            ReferralNotUnlockedError: If the referrer's streak is below the unlock threshold
            AlreadyReferredError: If the new user already has a referral row
            DatabaseError: If database operation fails
        """
        referrer = self.repo.get_user_by_referral_code(referral_code)
        if referrer is None:
            raise InvalidReferralCodeError(f"Unknown referral code '{referral_code}'")

        if referrer.id == new_user.id or referrer.external_id == new_user.external_id:
            raise SelfReferralError("Cannot use your own referral code")

        streak = self.habits.overall_streak(referrer.id)
        if streak < REFERRAL_UNLOCK_STREAK:
            raise ReferralNotUnlockedError(
                f"Referrer {referrer.id} has streak {streak}, needs {REFERRAL_UNLOCK_STREAK}"
            )

        if self.repo.get_referral_by_referred(new_user.id) is not None:
            raise AlreadyReferredError(f"User {new_user.id} was already referred")

        bonus_referrals = self.repo.count_bonus_referrals(referrer.id)
        discount_mode = bonus_referrals >= REFERRAL_BONUS_LIMIT

        referral = self.repo.create_referral_if_absent(referrer.id, new_user.id, referral_code, discount_mode)
        if referral is None:
            logger.info(f"[REFERRAL] Referral for user {new_user.id} already recorded, skipping replay")
            return None

        if discount_mode:
            self.subscriptions.add_discount(referrer.id, REFERRAL_DISCOUNT_PER_REFERRAL, MAX_REFERRAL_DISCOUNT)
            referrer_bonus = REFERRAL_DISCOUNT_PER_REFERRAL
            recorded_bonus = 0
        else:
            self.subscriptions.add_days(referrer.id, REFERRAL_STAGE1_BONUS_DAYS)
            referrer_bonus = REFERRAL_STAGE1_BONUS_DAYS
            recorded_bonus = REFERRAL_STAGE1_BONUS_DAYS

        self.subscriptions.add_days(new_user.id, REFERRAL_STAGE1_BONUS_DAYS)

        self.repo.update_referral_stage1(referral.id, recorded_bonus)
        self.repo.set_referred_by(new_user.id, referrer.id)

        logger.info(
            f"[REFERRAL] Stage 1 applied: referrer={referrer.id} referred={new_user.id} "
            f"mode={'discount' if discount_mode else 'days'} ({bonus_referrals} prior bonus referrals)"
        )

        return ReferralResult(
            stage=1,
            referrer_id=referrer.id,
            referred_id=new_user.id,
            referrer_bonus=referrer_bonus,
            referred_bonus=REFERRAL_STAGE1_BONUS_DAYS,
            is_discount=discount_mode
        )

    # ========================================================================
    # STAGE 2 - SUSTAINED ENGAGEMENT
    # ========================================================================

    def apply_stage2(self, referred_id: int, streak: int) -> Optional[ReferralResult]:
        """
        Reward both parties once the referred user's streak reaches the threshold

        Discount-mode referrals never qualify. Only the caller that claims
        the stage-2 transition grants days.

        Args:
            referred_id: The referred user's ID
            streak: The referred user's current overall streak

        Returns:
            Result descriptor, or None when nothing was applied
        """
        if streak < REFERRAL_STAGE2_STREAK:
            return None

        referral = self.repo.get_pending_stage2_referral(referred_id)
        if referral is None:
            return None

        if not self.repo.claim_referral_stage2(referral.id, REFERRAL_STAGE2_BONUS_DAYS):
            return None

        self.subscriptions.add_days(referral.referrer_id, REFERRAL_STAGE2_BONUS_DAYS)
        self.subscriptions.add_days(referred_id, REFERRAL_STAGE2_BONUS_DAYS)

        logger.info(f"[REFERRAL] Stage 2 applied: referrer={referral.referrer_id} referred={referred_id}")

        return ReferralResult(
            stage=2,
            referrer_id=referral.referrer_id,
            referred_id=referred_id,
            referrer_bonus=REFERRAL_STAGE2_BONUS_DAYS,
            referred_bonus=REFERRAL_STAGE2_BONUS_DAYS
        )

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_stats(self, user_id: int) -> ReferralStats:
        """
        Referral totals, unlock progress and invite link for a user

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = self.repo.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        referrals = self.repo.list_referrals_by_referrer(user_id)
        streak = self.habits.overall_streak(user_id)
        can_invite = streak >= REFERRAL_UNLOCK_STREAK

        return ReferralStats(
            total_referrals=len(referrals),
            bonus_referrals=sum(1 for r in referrals if not r.gave_discount),
            discount_referrals=sum(1 for r in referrals if r.gave_discount),
            stage1_completed=sum(1 for r in referrals if r.stage1_applied),
            stage2_completed=sum(1 for r in referrals if r.stage2_applied),
            total_bonus_days=sum(r.stage1_bonus_days + r.stage2_bonus_days for r in referrals),
            accumulated_discount=user.discount_percent,
            can_invite=can_invite,
            current_streak=streak,
            days_until_unlock=0 if can_invite else REFERRAL_UNLOCK_STREAK - streak,
            invite_link=build_invite_link(user.referral_code) if can_invite else None
        )

    def get_referrer(self, user_id: int) -> Optional[User]:
        """The user who referred this one, if any"""
        referral = self.repo.get_referral_by_referred(user_id)
        if referral is None:
            return None
        return self.repo.get_user_by_id(referral.referrer_id)
