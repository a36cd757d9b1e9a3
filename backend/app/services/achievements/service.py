"""
Achievement Service - One-time streak tier unlocks
"""
from typing import List, Optional
import logging

from app.models import (
    ACHIEVEMENT_TIERS,
    Achievement,
    AchievementResult,
    NextAchievement
)

logger = logging.getLogger(__name__)


class AchievementService:
    """
    Evaluates the fixed tier table against a user's overall streak

    The (user, tier) unique key makes every unlock idempotent: only the
    caller whose insert actually created the row grants the bonus days.
    """

    def __init__(self, repo, subscriptions):
        self.repo = repo
        self.subscriptions = subscriptions

    def list_achievements(self, user_id: int) -> List[Achievement]:
        return self.repo.list_achievements(user_id)

    def check_achievements(self, user_id: int, streak: int) -> Optional[AchievementResult]:
        """
        Unlock the lowest reached tier the user does not have yet

        At most one tier is unlocked per call; the next event picks up the
        next tier.

        Args:
            user_id: The user ID
            streak: The user's current overall streak

        Returns:
            The newly unlocked tier, or None

        Raises:
            DatabaseError: If database operation fails
        """
        unlocked = {achievement.type for achievement in self.repo.list_achievements(user_id)}

        for tier in ACHIEVEMENT_TIERS:
            if streak < tier.streak_days:
                break
            if tier.type in unlocked:
                continue

            if not self.repo.create_achievement_if_absent(user_id, tier):
                # A concurrent event recorded this tier first
                continue

            logger.info(f"[ACHIEVEMENT] User {user_id} unlocked {tier.type.value} at streak {streak}")
            if tier.bonus_days > 0:
                self.subscriptions.add_days(user_id, tier.bonus_days)
            return AchievementResult(tier=tier, bonus_days=tier.bonus_days)

        return None

    def next_achievement(self, user_id: int, streak: int) -> Optional[NextAchievement]:
        """First tier above the current streak that is still locked"""
        unlocked = {achievement.type for achievement in self.repo.list_achievements(user_id)}

        for tier in ACHIEVEMENT_TIERS:
            if tier.streak_days > streak and tier.type not in unlocked:
                return NextAchievement(tier=tier, days_left=tier.streak_days - streak)
        return None
