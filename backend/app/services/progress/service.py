"""
Progress Service - Completion event pipeline

complete -> overall streak -> achievement check -> referral stage 2,
returning the notification events the transport layer should render.
"""
from typing import List, Tuple
import logging

from app.core.constants import REFERRAL_UNLOCK_STREAK
from app.models import (
    AchievementUnlocked,
    Event,
    HabitLog,
    ReferralProgramUnlocked,
    ReferralStageCompleted
)

logger = logging.getLogger(__name__)


class ProgressService:
    """Runs the progression engines for one completion event"""

    def __init__(self, habits, achievements, referrals):
        self.habits = habits
        self.achievements = achievements
        self.referrals = referrals

    def complete_habit(self, user_id: int, habit_id: int, note: str = "") -> Tuple[HabitLog, List[Event]]:
        """
        Log a completion and apply every reward it unlocks

        Args:
            user_id: Acting user ID
            habit_id: Habit being completed
            note: Optional note

        Returns:
            Tuple of (stored log, events to notify)

        Raises:
            HabitNotFoundError: If the habit does not exist or was deleted
            AccessDeniedError: If the habit belongs to another user
            DatabaseError: If database operation fails
        """
        log = self.habits.complete_habit(user_id, habit_id, note)
        return log, self.process_progress(user_id)

    def process_progress(self, user_id: int) -> List[Event]:
        """Recompute the overall streak and run the reward checks"""
        events: List[Event] = []
        streak = self.habits.overall_streak(user_id)
        logger.info(f"[PROGRESS] User {user_id} overall streak is {streak}")

        unlocked = self.achievements.check_achievements(user_id, streak)
        if unlocked is not None:
            events.append(AchievementUnlocked(user_id=user_id, tier=unlocked.tier, bonus_days=unlocked.bonus_days))

        stage2 = self.referrals.apply_stage2(user_id, streak)
        if stage2 is not None:
            events.append(ReferralStageCompleted(**stage2.model_dump()))

        if streak == REFERRAL_UNLOCK_STREAK:
            events.append(ReferralProgramUnlocked(user_id=user_id))

        return events
