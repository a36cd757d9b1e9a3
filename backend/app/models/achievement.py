"""
Pydantic models for achievement tiers
"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel
from typing import List, Optional


class AchievementType(str, Enum):
    STREAK_7 = "streak_7"
    STREAK_14 = "streak_14"
    STREAK_30 = "streak_30"
    STREAK_60 = "streak_60"
    STREAK_100 = "streak_100"


class AchievementTier(BaseModel):
    """A named streak threshold with a one-time reward"""
    type: AchievementType
    streak_days: int
    bonus_days: int
    title: str
    description: str
    emoji: str


# Ordered by ascending threshold
ACHIEVEMENT_TIERS: List[AchievementTier] = [
    AchievementTier(type=AchievementType.STREAK_7, streak_days=7, bonus_days=0,
                    title="First week", description="Referral program unlocked!", emoji="🔓"),
    AchievementTier(type=AchievementType.STREAK_14, streak_days=14, bonus_days=2,
                    title="Two weeks", description="+2 days of Premium", emoji="🔥"),
    AchievementTier(type=AchievementType.STREAK_30, streak_days=30, bonus_days=3,
                    title="Month of strength", description="+3 days of Premium", emoji="💪"),
    AchievementTier(type=AchievementType.STREAK_60, streak_days=60, bonus_days=5,
                    title="Two months", description="+5 days of Premium", emoji="⭐️"),
    AchievementTier(type=AchievementType.STREAK_100, streak_days=100, bonus_days=7,
                    title="Legend", description="+7 days of Premium", emoji="🏆"),
]


class Achievement(BaseModel):
    """An unlocked tier, one per (user, type)"""
    id: Optional[int] = None
    user_id: int
    type: AchievementType
    streak_days: int
    bonus_days: int
    unlocked_at: Optional[datetime] = None


class AchievementResult(BaseModel):
    """A tier unlocked by the current event"""
    tier: AchievementTier
    bonus_days: int


class NextAchievement(BaseModel):
    tier: AchievementTier
    days_left: int
