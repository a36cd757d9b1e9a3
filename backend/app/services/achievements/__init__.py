"""
Achievements module - Streak tier unlocks
"""
from .service import AchievementService

__all__ = ['AchievementService']
