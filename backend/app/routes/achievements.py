"""
Achievement Routes - Unlocked tiers and progress to the next one
"""
from fastapi import APIRouter, Depends, HTTPException

from app.core.dependencies import get_container
from app.core.exceptions import DatabaseError

router = APIRouter(prefix="/achievements", tags=["achievements"])


@router.get("/{user_id}")
def get_achievements(user_id: int, container=Depends(get_container)):
    try:
        streak = container.habits.overall_streak(user_id)
        return {
            "overall_streak": streak,
            "unlocked": container.achievements.list_achievements(user_id),
            "next": container.achievements.next_achievement(user_id, streak)
        }
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))
