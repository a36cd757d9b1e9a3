"""
Habit Routes - Endpoints for habit management
"""
from fastapi import APIRouter, Depends, HTTPException

from app.core.dependencies import get_container
from app.core.exceptions import (
    AccessDeniedError,
    DatabaseError,
    HabitLimitReachedError,
    InvalidHabitDataError,
    NotFoundError
)
from app.models.habit import CreateHabitRequest, HabitActionRequest, SetReminderRequest

router = APIRouter(prefix="/habits", tags=["habits"])


@router.post("", status_code=201)
def create_habit(request: CreateHabitRequest, container=Depends(get_container)):
    """Create a new habit, subject to the tier's active-habit cap"""
    try:
        return container.habits.create_habit(
            request.user_id,
            request.name,
            request.description,
            request.frequency,
            request.reminder_time
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except HabitLimitReachedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidHabitDataError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/user/{user_id}")
def list_habits(user_id: int, container=Depends(get_container)):
    """Get the user's active habits with today's completion status"""
    try:
        return [
            {"habit": habit, "completed_today": done}
            for habit, done in container.habits.today_status(user_id)
        ]
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/user/{user_id}/stats")
def get_user_stats(user_id: int, container=Depends(get_container)):
    """Per-habit statistics plus the overall streak"""
    try:
        return {
            "overall_streak": container.habits.overall_streak(user_id),
            "habits": container.habits.user_stats(user_id)
        }
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=f"Stats unavailable: {e}")


@router.post("/{habit_id}/complete")
def complete_habit(habit_id: int, request: HabitActionRequest, container=Depends(get_container)):
    """Mark a habit as done today and apply any rewards it unlocks"""
    try:
        log, events = container.progress.complete_habit(request.user_id, habit_id)
        container.notifications.dispatch(events)
        return {"log": log, "events": events}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{habit_id}/uncomplete")
def uncomplete_habit(habit_id: int, request: HabitActionRequest, container=Depends(get_container)):
    """Unmark a habit for today"""
    try:
        return {"log": container.habits.uncomplete_habit(request.user_id, habit_id)}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{habit_id}/reminder")
def set_reminder(habit_id: int, request: SetReminderRequest, container=Depends(get_container)):
    """Set or clear a habit's daily reminder time"""
    try:
        return container.habits.set_reminder(request.user_id, habit_id, request.reminder_time)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except InvalidHabitDataError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{habit_id}")
def delete_habit(habit_id: int, user_id: int, container=Depends(get_container)):
    """Soft-delete a habit"""
    try:
        habit = container.habits.delete_habit(user_id, habit_id)
        return {"status": "success", "habit_id": habit.id}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))
