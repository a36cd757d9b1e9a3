"""
Pydantic models for habits, logs and statistics
"""
from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class Frequency(str, Enum):
    """Informational frequency tag; streak math is always day-granular"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def _validate_reminder_time(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    try:
        datetime.strptime(v, "%H:%M")
        return v
    except ValueError:
        raise ValueError(f"Invalid time format '{v}'. Use HH:MM (24-hour format)")


class Habit(BaseModel):
    """A habit owned by one user"""
    id: int
    user_id: int
    name: str
    description: str = ""
    frequency: Frequency = Frequency.DAILY
    reminder_time: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    @field_validator("reminder_time", mode="before")
    @classmethod
    def trim_seconds(cls, v):
        """Postgres TIME columns come back as HH:MM:SS"""
        if isinstance(v, str) and len(v) == 8:
            return v[:5]
        return v


class HabitLog(BaseModel):
    """Completion record, at most one per (habit, day)"""
    id: Optional[int] = None
    habit_id: int
    user_id: int
    date: date
    completed: bool
    note: str = ""


class HabitStats(BaseModel):
    """Derived statistics for one habit"""
    habit_id: int
    habit_name: str
    total_days: int = 0
    completed_days: int = 0
    current_streak: int = 0
    best_streak: int = 0
    completion_rate: float = 0.0
    last_completed_at: Optional[date] = None


class CreateHabitRequest(BaseModel):
    """Request model for creating a habit"""
    user_id: int = Field(..., description="Owner user id")
    name: str = Field(..., min_length=1, max_length=200, description="Habit name")
    description: str = Field("", max_length=1000, description="Optional description")
    frequency: Frequency = Field(Frequency.DAILY, description="daily, weekly or monthly")
    reminder_time: Optional[str] = Field(None, description="Reminder time in HH:MM format (24-hour)")

    @field_validator("reminder_time")
    @classmethod
    def validate_time_format(cls, v: Optional[str]) -> Optional[str]:
        """Validate time format is HH:MM if provided"""
        return _validate_reminder_time(v)


class HabitActionRequest(BaseModel):
    """Request model for acting on an existing habit"""
    user_id: int = Field(..., description="Acting user id")


class SetReminderRequest(BaseModel):
    """Request model for setting or clearing a habit reminder"""
    user_id: int = Field(..., description="Acting user id")
    reminder_time: Optional[str] = Field(None, description="HH:MM (24-hour) or null to clear")

    @field_validator("reminder_time")
    @classmethod
    def validate_time_format(cls, v: Optional[str]) -> Optional[str]:
        """Validate time format is HH:MM if provided"""
        return _validate_reminder_time(v)
