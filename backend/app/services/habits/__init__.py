"""
Habits module - Core habit management functionality
"""
from . import streaks
from .service import HabitService
from .reminders import ReminderService

__all__ = [
    'streaks',
    'HabitService',
    'ReminderService'
]
