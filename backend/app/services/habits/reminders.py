"""
Habit reminder selection
Finds premium users' habits whose reminder time is now and which are not
completed yet today
"""
from datetime import datetime
from typing import Callable, Dict, List, Tuple
import logging

from app.models import Habit, User
from app.utils.timezone import get_reference_now, to_reference_date
from . import streaks

logger = logging.getLogger(__name__)


class ReminderService:
    def __init__(self, repo, clock: Callable[[], datetime] = get_reference_now):
        self.repo = repo
        self.clock = clock

    def get_due_reminders(self) -> List[Tuple[User, Habit]]:
        """
        Get (user, habit) pairs that need a reminder right now

        Logic:
        - Habit reminder_time equals the current HH:MM in the reference zone
        - Owner has an active subscription
        - Habit has no completed log for today
        """
        now = self.clock()
        today = to_reference_date(now)
        habits = self.repo.list_habits_with_reminder(now.strftime("%H:%M"))
        if not habits:
            return []

        by_user: Dict[int, List[Habit]] = {}
        for habit in habits:
            by_user.setdefault(habit.user_id, []).append(habit)

        due: List[Tuple[User, Habit]] = []
        for user_id, user_habits in by_user.items():
            user = self.repo.get_user_by_id(user_id)
            if user is None or not user.has_active_subscription(now):
                continue

            done = streaks.completed_habit_ids(self.repo.list_logs_for_user_on_day(user_id, today))
            due.extend((user, habit) for habit in user_habits if habit.id not in done)

        return due
