"""
Habits Service - Business logic for habit management
Handles the active-habit cap, ownership checks, completion logging and
streak statistics
"""
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple
import logging

from app.core.constants import (
    FREE_HABITS_LIMIT,
    PREMIUM_HABITS_LIMIT,
    FREE_HISTORY_DAYS,
    PREMIUM_HISTORY_DAYS,
    OVERALL_STREAK_WINDOW_DAYS
)
from app.core.exceptions import (
    AccessDeniedError,
    HabitLimitReachedError,
    HabitNotFoundError,
    InvalidHabitDataError,
    UserNotFoundError
)
from app.models import Frequency, Habit, HabitLog, HabitStats, User
from app.utils.timezone import get_reference_now, to_reference_date
from . import streaks

logger = logging.getLogger(__name__)


class HabitService:
    """Habit engine over a storage repository"""

    def __init__(self, repo, clock: Callable[[], datetime] = get_reference_now):
        self.repo = repo
        self.clock = clock

    def today(self) -> date:
        return to_reference_date(self.clock())

    def _get_user(self, user_id: int) -> User:
        user = self.repo.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def habit_limit(self, user: User) -> int:
        """Active-habit cap for the user's current tier"""
        if user.has_active_subscription(self.clock()):
            return PREMIUM_HABITS_LIMIT
        return FREE_HABITS_LIMIT

    def history_days(self, user: User) -> int:
        """How many trailing days of history the user's tier may see"""
        if user.has_active_subscription(self.clock()):
            return PREMIUM_HISTORY_DAYS
        return FREE_HISTORY_DAYS

    # ========================================================================
    # HABIT LIFECYCLE
    # ========================================================================

    def create_habit(self, user_id: int, name: str, description: str = "",
                     frequency: Frequency = Frequency.DAILY,
                     reminder_time: Optional[str] = None) -> Habit:
        """
        Create a new active habit if the user's tier allows another one

        Args:
            user_id: Owner user ID
            name: Habit name
            description: Optional description
            frequency: Informational frequency tag
            reminder_time: Optional reminder in HH:MM format (24-hour)

        Returns:
            The created habit

        Raises:
            UserNotFoundError: If the user does not exist
            InvalidHabitDataError: If the name is empty or the time is malformed
            HabitLimitReachedError: If the active-habit cap is reached
            DatabaseError: If database operation fails
        """
        name = (name or "").strip()
        if not name:
            raise InvalidHabitDataError("Habit name cannot be empty")

        if reminder_time is not None:
            try:
                datetime.strptime(reminder_time, "%H:%M")
            except ValueError:
                raise InvalidHabitDataError(f"Invalid reminder_time format: {reminder_time}. Use HH:MM (24-hour)")

        user = self._get_user(user_id)
        limit = self.habit_limit(user)
        count = self.repo.count_active_habits(user_id)
        if count >= limit:
            raise HabitLimitReachedError(f"Active habit limit reached ({count}/{limit})")

        habit = self.repo.create_habit(user_id, name, description, Frequency(frequency).value, reminder_time)
        logger.info(f"[HABITS] User {user_id} created habit {habit.id} '{habit.name}'")
        return habit

    def get_owned_habit(self, user_id: int, habit_id: int) -> Habit:
        """
        Fetch an active habit and check that the user owns it

        Raises:
            HabitNotFoundError: If the habit does not exist or was deleted
            AccessDeniedError: If the habit belongs to another user
        """
        habit = self.repo.get_habit_by_id(habit_id)
        if habit is None or not habit.is_active:
            raise HabitNotFoundError(f"Habit {habit_id} not found")
        if habit.user_id != user_id:
            raise AccessDeniedError(f"Habit {habit_id} does not belong to user {user_id}")
        return habit

    def list_habits(self, user_id: int) -> List[Habit]:
        return self.repo.list_active_habits(user_id)

    def delete_habit(self, user_id: int, habit_id: int) -> Habit:
        """Soft-delete a habit; history stays in the log table"""
        habit = self.get_owned_habit(user_id, habit_id)
        self.repo.deactivate_habit(habit_id)
        logger.info(f"[HABITS] User {user_id} deleted habit {habit_id}")
        return habit

    def set_reminder(self, user_id: int, habit_id: int, reminder_time: Optional[str]) -> Habit:
        """
        Set or clear a habit's reminder time

        Raises:
            InvalidHabitDataError: If the time is malformed
            HabitNotFoundError: If the habit does not exist
            AccessDeniedError: If the habit belongs to another user
        """
        if reminder_time is not None:
            try:
                datetime.strptime(reminder_time, "%H:%M")
            except ValueError:
                raise InvalidHabitDataError(f"Invalid reminder_time format: {reminder_time}. Use HH:MM (24-hour)")

        habit = self.get_owned_habit(user_id, habit_id)
        self.repo.update_habit_reminder(habit_id, reminder_time)
        return habit.model_copy(update={"reminder_time": reminder_time})

    # ========================================================================
    # COMPLETION LOGGING
    # ========================================================================

    def complete_habit(self, user_id: int, habit_id: int, note: str = "") -> HabitLog:
        """
        Mark a habit as completed for today

        Raises:
            HabitNotFoundError: If the habit does not exist or was deleted
            AccessDeniedError: If the habit belongs to another user
            DatabaseError: If database operation fails
        """
        habit = self.get_owned_habit(user_id, habit_id)
        log = self.repo.upsert_log(habit.id, user_id, self.today(), True, note)
        logger.info(f"[HABITS] User {user_id} completed habit {habit_id} on {log.date}")
        return log

    def uncomplete_habit(self, user_id: int, habit_id: int) -> HabitLog:
        """Mark a habit as not completed for today"""
        habit = self.get_owned_habit(user_id, habit_id)
        log = self.repo.upsert_log(habit.id, user_id, self.today(), False)
        logger.info(f"[HABITS] User {user_id} uncompleted habit {habit_id} on {log.date}")
        return log

    def today_status(self, user_id: int) -> List[Tuple[Habit, bool]]:
        """Active habits paired with whether each is done today"""
        habits = self.repo.list_active_habits(user_id)
        done = streaks.completed_habit_ids(self.repo.list_logs_for_user_on_day(user_id, self.today()))
        return [(habit, habit.id in done) for habit in habits]

    # ========================================================================
    # STREAKS & STATISTICS
    # ========================================================================

    def habit_streaks(self, habit_id: int) -> Tuple[int, int]:
        """
        Current and best streak for one habit

        Returns:
            Tuple of (current_streak, best_streak)
        """
        days = streaks.completed_days(self.repo.list_logs_for_habit(habit_id))
        return streaks.current_streak(days, self.today()), streaks.best_streak(days)

    def overall_streak(self, user_id: int) -> int:
        """
        Current streak across all of the user's active habits

        Only the trailing window of logs is fetched; any streak up to the
        window length is computed exactly.
        """
        habits = self.repo.list_active_habits(user_id)
        if not habits:
            return 0

        today = self.today()
        start = today - timedelta(days=OVERALL_STREAK_WINDOW_DAYS)
        logs = self.repo.list_logs_for_user_in_range(user_id, start, today)
        return streaks.overall_streak([habit.id for habit in habits], logs, today)

    def habit_stats(self, habit: Habit, history_days: int) -> HabitStats:
        """
        Statistics for one habit

        Totals and completion rate cover the trailing history window the
        user's tier may see; streaks cover the full history.
        """
        logs = self.repo.list_logs_for_habit(habit.id)
        today = self.today()
        window_start = today - timedelta(days=history_days - 1)
        visible = [log for log in logs if window_start <= log.date <= today]

        days = streaks.completed_days(logs)
        completed_visible = sum(1 for log in visible if log.completed)
        total_visible = len(visible)

        return HabitStats(
            habit_id=habit.id,
            habit_name=habit.name,
            total_days=total_visible,
            completed_days=completed_visible,
            current_streak=streaks.current_streak(days, today),
            best_streak=streaks.best_streak(days),
            completion_rate=round(completed_visible * 100 / total_visible, 2) if total_visible else 0.0,
            last_completed_at=max(days) if days else None
        )

    def user_stats(self, user_id: int) -> List[HabitStats]:
        """Statistics for each of the user's active habits"""
        user = self._get_user(user_id)
        history_days = self.history_days(user)
        return [self.habit_stats(habit, history_days) for habit in self.repo.list_active_habits(user_id)]
