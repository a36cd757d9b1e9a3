"""
Streak Calculator - Consecutive-day run math over completion logs

Pure functions; callers fetch the logs. A log with completed=False counts
the same as a missing day.
"""
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Set

from app.models import HabitLog


def completed_days(logs: Iterable[HabitLog]) -> Set[date]:
    """Collect the calendar days that carry a completed log"""
    return {log.date for log in logs if log.completed}


def run_length_ending_at(days: Set[date], anchor: date) -> int:
    """
    Count consecutive days in the set, walking backward from anchor

    Args:
        days: Completed calendar days
        anchor: Last day of the run

    Returns:
        Length of the run, 0 if anchor itself is not in the set
    """
    length = 0
    day = anchor
    while day in days:
        length += 1
        day -= timedelta(days=1)
    return length


def current_streak(days: Set[date], today: date) -> int:
    """
    Current streak anchored at today, or at yesterday if today is not done yet

    Args:
        days: Completed calendar days
        today: Today in the reference timezone

    Returns:
        Streak length >= 0
    """
    if today in days:
        return run_length_ending_at(days, today)
    return run_length_ending_at(days, today - timedelta(days=1))


def best_streak(days: Set[date]) -> int:
    """Size of the longest run of consecutive days, 0 if there are none"""
    best = 0
    for day in days:
        # Only start counting at the first day of a run
        if day - timedelta(days=1) in days:
            continue
        length = 0
        while day in days:
            length += 1
            day += timedelta(days=1)
        best = max(best, length)
    return best


def fully_completed_days(habit_ids: Iterable[int], logs: Iterable[HabitLog]) -> Set[date]:
    """
    Days on which every listed habit has a completed log

    Args:
        habit_ids: IDs of the user's active habits
        logs: The user's logs over the window of interest

    Returns:
        Set of fully completed days; empty when there are no habits
    """
    required = set(habit_ids)
    if not required:
        return set()

    done_by_day: Dict[date, Set[int]] = defaultdict(set)
    for log in logs:
        if log.completed and log.habit_id in required:
            done_by_day[log.date].add(log.habit_id)

    return {day for day, done in done_by_day.items() if done == required}


def overall_streak(habit_ids: List[int], logs: Iterable[HabitLog], today: date) -> int:
    """
    Cross-habit current streak: every active habit must be done on each day counted

    Args:
        habit_ids: IDs of the user's active habits
        logs: The user's logs over the window of interest
        today: Today in the reference timezone

    Returns:
        Streak length, 0 when the user has no active habits
    """
    return current_streak(fully_completed_days(habit_ids, logs), today)


def completed_habit_ids(logs: Iterable[HabitLog]) -> Set[int]:
    """IDs of the habits with a completed log among the given logs"""
    return {log.habit_id for log in logs if log.completed}
