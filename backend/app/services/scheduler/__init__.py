"""
Scheduler module
Background job scheduling for reminders, sessions and broadcasts
"""
from .service import start_scheduler, stop_scheduler
from . import jobs

__all__ = ['start_scheduler', 'stop_scheduler', 'jobs']
