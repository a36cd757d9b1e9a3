"""
Timezone Utilities - Centralized day-boundary handling

All day truncation uses one fixed reference zone, not the user's own
timezone.
"""
from datetime import date, datetime
import pytz

from app.core.config import settings


# Application reference timezone
REFERENCE_TZ = pytz.timezone(settings.REFERENCE_TIMEZONE)


def get_reference_tz():
    """
    Get the reference timezone object

    Returns:
        pytz timezone used for all day boundaries
    """
    return REFERENCE_TZ


def get_reference_now() -> datetime:
    """
    Get current datetime in the reference timezone

    Returns:
        Timezone-aware datetime object
    """
    return datetime.now(REFERENCE_TZ)


def to_reference_date(moment: datetime) -> date:
    """
    Truncate an instant to its calendar day in the reference timezone

    Naive datetimes are assumed to already be in the reference timezone.
    """
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(REFERENCE_TZ).date()
