"""
Pydantic models for users and subscription math
"""
import secrets
from datetime import datetime, timedelta
from pydantic import BaseModel, Field
from typing import Optional

from app.models.referral import ReferralResult
from app.utils.timezone import get_reference_now


def generate_referral_code() -> str:
    """Generate a random 12-hex-character referral code"""
    return secrets.token_hex(6)


def extend_subscription_end(current_end: Optional[datetime], days: int, now: datetime) -> datetime:
    """
    Compute a new subscription end after granting extra days

    Grants stack on an active subscription; an absent or expired
    subscription restarts from now.

    Args:
        current_end: Existing subscription end (may be None)
        days: Number of days to add, must be >= 0
        now: Current instant

    Returns:
        New subscription end
    """
    if days < 0:
        raise ValueError(f"Cannot grant a negative number of days: {days}")

    if current_end is not None and current_end > now:
        return current_end + timedelta(days=days)
    return now + timedelta(days=days)


def add_capped_discount(current: int, increment: int, cap: int) -> int:
    """Increase a discount percent without ever exceeding the cap"""
    return min(current + increment, cap)


class User(BaseModel):
    """A chat user"""
    id: int
    external_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    subscription_end: Optional[datetime] = None
    timezone: str = "Europe/Moscow"
    referral_code: str
    referred_by: Optional[int] = None
    discount_percent: int = Field(default=0, ge=0, le=100)
    action_count: int = 0
    subscribed_to_broadcasts: bool = True
    active_promocode_id: Optional[int] = None
    created_at: Optional[datetime] = None

    def has_active_subscription(self, now: Optional[datetime] = None) -> bool:
        """Premium status: subscription end is set and strictly in the future"""
        if self.subscription_end is None:
            return False
        return (now or get_reference_now()) < self.subscription_end

    @property
    def display_name(self) -> str:
        return self.first_name or self.username or "friend"


class RegisterUserRequest(BaseModel):
    """Request model for registering a user"""
    external_id: str = Field(..., min_length=1, description="Chat address, e.g. whatsapp:+15551234567")
    username: Optional[str] = Field(None, description="Chat username")
    first_name: Optional[str] = Field(None, description="Display name")
    referral_code: Optional[str] = Field(None, description="Referral code from an invite link")


class RegistrationResult(BaseModel):
    """Outcome of a registration event"""
    user: User
    is_new: bool
    referral: Optional[ReferralResult] = None
    referral_error: Optional[str] = None


class UserProfile(BaseModel):
    """Profile summary for a user"""
    user_id: int
    display_name: str
    is_premium: bool
    subscription_end: Optional[datetime] = None
    discount_percent: int
    overall_streak: int
    active_habits: int
    habit_limit: int
