"""
Pydantic models for the two-stage referral protocol
"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel
from typing import Optional


class ReferralState(str, Enum):
    STAGE1_PENDING = "stage1_pending"
    STAGE1_APPLIED = "stage1_applied"
    STAGE2_APPLIED = "stage2_applied"


class Referral(BaseModel):
    """One row per referred user"""
    id: int
    referrer_id: int
    referred_id: int
    referral_code: str
    stage1_applied: bool = False
    stage1_bonus_days: int = 0
    stage2_applied: bool = False
    stage2_bonus_days: int = 0
    gave_discount: bool = False
    created_at: Optional[datetime] = None

    @property
    def state(self) -> ReferralState:
        if self.stage2_applied:
            return ReferralState.STAGE2_APPLIED
        if self.stage1_applied:
            return ReferralState.STAGE1_APPLIED
        return ReferralState.STAGE1_PENDING


class ReferralResult(BaseModel):
    """
    Descriptor returned after a referral stage was applied

    For discount-mode stage 1, referrer_bonus is the discount increment in
    percent rather than days.
    """
    stage: int
    referrer_id: int
    referred_id: int
    referrer_bonus: int
    referred_bonus: int
    is_discount: bool = False


class ReferralStats(BaseModel):
    total_referrals: int = 0
    bonus_referrals: int = 0
    discount_referrals: int = 0
    stage1_completed: int = 0
    stage2_completed: int = 0
    total_bonus_days: int = 0
    accumulated_discount: int = 0
    can_invite: bool = False
    current_streak: int = 0
    days_until_unlock: int = 0
    invite_link: Optional[str] = None
