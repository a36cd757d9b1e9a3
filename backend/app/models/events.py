"""
Notification events emitted by the progression engine

Plain data handed to the transport layer, which renders them into
user-facing messages.
"""
from pydantic import BaseModel
from typing import Literal, Union

from app.models.achievement import AchievementTier


class AchievementUnlocked(BaseModel):
    kind: Literal["achievement_unlocked"] = "achievement_unlocked"
    user_id: int
    tier: AchievementTier
    bonus_days: int


class ReferralStageCompleted(BaseModel):
    kind: Literal["referral_stage_completed"] = "referral_stage_completed"
    stage: int
    referrer_id: int
    referred_id: int
    referrer_bonus: int
    referred_bonus: int
    is_discount: bool = False


class ReferralProgramUnlocked(BaseModel):
    kind: Literal["referral_program_unlocked"] = "referral_program_unlocked"
    user_id: int


class PaymentConfirmed(BaseModel):
    kind: Literal["payment_confirmed"] = "payment_confirmed"
    user_id: int
    order_id: str
    days: int


Event = Union[AchievementUnlocked, ReferralStageCompleted, ReferralProgramUnlocked, PaymentConfirmed]
