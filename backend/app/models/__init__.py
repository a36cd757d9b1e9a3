"""
Pydantic models for the application
"""
from app.models.user import (
    User,
    RegisterUserRequest,
    RegistrationResult,
    UserProfile
)
from app.models.habit import (
    Frequency,
    Habit,
    HabitLog,
    HabitStats,
    CreateHabitRequest,
    HabitActionRequest,
    SetReminderRequest
)
from app.models.achievement import (
    AchievementType,
    AchievementTier,
    ACHIEVEMENT_TIERS,
    Achievement,
    AchievementResult,
    NextAchievement
)
from app.models.referral import Referral, ReferralState, ReferralResult, ReferralStats
from app.models.payment import OPEN_PAYMENT_STATUSES, Payment, PaymentStatus, CreatePaymentRequest
from app.models.promocode import (
    Promocode,
    CreatePromocodeRequest,
    UpdatePromocodeRequest,
    ApplyPromocodeRequest
)
from app.models.events import (
    AchievementUnlocked,
    ReferralStageCompleted,
    ReferralProgramUnlocked,
    PaymentConfirmed,
    Event
)
from app.models.marketing import (
    Ad,
    CreateAdRequest,
    Broadcast,
    BroadcastStatus,
    CreateBroadcastRequest
)

__all__ = [
    "User",
    "RegisterUserRequest",
    "RegistrationResult",
    "UserProfile",
    "Frequency",
    "Habit",
    "HabitLog",
    "HabitStats",
    "CreateHabitRequest",
    "HabitActionRequest",
    "SetReminderRequest",
    "AchievementType",
    "AchievementTier",
    "ACHIEVEMENT_TIERS",
    "Achievement",
    "AchievementResult",
    "NextAchievement",
    "Referral",
    "ReferralState",
    "ReferralResult",
    "ReferralStats",
    "Payment",
    "PaymentStatus",
    "OPEN_PAYMENT_STATUSES",
    "CreatePaymentRequest",
    "Promocode",
    "CreatePromocodeRequest",
    "UpdatePromocodeRequest",
    "ApplyPromocodeRequest",
    "AchievementUnlocked",
    "ReferralStageCompleted",
    "ReferralProgramUnlocked",
    "PaymentConfirmed",
    "Event",
    "Ad",
    "CreateAdRequest",
    "Broadcast",
    "BroadcastStatus",
    "CreateBroadcastRequest"
]
