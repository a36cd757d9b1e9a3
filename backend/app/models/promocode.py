"""
Pydantic models for promo codes
"""
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Optional


def normalize_promocode(code: str) -> str:
    """Promo codes are matched case-insensitively and stored upper-case"""
    return code.strip().upper()


class Promocode(BaseModel):
    """An admin-issued discount code"""
    id: int
    code: str
    discount_percent: int = Field(..., ge=1, le=99)
    max_uses: Optional[int] = None
    used_count: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.used_count >= self.max_uses

    @property
    def is_redeemable(self) -> bool:
        return self.is_active and not self.is_exhausted


class CreatePromocodeRequest(BaseModel):
    """Request model for creating a promo code"""
    code: str = Field(..., min_length=3, max_length=32, description="Code users type, e.g. EARLYBIRD")
    discount_percent: int = Field(..., ge=1, le=99, description="Discount on the subscription price")
    max_uses: Optional[int] = Field(None, ge=1, description="Usage limit, unlimited when omitted")

    @field_validator('code')
    @classmethod
    def validate_code(cls, v: str) -> str:
        v = normalize_promocode(v)
        if not v.isalnum():
            raise ValueError('code must contain only letters and digits')
        return v


class UpdatePromocodeRequest(BaseModel):
    is_active: bool


class ApplyPromocodeRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
