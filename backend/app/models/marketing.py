"""
Pydantic models for ads and broadcasts
"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional


class Ad(BaseModel):
    id: int
    name: str
    text: str
    button_text: Optional[str] = None
    button_url: Optional[str] = None
    is_active: bool = True
    priority: int = 0
    views_count: int = 0
    clicks_count: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class CreateAdRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    text: str = Field(..., min_length=1)
    button_text: Optional[str] = None
    button_url: Optional[str] = None
    priority: int = Field(0, ge=0, le=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class BroadcastStatus(str, Enum):
    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class Broadcast(BaseModel):
    id: int
    name: str
    text: str
    status: BroadcastStatus = BroadcastStatus.DRAFT
    total_users: int = 0
    sent_count: int = 0
    failed_count: int = 0
    last_user_id: int = 0
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class CreateBroadcastRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    text: str = Field(..., min_length=1, max_length=4000)
