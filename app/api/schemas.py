"""Response models shared by the marketplace routers"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.utils.date_utils import utcnow


class AvailabilitySlot(BaseModel):
    """Weekly availability window"""
    day: str
    start_time: str = Field(..., description="HH:MM, 24h clock")
    end_time: str = Field(..., description="HH:MM, 24h clock")


class ExpertResponse(BaseModel):
    """Expert profile as exposed by the API"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    status: str
    positioning: str
    bio: Optional[str] = None
    expertise_areas: List[str]
    example_problems: List[str]
    years_experience: int
    linkedin_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    rate_10min: Optional[Decimal] = None
    rate_20min: Optional[Decimal] = None
    availability_slots: List[AvailabilitySlot]
    accept_asap_calls: bool
    timezone: str
    total_sessions: int
    average_rating: float
    nps_score: float


class SessionResponse(BaseModel):
    """Session as exposed by the API"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    buyer_id: str
    expert_id: Optional[uuid.UUID] = None
    status: str
    problem_title: str
    problem_description: str
    problem_category: str
    problem_structured: Dict[str, Any]
    duration_minutes: int
    urgency: str
    price_gbp: Optional[Decimal] = None
    platform_fee_gbp: Optional[Decimal] = None
    expert_payout_gbp: Optional[Decimal] = None
    scheduled_time: Optional[datetime] = None
    ai_summary: Optional[str] = None
    action_items: List[str]
    problem_resolved: bool
    buyer_rating: Optional[int] = None
    buyer_feedback: Optional[str] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class ExpertData(BaseModel):
    data: ExpertResponse


class ExpertListData(BaseModel):
    data: List[ExpertResponse]
    metadata: Dict[str, Any]


class SessionData(BaseModel):
    data: SessionResponse


class SessionListData(BaseModel):
    data: List[SessionResponse]
    metadata: Dict[str, Any]


def list_metadata(count: int, **extra: Any) -> Dict[str, Any]:
    return {"count": count, "timestamp": utcnow().isoformat(), **extra}
