"""
Expert API Endpoints

POST /api/v1/experts - Submit an expert application
GET  /api/v1/experts/:id - Expert profile
PUT  /api/v1/experts/:id/availability - Availability settings
GET  /api/v1/experts/:id/sessions - Dashboard: upcoming and completed sessions
GET  /api/v1/experts/:id/earnings - Payout totals
"""
import uuid
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, status
from pydantic import BaseModel, ConfigDict, Field

from app.api.schemas import (
    AvailabilitySlot,
    ExpertData,
    ExpertResponse,
    SessionResponse,
    list_metadata,
)
from app.models.session import SESSION_COMPLETED, SESSION_SCHEDULED
from app.services.marketplace_report import MarketplaceReport, get_marketplace_report
from app.services.session_lifecycle import SessionLifecycle, get_session_lifecycle
from app.services.vetting_gate import VettingGate, get_vetting_gate
from app.utils.date_utils import as_utc, utcnow

router = APIRouter(prefix="/api/v1/experts", tags=["experts"])


class ExpertApplicationRequest(BaseModel):
    """Expert application form"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., min_length=1, max_length=100)
    positioning: str = Field(..., min_length=1, max_length=255)
    expertise_areas: List[str] = Field(..., min_length=1)
    bio: Optional[str] = None
    example_problems: List[str] = Field(default_factory=list)
    years_experience: int = Field(0, ge=0)
    rate_10min: Optional[Decimal] = None
    rate_20min: Optional[Decimal] = None
    linkedin_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    timezone: str = "Europe/London"


class AvailabilityUpdateRequest(BaseModel):
    """Only availability fields are writable here; reputation fields are rejected"""
    model_config = ConfigDict(extra="forbid")

    availability_slots: Optional[List[AvailabilitySlot]] = None
    accept_asap_calls: Optional[bool] = None
    timezone: Optional[str] = None


class ExpertSessionsResponse(BaseModel):
    upcoming: List[SessionResponse]
    completed: List[SessionResponse]


class ExpertSessionsData(BaseModel):
    data: ExpertSessionsResponse
    metadata: dict


class EarningsResponse(BaseModel):
    expert_id: str
    completed_sessions: int
    total_earnings_gbp: Decimal
    this_month_earnings_gbp: Decimal
    minimum_payout_gbp: Decimal
    payout_eligible: bool


class EarningsData(BaseModel):
    data: EarningsResponse


@router.post("", response_model=ExpertData, status_code=status.HTTP_201_CREATED)
async def apply_as_expert(
    request: ExpertApplicationRequest,
    gate: VettingGate = Depends(get_vetting_gate),
):
    """Create a pending expert profile awaiting admin vetting"""
    expert = await gate.submit_application(**request.model_dump())
    return ExpertData(data=ExpertResponse.model_validate(expert))


@router.get("/{expert_id}", response_model=ExpertData)
async def get_expert(
    expert_id: uuid.UUID = Path(...),
    gate: VettingGate = Depends(get_vetting_gate),
):
    expert = await gate.get(expert_id)
    return ExpertData(data=ExpertResponse.model_validate(expert))


@router.put("/{expert_id}/availability", response_model=ExpertData)
async def update_availability(
    request: AvailabilityUpdateRequest,
    expert_id: uuid.UUID = Path(...),
    gate: VettingGate = Depends(get_vetting_gate),
):
    slots = None
    if request.availability_slots is not None:
        slots = [slot.model_dump() for slot in request.availability_slots]
    expert = await gate.update_availability(
        expert_id,
        availability_slots=slots,
        accept_asap_calls=request.accept_asap_calls,
        timezone=request.timezone,
    )
    return ExpertData(data=ExpertResponse.model_validate(expert))


@router.get("/{expert_id}/sessions", response_model=ExpertSessionsData)
async def get_expert_sessions(
    expert_id: uuid.UUID = Path(...),
    gate: VettingGate = Depends(get_vetting_gate),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    """Upcoming scheduled sessions and completed sessions for the expert dashboard"""
    await gate.get(expert_id)
    sessions = await lifecycle.list_for_expert(expert_id)
    now = utcnow()

    upcoming = [
        s for s in sessions
        if s.status == SESSION_SCHEDULED and s.scheduled_time and as_utc(s.scheduled_time) > now
    ]
    upcoming.sort(key=lambda s: as_utc(s.scheduled_time))
    completed = [s for s in sessions if s.status == SESSION_COMPLETED]

    return ExpertSessionsData(
        data=ExpertSessionsResponse(
            upcoming=[SessionResponse.model_validate(s) for s in upcoming],
            completed=[SessionResponse.model_validate(s) for s in completed],
        ),
        metadata=list_metadata(len(sessions), expert_id=str(expert_id)),
    )


@router.get("/{expert_id}/earnings", response_model=EarningsData)
async def get_expert_earnings(
    expert_id: uuid.UUID = Path(...),
    report: MarketplaceReport = Depends(get_marketplace_report),
):
    """Payouts from completed sessions, net of the 25% platform fee"""
    earnings = await report.expert_earnings(expert_id)
    return EarningsData(data=EarningsResponse(**earnings))
