"""
Admin API Endpoints

GET  /api/v1/admin/experts?status=pending - Vetting queue
POST /api/v1/admin/experts/:id/approve|reject|suspend|reinstate - Vetting decisions
GET  /api/v1/admin/sessions?status= - Sessions by status
GET  /api/v1/admin/sessions/overview - Revenue, fees and status counts
"""
import uuid
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel

from app.api.schemas import (
    ExpertData,
    ExpertListData,
    ExpertResponse,
    SessionListData,
    SessionResponse,
    list_metadata,
)
from app.models.expert import EXPERT_PENDING
from app.services.marketplace_report import MarketplaceReport, get_marketplace_report
from app.services.session_lifecycle import SessionLifecycle, get_session_lifecycle
from app.services.vetting_gate import VettingGate, get_vetting_gate
from app.utils.date_utils import utcnow

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


class SessionOverviewResponse(BaseModel):
    total_sessions: int
    status_counts: Dict[str, int]
    total_revenue_gbp: Decimal
    platform_fees_gbp: Decimal
    expert_payouts_gbp: Decimal


class SessionOverviewData(BaseModel):
    data: SessionOverviewResponse
    metadata: Dict[str, Any]


@router.get("/experts", response_model=ExpertListData)
async def list_experts(
    status: str = Query(EXPERT_PENDING, description="pending, approved, rejected or suspended"),
    gate: VettingGate = Depends(get_vetting_gate),
):
    experts = await gate.list_by_status(status)
    return ExpertListData(
        data=[ExpertResponse.model_validate(e) for e in experts],
        metadata=list_metadata(len(experts), status=status),
    )


@router.post("/experts/{expert_id}/approve", response_model=ExpertData)
async def approve_expert(
    expert_id: uuid.UUID = Path(...),
    gate: VettingGate = Depends(get_vetting_gate),
):
    expert = await gate.approve(expert_id)
    return ExpertData(data=ExpertResponse.model_validate(expert))


@router.post("/experts/{expert_id}/reject", response_model=ExpertData)
async def reject_expert(
    expert_id: uuid.UUID = Path(...),
    gate: VettingGate = Depends(get_vetting_gate),
):
    expert = await gate.reject(expert_id)
    return ExpertData(data=ExpertResponse.model_validate(expert))


@router.post("/experts/{expert_id}/suspend", response_model=ExpertData)
async def suspend_expert(
    expert_id: uuid.UUID = Path(...),
    gate: VettingGate = Depends(get_vetting_gate),
):
    """Suspend an approved expert. Already scheduled sessions are left as they are."""
    expert = await gate.suspend(expert_id)
    return ExpertData(data=ExpertResponse.model_validate(expert))


@router.post("/experts/{expert_id}/reinstate", response_model=ExpertData)
async def reinstate_expert(
    expert_id: uuid.UUID = Path(...),
    gate: VettingGate = Depends(get_vetting_gate),
):
    expert = await gate.reinstate(expert_id)
    return ExpertData(data=ExpertResponse.model_validate(expert))


@router.get("/sessions", response_model=SessionListData)
async def list_sessions(
    status: Optional[str] = Query(None, description="Filter by session status"),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    sessions = await lifecycle.list_by_status(status)
    return SessionListData(
        data=[SessionResponse.model_validate(s) for s in sessions],
        metadata=list_metadata(len(sessions), status=status),
    )


@router.get("/sessions/overview", response_model=SessionOverviewData)
async def get_session_overview(
    report: MarketplaceReport = Depends(get_marketplace_report),
):
    overview = await report.session_overview()
    return SessionOverviewData(
        data=SessionOverviewResponse(**overview),
        metadata={"timestamp": utcnow().isoformat()},
    )
