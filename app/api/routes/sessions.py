"""
Session API Endpoints

POST /api/v1/sessions - Submit a problem and open a session
GET  /api/v1/sessions?buyer_id= - Buyer's sessions
GET  /api/v1/sessions/:id - Session detail
GET  /api/v1/sessions/:id/candidates - Candidate experts for the session
POST /api/v1/sessions/:id/book - Book an expert and fix the price
POST /api/v1/sessions/:id/complete - Mark the session completed
POST /api/v1/sessions/:id/cancel - Cancel (idempotent)
POST /api/v1/sessions/:id/feedback - Buyer rating and feedback
POST /api/v1/sessions/:id/outcome - Post-session summary and action items
"""
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel, Field

from app.api.schemas import ExpertListData, ExpertResponse, SessionData, SessionListData, SessionResponse, list_metadata
from app.services.matching_policy import MatchingPolicy, get_matching_policy
from app.services.session_lifecycle import SessionLifecycle, get_session_lifecycle

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


class IntakeRequest(BaseModel):
    """Raw problem submitted by a buyer"""
    buyer_id: str = Field(..., min_length=1, max_length=100)
    problem_text: str = Field(..., min_length=1)
    duration_minutes: int = Field(..., description="10 or 20")
    urgency: str = Field("this_week", description="asap, today or this_week")


class BookRequest(BaseModel):
    expert_id: uuid.UUID
    scheduled_time: datetime


class FeedbackRequest(BaseModel):
    rating: int = Field(..., description="1-5 stars")
    feedback: Optional[str] = None


class OutcomeRequest(BaseModel):
    ai_summary: Optional[str] = None
    action_items: List[str] = Field(default_factory=list)


@router.post("", response_model=SessionData, status_code=status.HTTP_201_CREATED)
async def submit_problem(
    request: IntakeRequest,
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    """
    Structure the buyer's problem and open a session awaiting payment.

    Falls back to a generic structure if the text-analysis service is down.
    """
    session = await lifecycle.intake(
        buyer_id=request.buyer_id,
        raw_problem_text=request.problem_text,
        duration_minutes=request.duration_minutes,
        urgency=request.urgency,
    )
    return SessionData(data=SessionResponse.model_validate(session))


@router.get("", response_model=SessionListData)
async def list_buyer_sessions(
    buyer_id: str = Query(..., min_length=1),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    sessions = await lifecycle.list_for_buyer(buyer_id)
    return SessionListData(
        data=[SessionResponse.model_validate(s) for s in sessions],
        metadata=list_metadata(len(sessions), buyer_id=buyer_id),
    )


@router.get("/{session_id}", response_model=SessionData)
async def get_session(
    session_id: uuid.UUID = Path(...),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    session = await lifecycle.get(session_id)
    return SessionData(data=SessionResponse.model_validate(session))


@router.get("/{session_id}/candidates", response_model=ExpertListData)
async def get_session_candidates(
    session_id: uuid.UUID = Path(...),
    tags: List[str] = Query(default=[]),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
    matching: MatchingPolicy = Depends(get_matching_policy),
):
    """
    Candidate experts for a session's problem.

    Uses the given tags, or the session's problem category when none are passed.
    """
    session = await lifecycle.get(session_id)
    experts = await matching.find_candidates(session.problem_category, tags, session.urgency)
    return ExpertListData(
        data=[ExpertResponse.model_validate(e) for e in experts],
        metadata=list_metadata(len(experts), session_id=str(session_id)),
    )


@router.post("/{session_id}/book", response_model=SessionData)
async def book_session(
    request: BookRequest,
    session_id: uuid.UUID = Path(...),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    session = await lifecycle.match_and_book(session_id, request.expert_id, request.scheduled_time)
    return SessionData(data=SessionResponse.model_validate(session))


@router.post("/{session_id}/complete", response_model=SessionData)
async def complete_session(
    session_id: uuid.UUID = Path(...),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    session = await lifecycle.mark_completed(session_id)
    return SessionData(data=SessionResponse.model_validate(session))


@router.post("/{session_id}/cancel", response_model=SessionData)
async def cancel_session(
    session_id: uuid.UUID = Path(...),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    session = await lifecycle.cancel(session_id)
    return SessionData(data=SessionResponse.model_validate(session))


@router.post("/{session_id}/feedback", response_model=SessionData)
async def submit_feedback(
    request: FeedbackRequest,
    session_id: uuid.UUID = Path(...),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    session = await lifecycle.submit_feedback(session_id, request.rating, request.feedback)
    return SessionData(data=SessionResponse.model_validate(session))


@router.post("/{session_id}/outcome", response_model=SessionData)
async def record_outcome(
    request: OutcomeRequest,
    session_id: uuid.UUID = Path(...),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    session = await lifecycle.record_outcome(session_id, request.ai_summary, request.action_items)
    return SessionData(data=SessionResponse.model_validate(session))
