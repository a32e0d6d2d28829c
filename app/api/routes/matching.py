"""
Matching API Endpoints

POST /api/v1/matching/candidates - Rank approved experts for a problem
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.schemas import ExpertListData, ExpertResponse, list_metadata
from app.services.matching_policy import MatchingPolicy, get_matching_policy

router = APIRouter(prefix="/api/v1/matching", tags=["matching"])


class CandidateRequest(BaseModel):
    """Problem attributes used for matching"""
    problem_category: Optional[str] = None
    expertise_tags: List[str] = Field(default_factory=list)
    urgency: str = "this_week"
    limit: Optional[int] = Field(None, ge=1, le=20)


@router.post("/candidates", response_model=ExpertListData)
async def find_candidates(
    request: CandidateRequest,
    matching: MatchingPolicy = Depends(get_matching_policy),
):
    """
    Ranked candidate experts: best rated first, then most sessions.

    An empty list is a valid "no match" answer.
    """
    experts = await matching.find_candidates(
        request.problem_category,
        request.expertise_tags,
        request.urgency,
        limit=request.limit,
    )
    return ExpertListData(
        data=[ExpertResponse.model_validate(e) for e in experts],
        metadata=list_metadata(len(experts), matched=bool(experts)),
    )
