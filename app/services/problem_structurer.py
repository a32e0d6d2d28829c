"""
Problem Structuring Client

Sends a buyer's raw problem text to the external text-analysis service and
returns a structured summary. The call is bounded by a timeout; any failure
falls back to a generic structure so session intake never stalls.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, field_validator

from app.config import TEXT_ANALYSIS_API_KEY, TEXT_ANALYSIS_TIMEOUT_SECONDS, TEXT_ANALYSIS_URL

logger = logging.getLogger(__name__)

PROBLEM_CATEGORIES = (
    "pricing",
    "growth",
    "product",
    "hiring",
    "operations",
    "marketing",
    "sales",
    "fundraising",
    "technical",
    "legal",
    "other",
)

COMPLEXITY_LEVELS = ("simple", "moderate", "complex")


class StructuredProblem(BaseModel):
    """Structured summary returned by the text-analysis service"""
    title: str = Field(..., min_length=1, max_length=255)
    category: str = "other"
    context: Dict[str, Any] = Field(default_factory=dict)
    expert_questions: List[str] = Field(default_factory=list)
    complexity: str = "moderate"

    @field_validator("category", mode="before")
    @classmethod
    def known_category(cls, value: Any) -> str:
        category = str(value or "").strip().lower()
        return category if category in PROBLEM_CATEGORIES else "other"

    @field_validator("complexity", mode="before")
    @classmethod
    def known_complexity(cls, value: Any) -> str:
        complexity = str(value or "").strip().lower()
        return complexity if complexity in COMPLEXITY_LEVELS else "moderate"

    @field_validator("context", mode="before")
    @classmethod
    def context_object(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}


def fallback_structure() -> StructuredProblem:
    return StructuredProblem(
        title="Business Decision",
        category="other",
        context={},
        expert_questions=[],
        complexity="moderate",
    )


class ProblemStructurer:
    """Client for the external text-analysis service"""

    def __init__(
        self,
        base_url: str = TEXT_ANALYSIS_URL,
        timeout: float = TEXT_ANALYSIS_TIMEOUT_SECONDS,
        api_key: str = TEXT_ANALYSIS_API_KEY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.api_key = api_key
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(self, raw_problem_text: str) -> StructuredProblem:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers=self._headers(),
            transport=self.transport,
        ) as client:
            response = await client.post(self.base_url, json={"text": raw_problem_text})
            response.raise_for_status()
            payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
        return StructuredProblem.model_validate(payload)

    async def structure(self, raw_problem_text: str) -> StructuredProblem:
        """
        Structure a raw problem description.

        Args:
            raw_problem_text: Problem as typed by the buyer

        Returns:
            StructuredProblem from the service, or the fallback structure
            when the service is not configured, times out or misbehaves
        """
        if not self.base_url:
            logger.debug("Text analysis service not configured, using fallback structure")
            return fallback_structure()

        try:
            structured = await asyncio.wait_for(self._request(raw_problem_text), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Text analysis timed out after {self.timeout}s, using fallback structure")
            return fallback_structure()
        except httpx.HTTPError as e:
            logger.warning(f"Text analysis request failed: {e}, using fallback structure")
            return fallback_structure()
        except ValueError as e:
            # Covers malformed JSON and pydantic validation failures
            logger.warning(f"Text analysis returned an unusable payload: {e}, using fallback structure")
            return fallback_structure()

        logger.info(f"Structured problem: category={structured.category}, complexity={structured.complexity}")
        return structured


# Global structurer instance
_structurer: Optional[ProblemStructurer] = None


def get_problem_structurer() -> ProblemStructurer:
    """Get or create global ProblemStructurer instance."""
    global _structurer
    if _structurer is None:
        _structurer = ProblemStructurer()
    return _structurer
