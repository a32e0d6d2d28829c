"""Marketplace exception hierarchy, rendered by the API as error envelopes"""
from typing import Any, Dict, Optional


class MarketplaceError(Exception):
    """Base exception for all marketplace errors."""

    code = "MARKETPLACE_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(MarketplaceError):
    """Malformed input, rejected before any write"""

    code = "VALIDATION_ERROR"
    status_code = 422


class InvalidTransition(MarketplaceError):
    """Requested operation is not allowed from the record's current status"""

    code = "INVALID_TRANSITION"
    status_code = 409


class ExpertUnavailable(MarketplaceError):
    code = "EXPERT_UNAVAILABLE"
    status_code = 409


class PricingError(MarketplaceError):
    code = "PRICING_ERROR"
    status_code = 422


class DuplicateFeedback(MarketplaceError):
    code = "DUPLICATE_FEEDBACK"
    status_code = 409


class SessionNotFound(MarketplaceError):
    code = "SESSION_NOT_FOUND"
    status_code = 404


class ExpertNotFound(MarketplaceError):
    code = "EXPERT_NOT_FOUND"
    status_code = 404


class LockTimeout(MarketplaceError):
    """A per-key lock could not be acquired in time"""

    code = "LOCK_TIMEOUT"
    status_code = 503
