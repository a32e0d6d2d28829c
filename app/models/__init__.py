"""SQLAlchemy ORM Models for the marketplace schema"""
from app.models.expert import Expert
from app.models.session import Session

__all__ = [
    "Expert",
    "Session",
]
