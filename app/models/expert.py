"""Expert model - Vetted consultants, their rates, availability and reputation"""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.sql import func
import uuid

from app.database import Base

EXPERT_PENDING = "pending"
EXPERT_APPROVED = "approved"
EXPERT_REJECTED = "rejected"
EXPERT_SUSPENDED = "suspended"

EXPERT_STATUSES = (EXPERT_PENDING, EXPERT_APPROVED, EXPERT_REJECTED, EXPERT_SUSPENDED)


class Expert(Base):
    """Expert profile with vetting status and derived reputation"""

    __tablename__ = "experts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(100), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default=EXPERT_PENDING)

    positioning = Column(String(255), nullable=False)
    bio = Column(Text, nullable=True)
    expertise_areas = Column(JSON, nullable=False, default=list)
    example_problems = Column(JSON, nullable=False, default=list)
    years_experience = Column(Integer, nullable=False, default=0)
    linkedin_url = Column(String(500), nullable=True)
    portfolio_url = Column(String(500), nullable=True)

    rate_10min = Column(Numeric(10, 2), nullable=True)
    rate_20min = Column(Numeric(10, 2), nullable=True)

    availability_slots = Column(JSON, nullable=False, default=list)
    accept_asap_calls = Column(Boolean, nullable=False, default=False)
    timezone = Column(String(64), nullable=False, default="Europe/London")

    total_sessions = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)
    nps_score = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'suspended')",
            name="expert_status_check",
        ),
        CheckConstraint("average_rating >= 0 AND average_rating <= 5", name="expert_rating_range"),
        Index("idx_experts_status", "status"),
        Index("idx_experts_user_id", "user_id"),
    )

    def __repr__(self):
        return f"<Expert(id={self.id}, user_id={self.user_id}, status={self.status})>"
