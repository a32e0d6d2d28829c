"""Session model - One bookable, payable consulting engagement"""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
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

SESSION_PENDING_PAYMENT = "pending_payment"
SESSION_SCHEDULED = "scheduled"
SESSION_COMPLETED = "completed"
SESSION_CANCELLED = "cancelled"

SESSION_STATUSES = (
    SESSION_PENDING_PAYMENT,
    SESSION_SCHEDULED,
    SESSION_COMPLETED,
    SESSION_CANCELLED,
)

URGENCY_LEVELS = ("asap", "today", "this_week")
SESSION_DURATIONS = (10, 20)


class Session(Base):
    """Consulting session between a buyer and an expert"""

    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id = Column(String(100), nullable=False)
    expert_id = Column(
        Uuid,
        ForeignKey("experts.id", ondelete="RESTRICT"),
        nullable=True,
    )

    problem_title = Column(String(255), nullable=False)
    problem_description = Column(Text, nullable=False, default="")
    problem_category = Column(String(50), nullable=False, default="other")
    problem_structured = Column(JSON, nullable=False, default=dict)

    duration_minutes = Column(Integer, nullable=False)
    price_gbp = Column(Numeric(10, 2), nullable=True)
    platform_fee_gbp = Column(Numeric(10, 2), nullable=True)
    expert_payout_gbp = Column(Numeric(10, 2), nullable=True)

    scheduled_time = Column(DateTime(timezone=True), nullable=True)
    urgency = Column(String(20), nullable=False, default="this_week")

    status = Column(String(20), nullable=False, default=SESSION_PENDING_PAYMENT)
    ai_summary = Column(Text, nullable=True)
    action_items = Column(JSON, nullable=False, default=list)
    problem_resolved = Column(Boolean, nullable=False, default=False)
    buyer_rating = Column(Integer, nullable=True)
    buyer_feedback = Column(Text, nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Indexes for performance
    __table_args__ = (
        CheckConstraint("duration_minutes IN (10, 20)", name="session_duration_check"),
        CheckConstraint(
            "buyer_rating IS NULL OR (buyer_rating >= 1 AND buyer_rating <= 5)",
            name="session_rating_range",
        ),
        Index("idx_sessions_status", "status"),
        Index("idx_sessions_expert", "expert_id"),
        Index("idx_sessions_buyer", "buyer_id"),
    )

    def __repr__(self):
        return f"<Session(id={self.id}, status={self.status}, expert_id={self.expert_id})>"
