import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

SCORE = Numeric(7, 6)


class MatchingResult(Base):
    """One scored (candidate, opportunity) pair produced by a matching run.

    Records are never updated in place. A rerun either adds a new session's
    records or deletes then recreates them (``recompute``).
    """

    __tablename__ = "matching_results"
    __table_args__ = (
        UniqueConstraint(
            "candidate_id",
            "opportunity_id",
            "session_id",
            "algorithm_used",
            name="uq_result_candidate_opportunity_session_algorithm",
        ),
        Index("ix_matching_results_global_score", "global_score"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id: Mapped[str] = mapped_column(String(50), index=True)
    candidate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("candidates.id", ondelete="CASCADE"), index=True
    )
    opportunity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("opportunities.id", ondelete="CASCADE"), index=True
    )

    global_score: Mapped[Decimal] = mapped_column(SCORE)
    skills_score: Mapped[Decimal] = mapped_column(SCORE)
    interests_score: Mapped[Decimal] = mapped_column(SCORE)
    work_mode_score: Mapped[Decimal] = mapped_column(SCORE)

    skills_weight: Mapped[Decimal] = mapped_column(SCORE)
    interests_weight: Mapped[Decimal] = mapped_column(SCORE)
    work_mode_weight: Mapped[Decimal] = mapped_column(SCORE)

    skills_details: Mapped[str | None] = mapped_column(String(500), nullable=True)
    interests_details: Mapped[str | None] = mapped_column(String(500), nullable=True)

    recommendation_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    above_threshold: Mapped[bool] = mapped_column(Boolean, default=True)
    threshold_used: Mapped[Decimal] = mapped_column(SCORE)
    algorithm_used: Mapped[str] = mapped_column(String(50), default="WEIGHTED")
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    candidate = relationship("Candidate", back_populates="matching_results")
    opportunity = relationship("Opportunity", back_populates="matching_results")
