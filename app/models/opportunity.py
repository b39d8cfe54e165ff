import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Opportunity(Base):
    """Read-side snapshot of a project offering seats to candidates."""

    __tablename__ = "opportunities"
    __table_args__ = (
        CheckConstraint("max_seats >= 1", name="ck_opportunities_max_seats_positive"),
        CheckConstraint("min_seats >= 0", name="ck_opportunities_min_seats_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    work_mode: Mapped[str | None] = mapped_column(String(30), nullable=True)
    required_skill_ids: Mapped[list] = mapped_column(JSONB, default=list)
    tag_ids: Mapped[list] = mapped_column(JSONB, default=list)
    min_seats: Mapped[int] = mapped_column(Integer, default=1)
    max_seats: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    matching_results = relationship(
        "MatchingResult", back_populates="opportunity", cascade="all, delete-orphan", passive_deletes=True
    )
