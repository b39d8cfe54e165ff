import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Candidate(Base):
    """Read-side snapshot of a student profile. Owned by the profile service."""

    __tablename__ = "candidates"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String(255), default="")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    preferred_work_mode: Mapped[str | None] = mapped_column(String(30), nullable=True)
    skill_ids: Mapped[list] = mapped_column(JSONB, default=list)
    interest_ids: Mapped[list] = mapped_column(JSONB, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    matching_results = relationship(
        "MatchingResult", back_populates="candidate", cascade="all, delete-orphan", passive_deletes=True
    )
