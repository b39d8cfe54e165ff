from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class WorkMode(str, Enum):
    DEVELOPMENT = "DEVELOPMENT"
    RESEARCH = "RESEARCH"
    ANALYSIS = "ANALYSIS"
    WATCH = "WATCH"
    DESIGN = "DESIGN"
    DOCUMENTATION = "DOCUMENTATION"
    TESTING = "TESTING"
    MIXED = "MIXED"


class MatchingAlgorithm(str, Enum):
    WEIGHTED = "WEIGHTED"
    STABLE = "STABLE"
    HYBRID = "HYBRID"


class MatchingScope(str, Enum):
    ALL = "ALL"
    ONE = "ONE"

    @classmethod
    def _missing_(cls, value):
        # Older clients send the student-oriented names.
        aliases = {"ALL_STUDENTS": cls.ALL, "ONE_STUDENT": cls.ONE}
        if isinstance(value, str):
            return aliases.get(value.upper())
        return None


class MatchingRunRequest(BaseModel):
    """Parameters of one matching run.

    ``algorithm`` is kept as a plain string: it is resolved against the
    strategy registry, which reports unknown identifiers itself.
    """

    algorithm: str = MatchingAlgorithm.WEIGHTED.value
    scope: MatchingScope = MatchingScope.ALL
    candidate_id: UUID | None = None
    recompute: bool = False
    persist: bool = False
    threshold: Decimal | None = Field(None, ge=0, le=1)
    weights: dict[str, Decimal] | None = None

    @field_validator("algorithm", mode="before")
    @classmethod
    def normalize_algorithm(cls, v):
        if isinstance(v, MatchingAlgorithm):
            return v.value
        return str(v).strip().upper()

    @field_validator("weights")
    @classmethod
    def weights_non_negative(cls, v):
        if v is None:
            return v
        negative = [key for key, value in v.items() if value < 0]
        if negative:
            raise ValueError(f"weights must be non-negative: {', '.join(sorted(negative))}")
        return v

    def with_recompute(self, recompute: bool) -> "MatchingRunRequest":
        return self.model_copy(update={"recompute": recompute})


class MatchingRunResult(BaseModel):
    session_id: str
    algorithm_used: MatchingAlgorithm
    candidates_processed: int
    opportunities_considered: int
    results_computed: int
    results_saved: int
    recompute: bool
    started_at: datetime
    finished_at: datetime
    warnings: list[str] = []


class MatchingResultResponse(BaseModel):
    id: UUID
    session_id: str
    candidate_id: UUID
    opportunity_id: UUID
    global_score: Decimal
    skills_score: Decimal
    interests_score: Decimal
    work_mode_score: Decimal
    skills_weight: Decimal
    interests_weight: Decimal
    work_mode_weight: Decimal
    skills_details: str | None = None
    interests_details: str | None = None
    recommendation_rank: int | None = None
    above_threshold: bool
    threshold_used: Decimal
    algorithm_used: str
    calculated_at: datetime | None = None

    model_config = {"from_attributes": True}


class MatchingTaskResponse(BaseModel):
    task_id: str
    status: str = "queued"


class SessionCountResponse(BaseModel):
    session_id: str
    count: int


class SessionDeleteResponse(BaseModel):
    session_id: str
    deleted: int
