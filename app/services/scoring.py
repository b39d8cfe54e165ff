"""
Pairwise compatibility scoring between a candidate and an opportunity.

SCORING FORMULA:
    global = skills × w_skills + interests × w_interests + work_mode × w_work_mode

SUB-SCORES (each in [0, 1]):
    - skills: |candidate.skills ∩ opportunity.required_skills| / |required_skills|
      0.50 when the opportunity requires nothing, 0 when the candidate has no skills
    - interests: same rule, candidate interests vs opportunity tags
    - work_mode: 1.0 when both sides name the same mode, 0.50 otherwise

All arithmetic is Decimal, rounded HALF_UP to 6 fractional digits.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from app.core.exceptions import InvalidArgumentError
from app.schemas.matching import WorkMode

QUANTUM = Decimal("0.000001")
ZERO = Decimal("0")
ONE = Decimal("1")
NEUTRAL = Decimal("0.50")

ZERO_SUM_WARNING = "Weights sum is 0. Using defaults 0.50/0.30/0.20"

# Request keys accepted for each weight. The camelCase forms come from the web client.
WEIGHT_KEYS = {
    "skills": "skills",
    "interests": "interests",
    "work_mode": "work_mode",
    "workMode": "work_mode",
    "work_type": "work_mode",
    "workType": "work_mode",
}


def quantize(value: Decimal) -> Decimal:
    return value.quantize(QUANTUM, rounding=ROUND_HALF_UP)


def clamp01(value: Decimal) -> Decimal:
    if value < ZERO:
        return ZERO
    if value > ONE:
        return ONE
    return value


@dataclass(frozen=True)
class CandidateProfile:
    id: UUID
    skills: frozenset = frozenset()
    interests: frozenset = frozenset()
    work_mode: WorkMode | None = None


@dataclass(frozen=True)
class OpportunityProfile:
    id: UUID
    required_skills: frozenset = frozenset()
    tags: frozenset = frozenset()
    work_mode: WorkMode | None = None
    min_seats: int = 1
    max_seats: int = 1

    @property
    def capacity(self) -> int:
        return max(1, self.max_seats)


@dataclass(frozen=True)
class Weights:
    skills: Decimal
    interests: Decimal
    work_mode: Decimal

    @property
    def total(self) -> Decimal:
        return self.skills + self.interests + self.work_mode


FALLBACK_WEIGHTS = Weights(Decimal("0.50"), Decimal("0.30"), Decimal("0.20"))


def resolve_weights(
    overrides: Mapping[str, Decimal] | None,
    defaults: Weights = FALLBACK_WEIGHTS,
) -> tuple[Weights, list[str]]:
    """Merge request overrides into the defaults and normalize them to sum to 1.

    Returns the normalized weights and the warnings raised while resolving
    them. A non-positive sum falls back to 0.50/0.30/0.20 with one warning.
    Rounding drift is folded into the largest weight so the sum is exactly 1.
    """
    values = {"skills": defaults.skills, "interests": defaults.interests, "work_mode": defaults.work_mode}
    for key, raw in (overrides or {}).items():
        field = WEIGHT_KEYS.get(key)
        if field is None:
            raise InvalidArgumentError(f"Unknown weight: {key}")
        value = Decimal(str(raw))
        if value < ZERO:
            raise InvalidArgumentError(f"Weight '{key}' must be non-negative")
        values[field] = value

    warnings: list[str] = []
    total = sum(values.values(), ZERO)
    if total <= ZERO:
        warnings.append(ZERO_SUM_WARNING)
        values = {
            "skills": FALLBACK_WEIGHTS.skills,
            "interests": FALLBACK_WEIGHTS.interests,
            "work_mode": FALLBACK_WEIGHTS.work_mode,
        }
        total = ONE

    normalized = {key: quantize(value / total) for key, value in values.items()}
    drift = ONE - sum(normalized.values(), ZERO)
    if drift:
        largest = max(normalized, key=lambda k: normalized[k])
        normalized[largest] += drift

    return Weights(**normalized), warnings


@dataclass(frozen=True)
class CompatibilityScore:
    """Immutable result of scoring one (candidate, opportunity) pair."""

    candidate_id: UUID
    opportunity_id: UUID
    global_score: Decimal
    skills_score: Decimal
    interests_score: Decimal
    work_mode_score: Decimal
    weights: Weights
    skills_matched: int = 0
    skills_required: int = 0
    interests_matched: int = 0
    interests_required: int = 0

    @property
    def skills_details(self) -> str:
        return f"{self.skills_matched}/{self.skills_required}"

    @property
    def interests_details(self) -> str:
        return f"{self.interests_matched}/{self.interests_required}"

    def above(self, threshold: Decimal) -> bool:
        return self.global_score >= threshold


def _overlap_score(have: frozenset, required: frozenset) -> tuple[Decimal, int]:
    if not required:
        return NEUTRAL, 0
    if not have:
        return ZERO, 0
    matched = len(have & required)
    return clamp01(quantize(Decimal(matched) / Decimal(len(required)))), matched


class ScoringEngine:
    """Stateless scorer. Safe to share between runs and tasks."""

    def skills_score(self, candidate: CandidateProfile, opportunity: OpportunityProfile) -> Decimal:
        return _overlap_score(candidate.skills, opportunity.required_skills)[0]

    def interests_score(self, candidate: CandidateProfile, opportunity: OpportunityProfile) -> Decimal:
        return _overlap_score(candidate.interests, opportunity.tags)[0]

    def work_mode_score(self, candidate: CandidateProfile, opportunity: OpportunityProfile) -> Decimal:
        if candidate.work_mode is None or opportunity.work_mode is None:
            return NEUTRAL
        return ONE if candidate.work_mode == opportunity.work_mode else NEUTRAL

    def score(
        self,
        candidate: CandidateProfile,
        opportunity: OpportunityProfile,
        weights: Weights,
    ) -> CompatibilityScore:
        skills, skills_matched = _overlap_score(candidate.skills, opportunity.required_skills)
        interests, interests_matched = _overlap_score(candidate.interests, opportunity.tags)
        work_mode = self.work_mode_score(candidate, opportunity)

        combined = quantize(
            skills * weights.skills + interests * weights.interests + work_mode * weights.work_mode
        )

        return CompatibilityScore(
            candidate_id=candidate.id,
            opportunity_id=opportunity.id,
            global_score=clamp01(combined),
            skills_score=skills,
            interests_score=interests,
            work_mode_score=work_mode,
            weights=weights,
            skills_matched=skills_matched,
            skills_required=len(opportunity.required_skills),
            interests_matched=interests_matched,
            interests_required=len(opportunity.tags),
        )
