from app.models.candidate import Candidate
from app.models.matching_result import MatchingResult
from app.models.opportunity import Opportunity

__all__ = [
    "Candidate",
    "Opportunity",
    "MatchingResult",
]
