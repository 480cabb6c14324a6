"""Scoring engine for contractor-job matching"""

import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Collection, Iterable, List, Optional, Tuple

from backend.app.core.exceptions import ValidationException
from backend.app.core.logging import get_logger
from backend.app.schemas.availability import TimeSlot
from backend.app.schemas.recommendation import ScoredCandidate, SubScores
from engine.availability import slot_covers

logger = get_logger(__name__)

MAX_RATING = 5.0


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the composite score; must sum to 1.0"""
    rating: float = 0.4
    distance: float = 0.4
    availability: float = 0.2

    def __post_init__(self):
        values = (self.rating, self.distance, self.availability)
        if any(v < 0 for v in values):
            raise ValidationException("Scoring weights must be non-negative", details=self.as_dict())
        if not math.isclose(sum(values), 1.0, abs_tol=1e-9):
            raise ValidationException(
                f"Scoring weights must sum to 1.0, got {sum(values):.4f}",
                details=self.as_dict()
            )

    def as_dict(self) -> dict:
        return {"rating": self.rating, "distance": self.distance, "availability": self.availability}


@dataclass
class ContractorWithDistance:
    """Eligible contractor enriched with travel and calendar data for one job"""
    contractor: Any  # Contractor model or anything with the same attributes
    distance_miles: float
    travel_time_minutes: int
    available_slots: List[TimeSlot] = field(default_factory=list)


@dataclass(frozen=True)
class _Scored:
    candidate: ContractorWithDistance
    score: float
    sub_scores: SubScores


class ScoringEngine:
    """
    Ranks contractors for a job by a weighted sum of normalized signals

    Rating, proximity and availability each map to [0, 1]; proximity is
    normalized against the farthest contractor in the pool being ranked,
    so scores are only comparable within one call to `rank`.
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        neutral_rating: float = 0.5,
        partial_availability: float = 0.5
    ):
        """
        Initialize scoring engine

        Args:
            weights: Component weights (defaults to rating 0.4, distance 0.4, availability 0.2)
            neutral_rating: Rating component for contractors without reviews
            partial_availability: Availability component when the contractor has
                free time that day but not at the requested start
        """
        self.weights = weights or ScoringWeights()
        self.neutral_rating = neutral_rating
        self.partial_availability = partial_availability

    @classmethod
    def from_settings(cls, settings) -> "ScoringEngine":
        return cls(
            weights=ScoringWeights(
                rating=settings.SCORING_RATING_WEIGHT,
                distance=settings.SCORING_DISTANCE_WEIGHT,
                availability=settings.SCORING_AVAILABILITY_WEIGHT,
            ),
            neutral_rating=settings.SCORING_NEUTRAL_RATING,
            partial_availability=settings.SCORING_PARTIAL_AVAILABILITY,
        )

    # Eligibility

    def is_eligible(self, contractor: Any, job: Any, curated_ids: Optional[Collection[int]] = None) -> bool:
        """
        Eligibility is a filter, not a penalty

        Args:
            contractor: Contractor record
            job: Job being staffed
            curated_ids: Dispatcher's curated list when the caller asked for it
        """
        if not contractor.is_active:
            return False
        if contractor.trade_type != job.job_type:
            return False
        if curated_ids is not None and contractor.id not in curated_ids:
            return False
        return True

    def filter_eligible(
        self,
        contractors: Iterable[Any],
        job: Any,
        curated_ids: Optional[Collection[int]] = None
    ) -> List[Any]:
        return [c for c in contractors if self.is_eligible(c, job, curated_ids)]

    # Components

    def rating_component(self, rating: Optional[float]) -> float:
        if rating is None:
            return self.neutral_rating
        return max(0.0, min(1.0, float(rating) / MAX_RATING))

    def distance_component(self, distance_miles: float, max_distance_miles: float) -> float:
        if distance_miles <= 0 or max_distance_miles <= 0:
            return 1.0
        return max(0.0, min(1.0, 1.0 - distance_miles / max_distance_miles))

    def availability_component(self, job: Any, slots: List[TimeSlot]) -> float:
        if not slots:
            return 0.0
        duration = timedelta(hours=float(job.estimated_duration_hours))
        if slot_covers(slots, job.desired_datetime, duration):
            return 1.0
        return self.partial_availability

    def compute_score(self, rating_score: float, distance_score: float, availability_score: float) -> float:
        """
        Weighted composite of the three components

        Raises:
            ValidationException: If a component is outside [0, 1]
        """
        for name, value in (
            ("rating", rating_score),
            ("distance", distance_score),
            ("availability", availability_score),
        ):
            if not 0.0 <= value <= 1.0:
                raise ValidationException(f"{name} component must be between 0.0 and 1.0, got {value}")

        score = (
            self.weights.rating * rating_score
            + self.weights.distance * distance_score
            + self.weights.availability * availability_score
        )
        return max(0.0, min(1.0, score))

    # Ranking

    def score_candidate(self, job: Any, candidate: ContractorWithDistance, max_distance_miles: float) -> Tuple[float, SubScores]:
        sub_scores = SubScores(
            rating=self.rating_component(candidate.contractor.average_rating),
            distance=self.distance_component(candidate.distance_miles, max_distance_miles),
            availability=self.availability_component(job, candidate.available_slots),
        )
        score = self.compute_score(sub_scores.rating, sub_scores.distance, sub_scores.availability)
        return score, sub_scores

    @staticmethod
    def _sort_key(scored: _Scored) -> Tuple[float, float, float, int]:
        contractor = scored.candidate.contractor
        # Unrated contractors sort below every rated one at equal score
        rating = contractor.average_rating if contractor.average_rating is not None else -1.0
        return (-scored.score, -float(rating), scored.candidate.distance_miles, int(contractor.id))

    def rank(self, job: Any, candidates: List[ContractorWithDistance], top_n: int = 5) -> List[ScoredCandidate]:
        """
        Score, order and truncate candidates

        Ordering: score desc, rating desc, distance asc, contractor id asc.

        Args:
            job: Job being staffed
            candidates: Eligible contractors with distance and slots
            top_n: Maximum number of results

        Returns:
            Ranked candidates, rank 1 first
        """
        if top_n <= 0 or not candidates:
            return []

        max_distance = max(c.distance_miles for c in candidates)

        scored = []
        for candidate in candidates:
            score, sub_scores = self.score_candidate(job, candidate, max_distance)
            scored.append(_Scored(candidate=candidate, score=score, sub_scores=sub_scores))

        scored.sort(key=self._sort_key)

        ranked = []
        for position, item in enumerate(scored[:top_n], start=1):
            contractor = item.candidate.contractor
            ranked.append(ScoredCandidate(
                contractor_id=contractor.id,
                name=getattr(contractor, "name", None),
                rank=position,
                score=item.score,
                sub_scores=item.sub_scores,
                rating=contractor.average_rating,
                review_count=contractor.review_count or 0,
                distance_miles=item.candidate.distance_miles,
                travel_time_minutes=item.candidate.travel_time_minutes,
                available_slots=item.candidate.available_slots,
            ))

        logger.debug(f"Ranked {len(candidates)} candidates, returning {len(ranked)}")
        return ranked
