"""Recommendation service for ranking contractors against a job"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from backend.app.repositories.assignment_repository import AssignmentRepository
from backend.app.repositories.contractor_repository import ContractorRepository
from backend.app.repositories.job_repository import JobRepository
from backend.app.models.contractor import Contractor
from backend.app.models.job import Job
from backend.app.schemas.availability import TimeSlot
from backend.app.schemas.geo import Coordinate, DistanceResult
from backend.app.schemas.recommendation import RecommendationResponse
from backend.app.services.distance_service import DistanceService
from backend.app.core.config import settings
from backend.app.core.exceptions import NotFoundException, ValidationException
from backend.app.core.logging import get_logger
from engine.availability import compute_available_slots, has_any_availability, to_naive_utc
from engine.geo import estimate_cell
from engine.scoring_engine import ContractorWithDistance, ScoringEngine

logger = get_logger(__name__)

NO_CONTRACTORS_MESSAGE = "No available contractors"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecommendationService:
    """Service for contractor recommendations"""

    def __init__(
        self,
        contractor_repository: ContractorRepository,
        assignment_repository: AssignmentRepository,
        job_repository: JobRepository,
        distance_service: DistanceService,
        scoring_engine: Optional[ScoringEngine] = None,
        max_recommendations: int = None,
        slot_granularity: timedelta = None,
        buffer: timedelta = None,
        require_availability: bool = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        """
        Initialize recommendation service

        Args:
            contractor_repository: Contractor repository
            assignment_repository: Assignment repository
            job_repository: Job repository
            distance_service: Distance lookups, normally the cached service
            scoring_engine: Optional scoring engine (built from settings if None)
            max_recommendations: Number of contractors returned
            slot_granularity: Shortest free interval reported as a slot
            buffer: Padding around existing assignments
            require_availability: Drop contractors with no slot long enough for the job
            clock: Current time, timezone aware
        """
        self.contractor_repo = contractor_repository
        self.assignment_repo = assignment_repository
        self.job_repo = job_repository
        self.distance_service = distance_service
        self.scoring_engine = scoring_engine or ScoringEngine.from_settings(settings)
        self.max_recommendations = (
            max_recommendations if max_recommendations is not None else settings.MAX_RECOMMENDATIONS
        )
        self.slot_granularity = slot_granularity or timedelta(minutes=settings.SLOT_GRANULARITY_MINUTES)
        self.buffer = buffer if buffer is not None else timedelta(minutes=settings.AVAILABILITY_BUFFER_MINUTES)
        self.require_availability = (
            require_availability if require_availability is not None else settings.RECOMMEND_REQUIRE_AVAILABILITY
        )
        self.clock = clock

    async def get_recommendations(
        self,
        job_id: int,
        dispatcher_id: Optional[int] = None,
        curated_list_only: bool = False
    ) -> RecommendationResponse:
        """
        Rank eligible contractors for a job

        Args:
            job_id: Job ID
            dispatcher_id: Dispatcher asking, needed for curated_list_only
            curated_list_only: Restrict to the dispatcher's curated list

        Returns:
            Top contractors with sub-scores; empty with total_eligible 0 when
            nobody qualifies

        Raises:
            NotFoundException: If the job does not exist
            ValidationException: If the job is in the past or curated_list_only
                is requested without a dispatcher
        """
        requested_at = self.clock()
        logger.info(
            f"Recommending contractors for job {job_id}",
            extra={"job_id": job_id, "dispatcher_id": dispatcher_id}
        )

        job = await self.job_repo.get_by_id(job_id)
        if not job:
            raise NotFoundException(f"Job not found: {job_id}")

        if to_naive_utc(job.desired_datetime) < to_naive_utc(requested_at):
            raise ValidationException(
                f"Job {job_id} desired time {job.desired_datetime} is in the past",
                details={"job_id": job_id, "desired_datetime": str(job.desired_datetime)}
            )

        if curated_list_only and dispatcher_id is None:
            raise ValidationException("dispatcher_id is required when curated_list_only is set")

        contractors = await self._load_eligible(job, dispatcher_id, curated_list_only)
        if not contractors:
            logger.info(f"No eligible contractors for job {job_id}", extra={"job_id": job_id})
            return RecommendationResponse(
                job_id=job_id,
                recommendations=[],
                total_eligible=0,
                requested_at=requested_at,
                message=NO_CONTRACTORS_MESSAGE
            )

        distances = await self._distances(job, contractors)

        candidates: List[ContractorWithDistance] = []
        for contractor in contractors:
            slots = await self._available_slots(contractor, job)
            if slots is None:
                continue
            cell = distances[contractor.id]
            candidates.append(ContractorWithDistance(
                contractor=contractor,
                distance_miles=cell.distance_miles,
                travel_time_minutes=cell.travel_time_minutes,
                available_slots=slots
            ))

        if not candidates:
            return RecommendationResponse(
                job_id=job_id,
                recommendations=[],
                total_eligible=0,
                requested_at=requested_at,
                message=NO_CONTRACTORS_MESSAGE
            )

        ranked = self.scoring_engine.rank(job, candidates, top_n=self.max_recommendations)
        logger.info(
            f"Returning {len(ranked)} of {len(candidates)} contractors for job {job_id}",
            extra={"job_id": job_id}
        )

        return RecommendationResponse(
            job_id=job_id,
            recommendations=ranked,
            total_eligible=len(candidates),
            requested_at=requested_at
        )

    async def _load_eligible(
        self,
        job: Job,
        dispatcher_id: Optional[int],
        curated_list_only: bool
    ) -> List[Contractor]:
        ids = await self.contractor_repo.get_active_ids_by_trade(job.job_type)

        curated = None
        if curated_list_only:
            curated = await self.contractor_repo.get_dispatcher_curated_list(dispatcher_id)
            ids = [i for i in ids if i in curated]

        if not ids:
            return []

        records = await self.contractor_repo.get_by_ids(ids)
        eligible = self.scoring_engine.filter_eligible(records, job, curated)

        located = []
        for contractor in eligible:
            if Coordinate.of(contractor.latitude, contractor.longitude).is_valid():
                located.append(contractor)
            else:
                logger.warning(
                    f"Skipping contractor {contractor.id} with invalid coordinates",
                    extra={"contractor_id": contractor.id}
                )
        return located

    async def _distances(self, job: Job, contractors: List[Contractor]) -> Dict[int, DistanceResult]:
        """One batch: the job as the only origin, every contractor as a destination"""
        origin = Coordinate.of(job.latitude, job.longitude)
        destinations = [Coordinate.of(c.latitude, c.longitude) for c in contractors]

        row = (await self.distance_service.get_distance_batch([origin], destinations))[0]

        distances = {}
        for contractor, cell in zip(contractors, row):
            if not cell.is_ok:
                logger.warning(
                    f"No route to contractor {contractor.id} ({cell.status}), using estimate",
                    extra={"contractor_id": contractor.id}
                )
                cell = estimate_cell(
                    cell.origin,
                    cell.destination,
                    self.distance_service.road_factor,
                    self.distance_service.average_speed_mph
                )
            distances[contractor.id] = cell
        return distances

    async def _available_slots(self, contractor: Contractor, job: Job) -> Optional[List[TimeSlot]]:
        """
        Free slots on the job's day

        Returns:
            Slots, or None when the contractor should be left out of the ranking
        """
        target_date = to_naive_utc(job.desired_datetime).date()
        windows = await self.assignment_repo.get_active_windows_for_contractor_on_date(contractor.id, target_date)

        try:
            if self.require_availability and not has_any_availability(
                contractor.working_hours_start,
                contractor.working_hours_end,
                windows,
                target_date,
                min_slot_length=timedelta(hours=float(job.estimated_duration_hours)),
                buffer=self.buffer
            ):
                logger.debug(f"Contractor {contractor.id} has no room for job {job.id}")
                return None

            return compute_available_slots(
                contractor.working_hours_start,
                contractor.working_hours_end,
                windows,
                target_date,
                slot_granularity=self.slot_granularity,
                buffer=self.buffer
            )
        except ValidationException as e:
            logger.warning(
                f"Contractor {contractor.id} has invalid working hours: {e.message}",
                extra={"contractor_id": contractor.id}
            )
            if self.require_availability:
                return None
            return []
