"""Unit tests for recommendation service"""

from datetime import datetime, time, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from backend.app.core.exceptions import NotFoundException, ValidationException
from backend.app.models.contractor import TradeType
from backend.app.schemas.availability import AssignmentWindow
from backend.app.schemas.geo import Coordinate, DistanceResult
from backend.app.services.recommendation_service import NO_CONTRACTORS_MESSAGE, RecommendationService
from engine.geo import haversine_miles
from tests.conftest import make_contractor, make_job

NOW = datetime(2030, 6, 2, 12, 0, tzinfo=timezone.utc)
JOB_TIME = datetime(2030, 6, 3, 10, 0)


def distance_row(job, contractors, miles=None):
    origin = Coordinate.of(job.latitude, job.longitude)
    return [[
        DistanceResult(
            origin=origin,
            destination=Coordinate.of(c.latitude, c.longitude),
            distance_miles=(miles or {}).get(c.id, float(c.id)),
            travel_time_minutes=int((miles or {}).get(c.id, float(c.id)) * 2) + 1,
        )
        for c in contractors
    ]]


class TestRecommendationService:
    """Test recommendation orchestration"""

    @pytest.fixture
    def job(self):
        return make_job(job_id=11, desired=JOB_TIME, duration_hours=2)

    @pytest.fixture
    def contractors(self):
        return [make_contractor(i, rating=4.0, latitude=40.0 + i / 100) for i in range(1, 4)]

    @pytest.fixture
    def repos(self, job, contractors):
        contractor_repo = AsyncMock()
        contractor_repo.get_active_ids_by_trade.return_value = [c.id for c in contractors]
        contractor_repo.get_by_ids.return_value = contractors
        contractor_repo.get_dispatcher_curated_list.return_value = set()

        assignment_repo = AsyncMock()
        assignment_repo.get_active_windows_for_contractor_on_date.return_value = []

        job_repo = AsyncMock()
        job_repo.get_by_id.return_value = job
        return contractor_repo, assignment_repo, job_repo

    @pytest.fixture
    def distance_service(self, job, contractors):
        service = MagicMock()
        service.road_factor = 1.3
        service.average_speed_mph = 30.0
        service.get_distance_batch = AsyncMock(return_value=distance_row(job, contractors))
        return service

    def make_service(self, repos, distance_service, **kwargs):
        contractor_repo, assignment_repo, job_repo = repos
        options = dict(buffer=timedelta(minutes=15), require_availability=False, clock=lambda: NOW)
        options.update(kwargs)
        return RecommendationService(contractor_repo, assignment_repo, job_repo, distance_service, **options)

    async def test_job_not_found(self, repos, distance_service):
        repos[2].get_by_id.return_value = None
        service = self.make_service(repos, distance_service)

        with pytest.raises(NotFoundException):
            await service.get_recommendations(99)

    async def test_past_job_rejected(self, repos, distance_service):
        repos[2].get_by_id.return_value = make_job(desired=datetime(2030, 6, 1, 9, 0))
        service = self.make_service(repos, distance_service)

        with pytest.raises(ValidationException, match="in the past"):
            await service.get_recommendations(11)

        repos[0].get_active_ids_by_trade.assert_not_called()

    async def test_ranks_by_distance_when_otherwise_equal(self, repos, distance_service):
        service = self.make_service(repos, distance_service)

        response = await service.get_recommendations(11)

        assert response.job_id == 11
        assert [r.contractor_id for r in response.recommendations] == [1, 2, 3]
        assert [r.rank for r in response.recommendations] == [1, 2, 3]
        assert response.total_eligible == 3
        assert response.message == "Success"
        assert response.requested_at == NOW

    async def test_single_distance_batch(self, repos, distance_service, job, contractors):
        service = self.make_service(repos, distance_service)

        await service.get_recommendations(11)

        distance_service.get_distance_batch.assert_awaited_once()
        origins, destinations = distance_service.get_distance_batch.await_args.args
        assert origins == [Coordinate.of(job.latitude, job.longitude)]
        assert destinations == [Coordinate.of(c.latitude, c.longitude) for c in contractors]

    async def test_trade_lookup_uses_job_type(self, repos, distance_service):
        service = self.make_service(repos, distance_service)

        await service.get_recommendations(11)

        repos[0].get_active_ids_by_trade.assert_awaited_once_with(TradeType.PLUMBING)

    async def test_truncates_to_max_recommendations(self, repos, job):
        contractors = [make_contractor(i) for i in range(1, 9)]
        repos[0].get_active_ids_by_trade.return_value = [c.id for c in contractors]
        repos[0].get_by_ids.return_value = contractors
        distance_service = MagicMock(road_factor=1.3, average_speed_mph=30.0)
        distance_service.get_distance_batch = AsyncMock(return_value=distance_row(job, contractors))
        service = self.make_service(repos, distance_service, max_recommendations=5)

        response = await service.get_recommendations(11)

        assert len(response.recommendations) == 5
        assert response.total_eligible == 8

    async def test_no_trade_matches(self, repos, distance_service):
        repos[0].get_active_ids_by_trade.return_value = []
        service = self.make_service(repos, distance_service)

        response = await service.get_recommendations(11)

        assert response.recommendations == []
        assert response.total_eligible == 0
        assert response.message == NO_CONTRACTORS_MESSAGE
        distance_service.get_distance_batch.assert_not_called()

    async def test_ineligible_records_filtered(self, repos, distance_service, job, contractors):
        # Store returned stale rows: one deactivated, one re-trained as HVAC
        stale = [
            contractors[0],
            make_contractor(2, is_active=False),
            make_contractor(3, trade_type=TradeType.HVAC),
        ]
        repos[0].get_by_ids.return_value = stale
        distance_service.get_distance_batch.return_value = distance_row(job, stale[:1])
        service = self.make_service(repos, distance_service)

        response = await service.get_recommendations(11)

        assert [r.contractor_id for r in response.recommendations] == [1]
        assert response.total_eligible == 1

    async def test_curated_list_intersection(self, repos, distance_service, job, contractors):
        repos[0].get_dispatcher_curated_list.return_value = {2, 3, 42}
        distance_service.get_distance_batch.return_value = distance_row(job, contractors[1:])
        service = self.make_service(repos, distance_service)

        await service.get_recommendations(11, dispatcher_id=5, curated_list_only=True)

        repos[0].get_dispatcher_curated_list.assert_awaited_once_with(5)
        repos[0].get_by_ids.assert_awaited_once_with([2, 3])

    async def test_empty_curated_list(self, repos, distance_service):
        service = self.make_service(repos, distance_service)

        response = await service.get_recommendations(11, dispatcher_id=5, curated_list_only=True)

        assert response.total_eligible == 0
        assert response.message == NO_CONTRACTORS_MESSAGE
        repos[0].get_by_ids.assert_not_called()

    async def test_curated_list_requires_dispatcher(self, repos, distance_service):
        service = self.make_service(repos, distance_service)

        with pytest.raises(ValidationException, match="dispatcher_id"):
            await service.get_recommendations(11, curated_list_only=True)

    async def test_unresolved_cell_uses_estimate(self, repos, distance_service, job, contractors):
        row = distance_row(job, contractors)
        row[0][1] = DistanceResult(
            origin=row[0][1].origin, destination=row[0][1].destination, status="NOT_FOUND", error_message="no route"
        )
        distance_service.get_distance_batch.return_value = row
        service = self.make_service(repos, distance_service)

        response = await service.get_recommendations(11)

        second = next(r for r in response.recommendations if r.contractor_id == 2)
        expected = haversine_miles(row[0][1].origin, row[0][1].destination) * 1.3
        assert second.distance_miles == pytest.approx(expected)

    async def test_busy_contractor_scores_lower_availability(self, repos, distance_service):
        def windows(contractor_id, target_date):
            if contractor_id == 1:
                return [AssignmentWindow(start=datetime(2030, 6, 3, 9, 0), duration_hours=3)]
            return []
        repos[1].get_active_windows_for_contractor_on_date.side_effect = windows
        service = self.make_service(repos, distance_service)

        response = await service.get_recommendations(11)

        by_id = {r.contractor_id: r for r in response.recommendations}
        assert by_id[1].sub_scores.availability == 0.5
        assert by_id[2].sub_scores.availability == 1.0
        # 15 minute buffer either side of the 9:00-12:00 job
        assert [(s.start.time(), s.end.time()) for s in by_id[1].available_slots] == [
            (time(12, 15), time(17, 0)),
        ]

    async def test_availability_looked_up_for_job_day(self, repos, distance_service):
        service = self.make_service(repos, distance_service)

        await service.get_recommendations(11)

        for call in repos[1].get_active_windows_for_contractor_on_date.await_args_list:
            assert call.args[1] == JOB_TIME.date()

    async def test_require_availability_drops_booked_contractors(self, repos, distance_service):
        def windows(contractor_id, target_date):
            if contractor_id == 1:
                return [AssignmentWindow(start=datetime(2030, 6, 3, 8, 0), duration_hours=9)]
            return []
        repos[1].get_active_windows_for_contractor_on_date.side_effect = windows
        service = self.make_service(repos, distance_service, require_availability=True)

        response = await service.get_recommendations(11)

        assert [r.contractor_id for r in response.recommendations] == [2, 3]
        assert response.total_eligible == 2

    async def test_booked_contractor_kept_by_default(self, repos, distance_service):
        repos[1].get_active_windows_for_contractor_on_date.return_value = [
            AssignmentWindow(start=datetime(2030, 6, 3, 8, 0), duration_hours=9)
        ]
        service = self.make_service(repos, distance_service)

        response = await service.get_recommendations(11)

        assert response.total_eligible == 3
        assert all(r.available_slots == [] for r in response.recommendations)
        assert all(r.sub_scores.availability == 0.0 for r in response.recommendations)

    async def test_invalid_working_hours_means_no_slots(self, repos, distance_service, job, contractors):
        contractors[0].working_hours_start = time(18, 0)
        service = self.make_service(repos, distance_service)

        response = await service.get_recommendations(11)

        first = next(r for r in response.recommendations if r.contractor_id == 1)
        assert first.available_slots == []

    async def test_contractor_with_bad_coordinates_skipped(self, repos, distance_service, job, contractors):
        contractors[2].latitude = 123.0
        distance_service.get_distance_batch.return_value = distance_row(job, contractors[:2])
        service = self.make_service(repos, distance_service)

        response = await service.get_recommendations(11)

        assert [r.contractor_id for r in response.recommendations] == [1, 2]
