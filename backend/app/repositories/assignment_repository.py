"""Assignment repository for calendar lookups"""

from datetime import date, datetime, time, timedelta
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.assignment import Assignment, ACTIVE_ASSIGNMENT_STATUSES
from backend.app.models.job import Job
from backend.app.schemas.availability import AssignmentWindow
from backend.app.core.logging import get_logger

logger = get_logger(__name__)


class AssignmentRepository:
    """Repository for assignment-related database operations"""

    def __init__(self, db: AsyncSession):
        """
        Initialize assignment repository

        Args:
            db: Database session
        """
        self.db = db

    async def get_active_windows_for_contractor_on_date(
        self,
        contractor_id: int,
        target_date: date
    ) -> List[AssignmentWindow]:
        """
        Time blocked by a contractor's active assignments around a day

        Jobs starting the previous day are included so that work running
        past midnight still blocks the morning.

        Args:
            contractor_id: Contractor ID
            target_date: Day being scheduled

        Returns:
            Windows ordered by start time
        """
        day_start = datetime.combine(target_date, time.min)
        window_start = day_start - timedelta(days=1)
        window_end = day_start + timedelta(days=1)

        stmt = (
            select(Assignment.id, Job.desired_datetime, Job.estimated_duration_hours)
            .join(Job, Assignment.job_id == Job.id)
            .where(
                Assignment.contractor_id == contractor_id,
                Assignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
                Job.desired_datetime >= window_start,
                Job.desired_datetime < window_end,
            )
            .order_by(Job.desired_datetime)
        )
        result = await self.db.execute(stmt)

        return [
            AssignmentWindow(assignment_id=row.id, start=row.desired_datetime, duration_hours=row.estimated_duration_hours)
            for row in result.all()
        ]
