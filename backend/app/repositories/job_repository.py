"""Job repository for database operations"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.job import Job


class JobRepository:
    """Repository for job lookups"""

    def __init__(self, db: AsyncSession):
        """
        Initialize job repository

        Args:
            db: Database session
        """
        self.db = db

    async def get_by_id(self, job_id: int) -> Optional[Job]:
        """
        Get job by ID

        Args:
            job_id: Job ID

        Returns:
            Job if found, None otherwise
        """
        stmt = select(Job).where(Job.id == job_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
