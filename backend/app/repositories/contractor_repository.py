"""Contractor repository for database operations"""

from typing import List, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.contractor import Contractor, TradeType
from backend.app.models.dispatcher_contractor_list import DispatcherContractorList
from backend.app.core.logging import get_logger

logger = get_logger(__name__)


class ContractorRepository:
    """Repository for contractor lookups"""

    def __init__(self, db: AsyncSession):
        """
        Initialize contractor repository

        Args:
            db: Database session
        """
        self.db = db

    async def get_by_id(self, contractor_id: int) -> Optional[Contractor]:
        """
        Get contractor by ID

        Args:
            contractor_id: Contractor ID

        Returns:
            Contractor if found, None otherwise
        """
        stmt = select(Contractor).where(Contractor.id == contractor_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_ids(self, contractor_ids: Sequence[int]) -> List[Contractor]:
        """
        Load several contractors in one query

        Args:
            contractor_ids: Contractor IDs, duplicates allowed

        Returns:
            Contractors ordered by ID; unknown IDs are skipped
        """
        if not contractor_ids:
            return []
        stmt = (
            select(Contractor)
            .where(Contractor.id.in_(set(contractor_ids)))
            .order_by(Contractor.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_active_ids_by_trade(self, trade_type: TradeType) -> List[int]:
        """IDs of active contractors in a trade, ascending"""
        stmt = (
            select(Contractor.id)
            .where(Contractor.trade_type == trade_type, Contractor.is_active.is_(True))
            .order_by(Contractor.id)
        )
        result = await self.db.execute(stmt)
        ids = list(result.scalars().all())
        logger.debug(f"Found {len(ids)} active contractors for trade {trade_type}")
        return ids

    async def get_dispatcher_curated_list(self, dispatcher_id: int) -> Set[int]:
        """
        Contractor IDs on a dispatcher's curated list

        Args:
            dispatcher_id: Dispatcher ID

        Returns:
            Set of contractor IDs, empty when the dispatcher has no list
        """
        stmt = select(DispatcherContractorList.contractor_id).where(
            DispatcherContractorList.dispatcher_id == dispatcher_id
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())
