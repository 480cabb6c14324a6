"""Dispatcher curated contractor list model"""

from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from backend.app.core.database import Base
from backend.app.models.base import TimestampMixin


class DispatcherContractorList(Base, TimestampMixin):
    """One contractor on one dispatcher's curated list"""

    __tablename__ = "dispatcher_contractor_lists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dispatcher_id = Column(Integer, nullable=False, index=True)
    contractor_id = Column(Integer, ForeignKey("contractors.id"), nullable=False, index=True)

    contractor = relationship("Contractor")

    __table_args__ = (
        UniqueConstraint('dispatcher_id', 'contractor_id', name='uq_dispatcher_contractor'),
    )

    def __repr__(self):
        return f"<DispatcherContractorList(dispatcher_id={self.dispatcher_id}, contractor_id={self.contractor_id})>"
