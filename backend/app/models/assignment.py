"""Assignment model"""

from sqlalchemy import Column, Integer, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from backend.app.core.database import Base
from backend.app.models.base import TimestampMixin
import enum


class AssignmentStatus(str, enum.Enum):
    """Assignment lifecycle status"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Statuses that occupy time on the contractor's calendar
ACTIVE_ASSIGNMENT_STATUSES = (
    AssignmentStatus.PENDING,
    AssignmentStatus.ACCEPTED,
    AssignmentStatus.IN_PROGRESS,
)


class Assignment(Base, TimestampMixin):
    """Link between a job and the contractor dispatched to it"""

    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    contractor_id = Column(Integer, ForeignKey("contractors.id"), nullable=False, index=True)
    status = Column(SQLEnum(AssignmentStatus), nullable=False, default=AssignmentStatus.PENDING, index=True)

    # Relationships
    job = relationship("Job", back_populates="assignments")
    contractor = relationship("Contractor", back_populates="assignments")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_ASSIGNMENT_STATUSES

    def __repr__(self):
        return f"<Assignment(id={self.id}, job_id={self.job_id}, contractor_id={self.contractor_id}, status={self.status})>"
