"""Job model"""

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
from backend.app.core.database import Base
from backend.app.models.base import TimestampMixin
from backend.app.models.contractor import TradeType


class Job(Base, TimestampMixin):
    """Customer job waiting for a contractor"""

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_type = Column(SQLEnum(TradeType), nullable=False, index=True)
    location = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    desired_datetime = Column(DateTime, nullable=False, index=True)  # naive UTC
    estimated_duration_hours = Column(Float, nullable=False)
    description = Column(Text, nullable=True)

    # Relationships
    assignments = relationship("Assignment", back_populates="job")

    def __repr__(self):
        return f"<Job(id={self.id}, job_type={self.job_type}, desired_datetime={self.desired_datetime})>"
