"""Contractor model"""

from sqlalchemy import Column, Integer, String, Float, Boolean, Time, Enum as SQLEnum
from sqlalchemy.orm import relationship
from backend.app.core.database import Base
from backend.app.models.base import TimestampMixin
import enum


class TradeType(str, enum.Enum):
    """Service categories a contractor can specialize in"""
    FLOORING = "flooring"
    HVAC = "hvac"
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    OTHER = "other"


class Contractor(Base, TimestampMixin):
    """Service professional available for dispatch"""

    __tablename__ = "contractors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    trade_type = Column(SQLEnum(TradeType), nullable=False, index=True)
    working_hours_start = Column(Time, nullable=False)
    working_hours_end = Column(Time, nullable=False)
    average_rating = Column(Float, nullable=True)  # None until the first review
    review_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Relationships
    assignments = relationship("Assignment", back_populates="contractor")

    def __repr__(self):
        return f"<Contractor(id={self.id}, name={self.name}, trade_type={self.trade_type})>"
