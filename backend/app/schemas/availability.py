"""Availability value types"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TimeSlot(BaseModel):
    """Free interval on a contractor's calendar"""
    start: datetime = Field(..., description="Slot start (naive UTC)")
    end: datetime = Field(..., description="Slot end (naive UTC)")

    model_config = ConfigDict(frozen=True)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def covers(self, start: datetime, duration: timedelta) -> bool:
        """Whether [start, start + duration] fits entirely inside this slot"""
        return self.start <= start and start + duration <= self.end


class AssignmentWindow(BaseModel):
    """Time an active assignment occupies, projected from its job"""
    start: datetime
    duration_hours: float = Field(..., ge=0.0)
    assignment_id: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(hours=self.duration_hours)
