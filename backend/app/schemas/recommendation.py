"""Recommendation schemas returned to the HTTP layer"""

from typing import List, Optional
from datetime import datetime

from pydantic import BaseModel, Field

from backend.app.schemas.availability import TimeSlot


class SubScores(BaseModel):
    """Normalized components of the composite score"""
    rating: float = Field(..., ge=0.0, le=1.0, description="Rating component")
    distance: float = Field(..., ge=0.0, le=1.0, description="Proximity component, relative to the pool")
    availability: float = Field(..., ge=0.0, le=1.0, description="Availability component")


class ScoredCandidate(BaseModel):
    """One ranked contractor with its explanatory sub-scores"""
    contractor_id: int = Field(..., description="Contractor identifier")
    name: Optional[str] = Field(None, description="Contractor display name")
    rank: int = Field(..., ge=1, description="1-based position in the final ordering")
    score: float = Field(..., ge=0.0, le=1.0, description="Composite score")
    sub_scores: SubScores
    rating: Optional[float] = Field(None, description="Average rating, None when unrated")
    review_count: int = Field(0, ge=0)
    distance_miles: float = Field(..., ge=0.0)
    travel_time_minutes: int = Field(..., ge=0)
    available_slots: List[TimeSlot] = Field(default_factory=list)


class RecommendationResponse(BaseModel):
    """Ranked contractors for a job plus response metadata"""
    job_id: int
    recommendations: List[ScoredCandidate] = Field(default_factory=list)
    total_eligible: int = Field(..., ge=0, description="Eligible contractors before truncation")
    requested_at: datetime
    message: str = "Success"
