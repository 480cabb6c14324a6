"""Geographic value types shared by the distance services"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


DISTANCE_STATUS_OK = "OK"


class Coordinate(BaseModel):
    """Latitude/longitude pair in decimal degrees"""
    latitude: float = Field(..., description="Latitude in decimal degrees")
    longitude: float = Field(..., description="Longitude in decimal degrees")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def of(cls, latitude: float, longitude: float) -> "Coordinate":
        return cls(latitude=float(latitude), longitude=float(longitude))

    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0

    def rounded(self, precision: int) -> "Coordinate":
        return Coordinate(
            latitude=round(self.latitude, precision),
            longitude=round(self.longitude, precision),
        )

    def to_provider_format(self) -> str:
        """`lat,lng` as the distance matrix and geocoding APIs expect it"""
        return f"{self.latitude},{self.longitude}"


class DistanceResult(BaseModel):
    """One origin/destination cell of a distance matrix"""
    origin: Coordinate
    destination: Coordinate
    distance_miles: Optional[float] = Field(None, ge=0.0, description="Road distance in miles")
    travel_time_minutes: Optional[int] = Field(None, ge=0, description="Driving time in whole minutes")
    status: str = Field(DISTANCE_STATUS_OK, description="OK or the provider's element status code")
    error_message: Optional[str] = None
    estimated: bool = Field(False, description="True when computed by the Haversine fallback")

    @model_validator(mode="after")
    def ok_cells_carry_values(self) -> "DistanceResult":
        if self.status == DISTANCE_STATUS_OK and (self.distance_miles is None or self.travel_time_minutes is None):
            raise ValueError("OK results require distance_miles and travel_time_minutes")
        return self

    @property
    def is_ok(self) -> bool:
        return (
            self.status == DISTANCE_STATUS_OK
            and self.distance_miles is not None
            and self.travel_time_minutes is not None
        )
