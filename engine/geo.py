"""Great-circle distance estimates used when the distance provider is down"""

import math
from typing import List, Sequence

import numpy as np

from backend.app.core.exceptions import ValidationException
from backend.app.schemas.geo import Coordinate, DistanceResult

EARTH_RADIUS_MILES = 3959.0
DEFAULT_ROAD_FACTOR = 1.3
DEFAULT_AVERAGE_SPEED_MPH = 30.0


def validate_coordinate(coordinate: Coordinate, label: str = "coordinate") -> None:
    """
    Reject coordinates outside [-90, 90] / [-180, 180]

    Raises:
        ValidationException: If latitude or longitude is out of range
    """
    if not -90.0 <= coordinate.latitude <= 90.0:
        raise ValidationException(
            f"Latitude must be between -90 and 90, got {coordinate.latitude}",
            details={"field": label, "latitude": coordinate.latitude}
        )
    if not -180.0 <= coordinate.longitude <= 180.0:
        raise ValidationException(
            f"Longitude must be between -180 and 180, got {coordinate.longitude}",
            details={"field": label, "longitude": coordinate.longitude}
        )


def validate_coordinates(origins: Sequence[Coordinate], destinations: Sequence[Coordinate]) -> None:
    """Validate a whole batch before anything touches the network"""
    if not origins:
        raise ValidationException("Origins cannot be empty")
    if not destinations:
        raise ValidationException("Destinations cannot be empty")
    for origin in origins:
        validate_coordinate(origin, "origin")
    for destination in destinations:
        validate_coordinate(destination, "destination")


def haversine_miles(origin: Coordinate, destination: Coordinate) -> float:
    """Great-circle distance in miles, no road correction"""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(destination.longitude - origin.longitude)

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_matrix(origins: Sequence[Coordinate], destinations: Sequence[Coordinate]) -> np.ndarray:
    """
    Vectorized great-circle distances

    Returns:
        Array of shape (len(origins), len(destinations)) in miles
    """
    o = np.radians(np.array([[c.latitude, c.longitude] for c in origins], dtype=float))
    d = np.radians(np.array([[c.latitude, c.longitude] for c in destinations], dtype=float))

    lat1 = o[:, 0][:, np.newaxis]
    lng1 = o[:, 1][:, np.newaxis]
    lat2 = d[:, 0][np.newaxis, :]
    lng2 = d[:, 1][np.newaxis, :]

    a = np.sin((lat2 - lat1) / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin((lng2 - lng1) / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_MILES * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def estimate_travel_minutes(distance_miles: float, average_speed_mph: float = DEFAULT_AVERAGE_SPEED_MPH) -> int:
    """Whole minutes at a constant speed, never below one minute"""
    return max(1, math.ceil(distance_miles / average_speed_mph * 60))


def fallback_matrix(
    origins: Sequence[Coordinate],
    destinations: Sequence[Coordinate],
    road_factor: float = DEFAULT_ROAD_FACTOR,
    average_speed_mph: float = DEFAULT_AVERAGE_SPEED_MPH
) -> List[List[DistanceResult]]:
    """
    Estimated distance matrix for when the provider cannot be reached

    Every cell is computed independently and marked `estimated`. Distances
    are positive for distinct points and 0.0 for identical ones; travel
    time is always at least one minute.
    """
    miles = haversine_matrix(origins, destinations) * road_factor
    return [
        [
            DistanceResult(
                origin=origin,
                destination=destination,
                distance_miles=float(miles[i, j]),
                travel_time_minutes=estimate_travel_minutes(float(miles[i, j]), average_speed_mph),
                estimated=True,
            )
            for j, destination in enumerate(destinations)
        ]
        for i, origin in enumerate(origins)
    ]


def estimate_cell(
    origin: Coordinate,
    destination: Coordinate,
    road_factor: float = DEFAULT_ROAD_FACTOR,
    average_speed_mph: float = DEFAULT_AVERAGE_SPEED_MPH
) -> DistanceResult:
    """Single-pair fallback, used to patch cells the provider could not resolve"""
    miles = haversine_miles(origin, destination) * road_factor
    return DistanceResult(
        origin=origin,
        destination=destination,
        distance_miles=miles,
        travel_time_minutes=estimate_travel_minutes(miles, average_speed_mph),
        estimated=True,
    )
