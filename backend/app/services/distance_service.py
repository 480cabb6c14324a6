"""Road distance and travel time from a Distance Matrix provider"""

import asyncio
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx

from backend.app.core.config import settings
from backend.app.core.exceptions import ProviderTransportException
from backend.app.core.logging import get_logger
from backend.app.schemas.geo import DISTANCE_STATUS_OK, Coordinate, DistanceResult
from engine.geo import estimate_cell, fallback_matrix, validate_coordinates

logger = get_logger(__name__)

METERS_TO_MILES = 0.000621371

# Top-level statuses worth another attempt; anything else is final
TRANSIENT_STATUSES = frozenset({"OVER_QUERY_LIMIT", "UNKNOWN_ERROR"})


class DistanceService(ABC):
    """Distance lookups between coordinates, batch first"""

    def __init__(self, road_factor: float = None, average_speed_mph: float = None):
        self.road_factor = road_factor if road_factor is not None else settings.HAVERSINE_ROAD_FACTOR
        self.average_speed_mph = (
            average_speed_mph if average_speed_mph is not None else settings.FALLBACK_AVERAGE_SPEED_MPH
        )

    @abstractmethod
    async def get_distance_batch(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate]
    ) -> List[List[DistanceResult]]:
        """
        Distance matrix, one row per origin and one column per destination

        Raises:
            ValidationException: If a list is empty or a coordinate is out of range
        """

    async def get_distance_result(self, origin: Coordinate, destination: Coordinate) -> DistanceResult:
        """Single pair as a 1x1 batch; unresolved cells fall back to an estimate"""
        cell = (await self.get_distance_batch([origin], [destination]))[0][0]
        if cell.is_ok:
            return cell
        logger.warning(
            f"No route for {origin.to_provider_format()} -> {destination.to_provider_format()} "
            f"({cell.status}), using estimate"
        )
        return estimate_cell(origin, destination, self.road_factor, self.average_speed_mph)

    async def get_distance(self, origin: Coordinate, destination: Coordinate) -> float:
        """Distance in miles"""
        return (await self.get_distance_result(origin, destination)).distance_miles

    async def get_travel_time(self, origin: Coordinate, destination: Coordinate) -> int:
        """Driving time in whole minutes"""
        return (await self.get_distance_result(origin, destination)).travel_time_minutes


class GoogleMapsDistanceService(DistanceService):
    """
    Google Distance Matrix adapter

    One HTTP request per batch. Transport failures and transient statuses
    are retried with exponential backoff; once attempts run out every cell
    is estimated from great-circle distance instead.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
        base_url: str = None,
        max_attempts: int = None,
        initial_backoff_ms: int = None,
        timeout_seconds: float = None,
        road_factor: float = None,
        average_speed_mph: float = None
    ):
        """
        Initialize distance service

        Args:
            client: Shared HTTP client; one is created (and owned) when omitted
            api_key: Provider key, defaults to GOOGLE_MAPS_API_KEY
            base_url: Distance Matrix endpoint
            max_attempts: Total attempts per batch, including the first
            initial_backoff_ms: Delay before the second attempt; doubles after each failure
            timeout_seconds: Per-request timeout
            road_factor: Multiplier from great-circle to road distance for estimates
            average_speed_mph: Constant speed used for estimated travel time
        """
        super().__init__(road_factor=road_factor, average_speed_mph=average_speed_mph)
        self.api_key = api_key if api_key is not None else settings.GOOGLE_MAPS_API_KEY
        self.base_url = base_url or settings.DISTANCE_MATRIX_URL
        self.max_attempts = max(1, max_attempts if max_attempts is not None else settings.DISTANCE_PROVIDER_MAX_ATTEMPTS)
        self.initial_backoff = (
            initial_backoff_ms if initial_backoff_ms is not None else settings.DISTANCE_PROVIDER_INITIAL_BACKOFF_MS
        ) / 1000
        self.timeout = timeout_seconds if timeout_seconds is not None else settings.DISTANCE_PROVIDER_TIMEOUT_SECONDS

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.timeout)

        if not self.api_key:
            logger.warning("GOOGLE_MAPS_API_KEY is not set, distances will be estimated")

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "GoogleMapsDistanceService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def get_distance_batch(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate]
    ) -> List[List[DistanceResult]]:
        """
        Fetch a distance matrix in a single provider call

        Args:
            origins: Origin coordinates
            destinations: Destination coordinates

        Returns:
            Matrix of results; per-element provider failures are reported in
            the cell status rather than raised

        Raises:
            ValidationException: Before any network call, for empty lists or
                out-of-range coordinates
        """
        validate_coordinates(origins, destinations)

        if not self.api_key:
            return fallback_matrix(origins, destinations, self.road_factor, self.average_speed_mph)

        try:
            payload = await self._request_with_retry(origins, destinations)
        except ProviderTransportException as e:
            logger.warning(
                f"Distance provider unavailable after {e.attempts} attempts, "
                f"estimating {len(origins)}x{len(destinations)} matrix"
            )
            return fallback_matrix(origins, destinations, self.road_factor, self.average_speed_mph)

        return self._parse_matrix(payload, origins, destinations)

    async def _request_with_retry(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate]
    ) -> Dict[str, Any]:
        delay = self.initial_backoff
        last_error = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._fetch_matrix(origins, destinations)
            except (httpx.HTTPError, ValueError, ProviderTransportException) as e:
                last_error = e
                logger.warning(f"Distance provider attempt {attempt}/{self.max_attempts} failed: {e}")
                if attempt < self.max_attempts:
                    await asyncio.sleep(delay)
                    delay *= 2

        raise ProviderTransportException(str(last_error), attempts=self.max_attempts)

    async def _fetch_matrix(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate]
    ) -> Dict[str, Any]:
        """One attempt; raises on anything worth retrying"""
        params = {
            "origins": "|".join(c.to_provider_format() for c in origins),
            "destinations": "|".join(c.to_provider_format() for c in destinations),
            "units": "imperial",
            "mode": "driving",
            "key": self.api_key,
        }
        response = await self.client.get(self.base_url, params=params, timeout=self.timeout)
        response.raise_for_status()

        payload = response.json()
        if not isinstance(payload, dict):
            raise ProviderTransportException("Malformed distance matrix response")

        status = payload.get("status")
        if status in TRANSIENT_STATUSES:
            raise ProviderTransportException(f"Provider returned {status}")

        if status == DISTANCE_STATUS_OK:
            rows = payload.get("rows")
            if not isinstance(rows, list) or len(rows) != len(origins):
                raise ProviderTransportException("Distance matrix row count does not match origins")
            for row in rows:
                elements = row.get("elements") if isinstance(row, dict) else None
                if not isinstance(elements, list) or len(elements) != len(destinations):
                    raise ProviderTransportException("Distance matrix column count does not match destinations")

        return payload

    def _parse_matrix(
        self,
        payload: Dict[str, Any],
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate]
    ) -> List[List[DistanceResult]]:
        status = payload.get("status")
        if status != DISTANCE_STATUS_OK:
            message = payload.get("error_message") or f"Provider returned {status}"
            logger.error(f"Distance matrix request rejected: {message}")
            return [
                [
                    DistanceResult(origin=o, destination=d, status=status or "INVALID_RESPONSE", error_message=message)
                    for d in destinations
                ]
                for o in origins
            ]

        return [
            [
                self._parse_element(element, origin, destinations[j])
                for j, element in enumerate(row["elements"])
            ]
            for origin, row in zip(origins, payload["rows"])
        ]

    @staticmethod
    def _parse_element(element: Dict[str, Any], origin: Coordinate, destination: Coordinate) -> DistanceResult:
        status = element.get("status", "INVALID_ELEMENT")
        if status != DISTANCE_STATUS_OK:
            return DistanceResult(
                origin=origin,
                destination=destination,
                status=status,
                error_message=f"No route between {origin.to_provider_format()} and {destination.to_provider_format()}: {status}"
            )

        try:
            meters = float(element["distance"]["value"])
            seconds = float(element["duration"]["value"])
        except (KeyError, TypeError, ValueError):
            return DistanceResult(
                origin=origin,
                destination=destination,
                status="INVALID_ELEMENT",
                error_message="Element is missing distance or duration"
            )

        return DistanceResult(
            origin=origin,
            destination=destination,
            distance_miles=meters * METERS_TO_MILES,
            travel_time_minutes=math.ceil(seconds / 60),
        )
