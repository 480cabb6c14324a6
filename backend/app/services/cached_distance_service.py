"""Read-through cache in front of a distance service"""

from datetime import timedelta
from typing import Dict, List, Optional, Sequence, Set, Tuple

from pydantic import ValidationError

from backend.app.core.cache import CacheBackend
from backend.app.core.config import settings
from backend.app.core.exceptions import CacheUnavailableException
from backend.app.core.logging import get_logger
from backend.app.schemas.geo import Coordinate, DistanceResult
from backend.app.services.distance_service import DistanceService
from engine.geo import validate_coordinate, validate_coordinates

logger = get_logger(__name__)

KEY_NAMESPACE = "distance"

Pair = Tuple[Coordinate, Coordinate]


class CachedDistanceService(DistanceService):
    """
    Caches provider-measured cells per (origin, destination, metric)

    Coordinates are rounded before keying so nearby callers share entries.
    A batch costs at most one provider call covering the missing origins
    by the missing destinations. Cache outages degrade to provider calls.
    """

    def __init__(
        self,
        provider: DistanceService,
        backend: CacheBackend,
        ttl: timedelta = None,
        precision: int = None,
        metric: str = None
    ):
        """
        Initialize cached distance service

        Args:
            provider: Service answering cache misses
            backend: Key-value store for serialized results
            ttl: Absolute lifetime of an entry, defaults to DISTANCE_CACHE_TTL_HOURS
            precision: Decimal places kept in cache keys
            metric: Travel mode recorded in the key
        """
        super().__init__(road_factor=provider.road_factor, average_speed_mph=provider.average_speed_mph)
        self.provider = provider
        self.backend = backend
        self.ttl = ttl or timedelta(hours=settings.DISTANCE_CACHE_TTL_HOURS)
        self.precision = precision if precision is not None else settings.DISTANCE_CACHE_KEY_PRECISION
        self.metric = metric or settings.DISTANCE_CACHE_METRIC

    def _format(self, coordinate: Coordinate) -> str:
        p = self.precision
        return f"{coordinate.latitude:.{p}f},{coordinate.longitude:.{p}f}"

    def cache_key(self, origin: Coordinate, destination: Coordinate) -> str:
        return f"{KEY_NAMESPACE}:{self._format(origin)}:{self._format(destination)}:{self.metric}"

    async def get_distance_batch(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate]
    ) -> List[List[DistanceResult]]:
        """
        Distance matrix served from cache where possible

        Args:
            origins: Origin coordinates
            destinations: Destination coordinates

        Returns:
            Matrix in the caller's order, cells carrying the caller's coordinates

        Raises:
            ValidationException: For empty lists or out-of-range coordinates
        """
        validate_coordinates(origins, destinations)

        rounded_origins = [o.rounded(self.precision) for o in origins]
        rounded_destinations = [d.rounded(self.precision) for d in destinations]

        # First caller coordinate seen for each rounded one; misses are fetched with these
        origin_repr: Dict[Coordinate, Coordinate] = {}
        for original, rounded in zip(origins, rounded_origins):
            origin_repr.setdefault(rounded, original)
        destination_repr: Dict[Coordinate, Coordinate] = {}
        for original, rounded in zip(destinations, rounded_destinations):
            destination_repr.setdefault(rounded, original)

        keys: Dict[Pair, str] = {}
        for ro in origin_repr:
            for rd in destination_repr:
                keys[(ro, rd)] = self.cache_key(ro, rd)

        cached = await self._read_cached(keys)
        resolved = cached if cached is not None else {}
        missing: Set[Pair] = {pair for pair in keys if pair not in resolved}

        if missing:
            logger.debug(f"Distance cache: {len(keys) - len(missing)} hits, {len(missing)} misses")
            fetched = await self._fetch_missing(missing, origin_repr, destination_repr)
            resolved.update(fetched)
            # No writes once the backend has failed during this batch
            if cached is not None:
                await self._store(keys, fetched)
        else:
            logger.debug(f"Distance cache: all {len(keys)} pairs served from cache")

        return [
            [
                resolved[(ro, rd)].model_copy(update={"origin": origin, "destination": destination})
                for destination, rd in zip(destinations, rounded_destinations)
            ]
            for origin, ro in zip(origins, rounded_origins)
        ]

    async def _read_cached(self, keys: Dict[Pair, str]) -> Optional[Dict[Pair, DistanceResult]]:
        """Cached cells by pair, or None when the backend is unreachable"""
        try:
            raw = await self.backend.get_many(list(keys.values()))
        except CacheUnavailableException as e:
            logger.warning(f"Distance cache read failed, treating batch as misses: {e.message}")
            return None

        found = {}
        for pair, key in keys.items():
            value = raw.get(key)
            if value is None:
                continue
            try:
                found[pair] = DistanceResult.model_validate_json(value)
            except ValidationError:
                logger.warning(f"Discarding unreadable cache entry {key}")
        return found

    async def _fetch_missing(
        self,
        missing: Set[Pair],
        origin_repr: Dict[Coordinate, Coordinate],
        destination_repr: Dict[Coordinate, Coordinate]
    ) -> Dict[Pair, DistanceResult]:
        # Keep caller order so the sub-matrix request is deterministic
        miss_origins = [ro for ro in origin_repr if any(pair[0] == ro for pair in missing)]
        miss_destinations = [rd for rd in destination_repr if any(pair[1] == rd for pair in missing)]

        matrix = await self.provider.get_distance_batch(
            [origin_repr[ro] for ro in miss_origins],
            [destination_repr[rd] for rd in miss_destinations],
        )

        fetched: Dict[Pair, DistanceResult] = {}
        for ro, row in zip(miss_origins, matrix):
            for rd, cell in zip(miss_destinations, row):
                pair = (ro, rd)
                if pair not in missing:
                    continue
                fetched[pair] = cell
        return fetched

    async def _store(self, keys: Dict[Pair, str], fetched: Dict[Pair, DistanceResult]) -> None:
        # Estimates and element errors are never cached
        entries = {
            keys[pair]: cell.model_dump_json()
            for pair, cell in fetched.items()
            if cell.is_ok and not cell.estimated
        }
        if not entries:
            return
        try:
            await self.backend.set_many(entries, self.ttl)
        except CacheUnavailableException as e:
            logger.warning(f"Distance cache write skipped for {len(entries)} entries: {e.message}")

    async def invalidate_location(self, latitude: float, longitude: float) -> int:
        """
        Drop every cached pair that starts or ends at a coordinate

        Used when a contractor's base location changes.

        Returns:
            Number of entries removed
        """
        coordinate = Coordinate.of(latitude, longitude)
        validate_coordinate(coordinate)
        formatted = self._format(coordinate.rounded(self.precision))

        removed = 0
        for pattern in (f"{KEY_NAMESPACE}:{formatted}:*", f"{KEY_NAMESPACE}:*:{formatted}:*"):
            try:
                removed += await self.backend.delete_pattern(pattern)
            except CacheUnavailableException as e:
                logger.warning(f"Distance cache invalidation failed for {formatted}: {e.message}")

        logger.info(f"Invalidated {removed} cached distances for {formatted}")
        return removed
