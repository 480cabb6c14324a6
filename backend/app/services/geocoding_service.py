"""Address geocoding via the Google Geocoding API"""

import time
from datetime import timedelta
from typing import Callable, Optional

import httpx

from backend.app.core.cache import TTLCache
from backend.app.core.config import settings
from backend.app.core.logging import get_logger
from backend.app.schemas.geo import Coordinate

logger = get_logger(__name__)


def normalize_address(address: str) -> str:
    return " ".join(address.split()).lower()


class GoogleMapsGeocodingService:
    """
    Resolves free-text addresses to coordinates

    Never raises for lookup problems: an empty address, a missing API key,
    a rejected request or a network failure all resolve to the configured
    default coordinate. Successful lookups are cached per normalized address.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
        base_url: str = None,
        cache_ttl: timedelta = None,
        default: Optional[Coordinate] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_MAPS_API_KEY
        self.base_url = base_url or settings.GEOCODING_URL
        self.default = default or Coordinate.of(
            settings.GEOCODING_DEFAULT_LATITUDE, settings.GEOCODING_DEFAULT_LONGITUDE
        )
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.DISTANCE_PROVIDER_TIMEOUT_SECONDS)
        self._cache: TTLCache[str, Coordinate] = TTLCache(
            cache_ttl or timedelta(hours=settings.GEOCODING_CACHE_TTL_HOURS), clock=clock
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def geocode(self, address: str) -> Coordinate:
        """
        Geocode an address

        Args:
            address: Free-text street address

        Returns:
            Coordinate of the first match, or the default coordinate
        """
        if not address or not address.strip():
            logger.warning("Geocoding called with empty address")
            return self.default

        key = normalize_address(address)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Geocoding cache hit for address: {address}")
            return cached

        if not self.api_key:
            logger.info(f"GOOGLE_MAPS_API_KEY not set, using default coordinates for: {address}")
            return self.default

        try:
            coordinate = await self._lookup(address)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, IndexError, AttributeError) as e:
            logger.warning(f"Geocoding failed for address: {address}. Using default coordinates. ({e})")
            return self.default

        if coordinate is None:
            return self.default

        self._cache.set(key, coordinate)
        logger.info(f"Geocoded address: {address} -> {coordinate.to_provider_format()}")
        return coordinate

    async def _lookup(self, address: str) -> Optional[Coordinate]:
        response = await self.client.get(self.base_url, params={"address": address, "key": self.api_key})
        response.raise_for_status()
        payload = response.json()

        status = payload.get("status")
        if status != "OK" or not payload.get("results"):
            logger.warning(f"Geocoding returned {status} for address: {address}")
            return None

        location = payload["results"][0]["geometry"]["location"]
        coordinate = Coordinate.of(location["lat"], location["lng"])
        if not coordinate.is_valid():
            raise ValueError(f"Geocoder returned out-of-range coordinate {coordinate.to_provider_format()}")
        return coordinate
