"""Business logic services"""

from backend.app.services.distance_service import DistanceService, GoogleMapsDistanceService
from backend.app.services.cached_distance_service import CachedDistanceService
from backend.app.services.geocoding_service import GoogleMapsGeocodingService
from backend.app.services.recommendation_service import RecommendationService

__all__ = [
    'DistanceService',
    'GoogleMapsDistanceService',
    'CachedDistanceService',
    'GoogleMapsGeocodingService',
    'RecommendationService',
]
