"""Pure scheduling and ranking algorithms"""

from engine.availability import compute_available_slots, has_any_availability, slot_covers
from engine.geo import fallback_matrix, haversine_miles, validate_coordinates
from engine.scoring_engine import ContractorWithDistance, ScoringEngine, ScoringWeights

__all__ = [
    'compute_available_slots',
    'has_any_availability',
    'slot_covers',
    'fallback_matrix',
    'haversine_miles',
    'validate_coordinates',
    'ContractorWithDistance',
    'ScoringEngine',
    'ScoringWeights',
]
