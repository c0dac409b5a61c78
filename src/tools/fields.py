"""
Centralized FieldMask tiers for the Places API (New).

The field mask decides the SKU a request is billed under, so every search
goes through one of three tiers. Minimal is the default; callers escalate
only on explicit request.

Reference:
- Places API (New): https://developers.google.com/maps/documentation/places/web-service/nearby-search
"""

from enum import Enum
from typing import Dict, List, Union


class FieldTier(str, Enum):
    """Response field tiers, cheapest first."""
    MINIMAL = "minimal"
    STANDARD = "standard"
    ENHANCED = "enhanced"

    @classmethod
    def parse(cls, value: Union[str, "FieldTier"]) -> "FieldTier":
        if isinstance(value, FieldTier):
            return value
        return cls(str(value).strip().lower())


# -----------------------------
# Places API FieldMasks
# -----------------------------

# Identification, location and classification
PLACES_MINIMAL_FIELDS = [
    "places.id",
    "places.displayName",
    "places.location",
    "places.types",
]

# Adds quality and status signals
PLACES_STANDARD_FIELDS = PLACES_MINIMAL_FIELDS + [
    "places.rating",
    "places.businessStatus",
    "places.formattedAddress",
]

# Adds pricing and review volume (highest cost)
PLACES_ENHANCED_FIELDS = PLACES_STANDARD_FIELDS + [
    "places.userRatingCount",
    "places.priceLevel",
]

TIER_FIELDS: Dict[FieldTier, List[str]] = {
    FieldTier.MINIMAL: PLACES_MINIMAL_FIELDS,
    FieldTier.STANDARD: PLACES_STANDARD_FIELDS,
    FieldTier.ENHANCED: PLACES_ENHANCED_FIELDS,
}

# Estimated dollars per request for each tier
TIER_COSTS: Dict[FieldTier, float] = {
    FieldTier.MINIMAL: 0.004,
    FieldTier.STANDARD: 0.006,
    FieldTier.ENHANCED: 0.010,
}


# -----------------------------
# Helper Functions
# -----------------------------

def get_fieldmask_header(fields: List[str]) -> Dict[str, str]:
    """
    Generate X-Goog-FieldMask header from field list.

    Example:
        >>> get_fieldmask_header(PLACES_MINIMAL_FIELDS)
        {'X-Goog-FieldMask': 'places.id,places.displayName,places.location,places.types'}
    """
    return {"X-Goog-FieldMask": ",".join(fields)}


def get_tier_mask(tier: Union[str, FieldTier] = FieldTier.MINIMAL) -> Dict[str, str]:
    """Get FieldMask header for a search at the given tier."""
    return get_fieldmask_header(TIER_FIELDS[FieldTier.parse(tier)])


def estimate_request_cost(tier: Union[str, FieldTier] = FieldTier.MINIMAL) -> float:
    """Estimated dollar cost of one search request at ``tier``."""
    return TIER_COSTS[FieldTier.parse(tier)]
