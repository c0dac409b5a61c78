"""Boundary models (pydantic) and session domain objects (dataclasses)."""

from .models import (
    LatLng,
    LocationFailure,
    PRIORITY_VENUE_TYPES,
    SECONDARY_VENUE_TYPES,
    SessionConfig,
    SessionReport,
    VenueCandidate,
)
from .domain import (
    Cluster,
    ClusterSource,
    ContactLocation,
    SearchLocation,
    SimilarityTier,
)

__all__ = [
    "LatLng",
    "LocationFailure",
    "PRIORITY_VENUE_TYPES",
    "SECONDARY_VENUE_TYPES",
    "SessionConfig",
    "SessionReport",
    "VenueCandidate",
    "Cluster",
    "ClusterSource",
    "ContactLocation",
    "SearchLocation",
    "SimilarityTier",
]
