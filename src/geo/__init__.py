"""
src/geo: Distance, radius policy, campus detection and cluster validation.

Everything in this package is pure and offline; no call here costs money.
"""

from .distance import EARTH_RADIUS_M, haversine_m
from .organizations import (
    Campus,
    CompanyLocationDetector,
    CompanyMatch,
    DEFAULT_ORGANIZATIONS,
    MatchConfidence,
    OrganizationPattern,
    find_organization,
    normalize_organization_name,
)
from .radius import (
    CityPolicy,
    RadiusPolicy,
    VenuePolicy,
    VenueType,
    load_radius_policy_from_yaml,
)
from .validation import (
    ClusterContext,
    ClusterValidator,
    ClusteringThresholds,
    max_pairwise_distance,
)

__all__ = [
    "EARTH_RADIUS_M",
    "haversine_m",
    "Campus",
    "CompanyLocationDetector",
    "CompanyMatch",
    "DEFAULT_ORGANIZATIONS",
    "MatchConfidence",
    "OrganizationPattern",
    "find_organization",
    "normalize_organization_name",
    "CityPolicy",
    "RadiusPolicy",
    "VenuePolicy",
    "VenueType",
    "load_radius_policy_from_yaml",
    "ClusterContext",
    "ClusterValidator",
    "ClusteringThresholds",
    "max_pairwise_distance",
]
