"""
Geometric coherence checks for contact clusters.

Two decisions live here:
1. Group coherence: every pair of members within a maximum distance
2. Pair admission: whether two contacts may share a cluster, with a
   distance threshold chosen from their organization and event context
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, Optional, Sequence

from src.schemas.domain import ContactLocation, SimilarityTier

from .distance import haversine_m
from .organizations import (
    DEFAULT_ORGANIZATIONS,
    OrganizationPattern,
    find_organization,
    normalize_organization_name,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusteringThresholds:
    """Distance thresholds in metres."""

    tight: float = 100.0
    """Same building or complex; confirmed same-organization pairs."""

    moderate: float = 250.0
    """Walking distance; the general default."""

    loose: float = 500.0
    """Same neighbourhood; only with shared-event context."""

    organization_max: float = 300.0
    """Campus ceiling for same-organization pairs not in the catalog."""


@dataclass(frozen=True)
class ClusterContext:
    """Optional evidence that two contacts belong together."""
    shared_event: Optional[str] = None
    confirmed_same_organization: bool = False


def max_pairwise_distance(contacts: Sequence[ContactLocation]) -> float:
    """Largest distance between any two contacts (0 for fewer than two)."""
    return max(
        (haversine_m(a.lat, a.lng, b.lat, b.lng) for a, b in combinations(contacts, 2)),
        default=0.0,
    )


class ClusterValidator:
    """Accepts or rejects clustering decisions."""

    def __init__(
        self,
        thresholds: Optional[ClusteringThresholds] = None,
        organizations: Optional[Dict[str, OrganizationPattern]] = None,
    ):
        self.thresholds = thresholds or ClusteringThresholds()
        self.organizations = organizations if organizations is not None else DEFAULT_ORGANIZATIONS

    def validate_cluster_coherence(
        self,
        contacts: Sequence[ContactLocation],
        max_distance: float,
    ) -> bool:
        """
        Reject a cluster if any two members are farther apart than ``max_distance``.

        O(n^2) over members; cluster sizes are expected to stay small.
        """
        for a, b in combinations(contacts, 2):
            distance = haversine_m(a.lat, a.lng, b.lat, b.lng)
            if distance > max_distance:
                logger.warning(
                    "Cluster validation failed: contacts %s and %s are %.0fm apart (max: %.0fm)",
                    a.contact_id, b.contact_id, distance, max_distance,
                )
                return False
        return True

    def organization_max_distance(self, organization: str) -> float:
        pattern = find_organization(organization, self.organizations)
        if pattern is not None:
            return min(pattern.max_radius_m, self.thresholds.organization_max)
        return self.thresholds.organization_max

    def pair_threshold(
        self,
        a: ContactLocation,
        b: ContactLocation,
        context: Optional[ClusterContext] = None,
    ) -> float:
        """Distance threshold for admitting ``a`` and ``b`` into one cluster."""
        context = context or ClusterContext()

        threshold = self.thresholds.moderate
        if context.shared_event:
            threshold = self.thresholds.loose
        if context.confirmed_same_organization:
            threshold = self.thresholds.tight

        if a.organization and b.organization:
            org_a = normalize_organization_name(a.organization)
            if org_a and org_a == normalize_organization_name(b.organization):
                threshold = min(threshold, self.organization_max_distance(a.organization))

        return threshold

    def should_cluster_together(
        self,
        a: ContactLocation,
        b: ContactLocation,
        context: Optional[ClusterContext] = None,
    ) -> bool:
        distance = haversine_m(a.lat, a.lng, b.lat, b.lng)
        return distance <= self.pair_threshold(a, b, context)

    def classify_spread(self, contacts: Sequence[ContactLocation]) -> SimilarityTier:
        """Similarity tier from the widest member pair."""
        spread = max_pairwise_distance(contacts)
        if spread <= self.thresholds.tight:
            return SimilarityTier.HIGH
        if spread <= self.thresholds.moderate:
            return SimilarityTier.MEDIUM
        return SimilarityTier.LOW
