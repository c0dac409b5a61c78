"""
Known organization campuses and offline campus detection.

The catalog maps an organization slug to the keywords that identify it in
free text, its clustering constraints and the campus centres it operates.
Detection is a pure lookup: no network I/O, cost is
O(organizations x campuses).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from .distance import haversine_m

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Campus:
    """A named campus centre with its own matching radius."""
    name: str
    lat: float
    lng: float
    radius_m: float


@dataclass(frozen=True)
class OrganizationPattern:
    """Clustering constraints for one known organization."""

    slug: str
    """Catalog key, e.g. 'google'."""

    keywords: Tuple[str, ...]
    """Lower-case tokens matched against organization context strings."""

    tight_clustering: bool = True
    """Whether radii for this organization are clamped to ``max_radius_m``."""

    max_radius_m: float = 200.0
    """Hard ceiling for search radius and same-organization pair distance."""

    campuses: Tuple[Campus, ...] = field(default_factory=tuple)
    """Campus centres used by :class:`CompanyLocationDetector`."""

    def matches(self, context: str) -> bool:
        text = context.lower()
        return any(keyword in text for keyword in self.keywords)


class MatchConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"


@dataclass(frozen=True)
class CompanyMatch:
    """Result of a campus lookup."""
    organization: str
    campus_name: str
    distance_m: float
    confidence: MatchConfidence


DEFAULT_ORGANIZATIONS: Dict[str, OrganizationPattern] = {
    "google": OrganizationPattern(
        slug="google",
        keywords=("google", "googleplex", "alphabet"),
        tight_clustering=True,
        max_radius_m=200,
        campuses=(
            Campus("Googleplex Main", 37.4220, -122.0841, 150),
            Campus("Google Charleston", 37.4043, -122.0748, 100),
        ),
    ),
    "apple": OrganizationPattern(
        slug="apple",
        keywords=("apple", "cupertino", "apple park"),
        tight_clustering=True,
        max_radius_m=150,
        campuses=(
            Campus("Apple Park", 37.3348, -122.0090, 200),
            Campus("Apple Infinite Loop", 37.3230, -122.0322, 100),
        ),
    ),
    "microsoft": OrganizationPattern(
        slug="microsoft",
        keywords=("microsoft", "redmond"),
        tight_clustering=True,
        max_radius_m=250,
    ),
}


_LEGAL_SUFFIXES = re.compile(
    r"\b(inc|corp|llc|ltd|co|company|corporation|incorporated)\b\.?", re.IGNORECASE
)


def normalize_organization_name(name: str) -> str:
    """Lower-case, strip legal suffixes and punctuation: 'Google LLC' -> 'google'."""
    cleaned = _LEGAL_SUFFIXES.sub("", name.lower())
    cleaned = re.sub(r"[^\w\s]", "", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def find_organization(
    context: Optional[str],
    catalog: Optional[Dict[str, OrganizationPattern]] = None,
) -> Optional[OrganizationPattern]:
    """Return the first catalog pattern whose keywords appear in ``context``."""
    if not context:
        return None
    patterns = catalog if catalog is not None else DEFAULT_ORGANIZATIONS
    for pattern in patterns.values():
        if pattern.matches(context):
            return pattern
    return None


class CompanyLocationDetector:
    """Matches coordinates against the campus catalog."""

    def __init__(self, catalog: Optional[Dict[str, OrganizationPattern]] = None):
        self.catalog = catalog if catalog is not None else DEFAULT_ORGANIZATIONS

    def _campuses(self) -> Iterable[Tuple[str, Campus]]:
        for slug, pattern in self.catalog.items():
            for campus in pattern.campuses:
                yield slug, campus

    def detect(self, lat: float, lng: float) -> Optional[CompanyMatch]:
        """
        Find the nearest campus whose radius contains the coordinate.

        Confidence is HIGH within half the campus radius and MEDIUM within
        the full radius. Returns None when no campus contains the point.
        """
        best: Optional[CompanyMatch] = None
        for slug, campus in self._campuses():
            distance = haversine_m(lat, lng, campus.lat, campus.lng)
            if distance > campus.radius_m:
                continue
            confidence = (
                MatchConfidence.HIGH
                if distance <= campus.radius_m * 0.5
                else MatchConfidence.MEDIUM
            )
            if best is None or distance < best.distance_m:
                best = CompanyMatch(
                    organization=slug,
                    campus_name=campus.name,
                    distance_m=distance,
                    confidence=confidence,
                )

        if best is not None:
            logger.debug(
                "Campus match %s/%s at %.0fm (%s)",
                best.organization, best.campus_name, best.distance_m, best.confidence.value,
            )
        return best
