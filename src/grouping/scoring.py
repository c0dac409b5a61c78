"""
Heuristic venue scoring. No network calls.

score = w_type * type_match + w_keyword * keyword_match

- type_match: 1.0 if the venue carries a requested type, 0.5 for a
  secondary event type, else 0.0
- keyword_match: 1.0 if the display name contains an event keyword or the
  contacts' organization name, else 0.0
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from src.geo.organizations import normalize_organization_name
from src.schemas.models import SECONDARY_VENUE_TYPES, VenueCandidate

logger = logging.getLogger(__name__)


EVENT_NAME_KEYWORDS = (
    "conference",
    "convention",
    "expo",
    "exhibition",
    "summit",
    "hall",
    "center",
    "centre",
    "arena",
    "stadium",
    "pavilion",
    "university",
    "campus",
    "ces",
    "nab",
    "sxsw",
    "comic con",
    "dreamforce",
)


@dataclass(frozen=True)
class VenueScoringWeights:
    """
    Weights and thresholds for venue scoring.

    Attributes:
        w_type: Weight on venue-type match
        w_keyword: Weight on name keyword match
        min_score: Candidates below this are dropped
        high_confidence: Scores at or above this are high-confidence
        secondary_type_score: Partial credit for secondary event types
    """
    w_type: float = 0.6
    w_keyword: float = 0.4
    min_score: float = 0.3
    high_confidence: float = 0.7
    secondary_type_score: float = 0.5


DEFAULT_SCORING = VenueScoringWeights()


@dataclass(frozen=True)
class ScoredVenue:
    venue: VenueCandidate
    score: float
    type_score: float
    keyword_score: float


def _type_score(venue: VenueCandidate, requested: Sequence[str], weights: VenueScoringWeights) -> float:
    types = set(venue.types)
    if types & set(requested):
        return 1.0
    if types & set(SECONDARY_VENUE_TYPES):
        return weights.secondary_type_score
    return 0.0


def _keyword_score(venue: VenueCandidate, organizations: Iterable[str]) -> float:
    name = venue.name.lower()
    words = set(re.findall(r"[a-z0-9]+", name))
    for keyword in EVENT_NAME_KEYWORDS:
        if (keyword in name) if " " in keyword else (keyword in words):
            return 1.0
    for organization in organizations:
        normalized = normalize_organization_name(organization)
        if normalized and normalized in name:
            return 1.0
    return 0.0


def score_venue(
    venue: VenueCandidate,
    requested_types: Sequence[str],
    organizations: Iterable[str] = (),
    weights: VenueScoringWeights = DEFAULT_SCORING,
) -> ScoredVenue:
    """Score a single candidate."""
    type_score = _type_score(venue, requested_types, weights)
    keyword_score = _keyword_score(venue, organizations)
    score = weights.w_type * type_score + weights.w_keyword * keyword_score
    return ScoredVenue(venue, round(score, 4), type_score, keyword_score)


def rank_venues(
    venues: Sequence[VenueCandidate],
    requested_types: Sequence[str],
    organizations: Iterable[str] = (),
    weights: VenueScoringWeights = DEFAULT_SCORING,
) -> List[ScoredVenue]:
    """Score, drop those under ``weights.min_score``, best first (ties by id)."""
    organizations = [o for o in organizations if o]
    scored = [score_venue(v, requested_types, organizations, weights) for v in venues]
    kept = [s for s in scored if s.score >= weights.min_score]
    if len(kept) < len(scored):
        logger.debug("Dropped %d of %d venues under score %.2f",
                     len(scored) - len(kept), len(scored), weights.min_score)
    return sorted(kept, key=lambda s: (-s.score, s.venue.id))


def best_venue(
    venues: Sequence[VenueCandidate],
    requested_types: Sequence[str],
    organizations: Iterable[str] = (),
    weights: VenueScoringWeights = DEFAULT_SCORING,
) -> Optional[ScoredVenue]:
    ranked = rank_venues(venues, requested_types, organizations, weights)
    return ranked[0] if ranked else None
