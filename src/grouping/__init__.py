"""
src/grouping: Session orchestration, venue scoring and contact stores.
"""

from .orchestrator import FreeGroupingStrategy, GroupingOrchestrator, build_search_locations
from .scoring import (
    DEFAULT_SCORING,
    ScoredVenue,
    VenueScoringWeights,
    best_venue,
    rank_venues,
    score_venue,
)
from .store import ContactStore, InMemoryContactStore, JsonContactStore, load_contacts_file

__all__ = [
    "FreeGroupingStrategy",
    "GroupingOrchestrator",
    "build_search_locations",
    "DEFAULT_SCORING",
    "ScoredVenue",
    "VenueScoringWeights",
    "best_venue",
    "rank_venues",
    "score_venue",
    "ContactStore",
    "InMemoryContactStore",
    "JsonContactStore",
    "load_contacts_file",
]
