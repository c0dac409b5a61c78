"""
Budget-aware venue grouping for one session.

Flow per session:
1. Deduplicate contacts into SearchLocations on a coarse grid; order by
   contact count, highest first
2. For each location: campus detection (free); otherwise, for the top-K
   locations, radius policy -> cache -> budget gate -> Places API
3. Score candidates, build one venue cluster per location, validate
   coherence, drop clusters that fail
4. Merge venue clusters that resolved to the same venue and attach leftover
   contacts from neighbouring cells that stay within the validated distance
5. Leftover contacts go through free grouping (shared organization, plus an
   optional injected strategy)

Paid calls are strictly sequential. Once the budget is exhausted or the
quota circuit opens, every remaining location is handled by free methods;
clusters already built are kept.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from src.budget.monitor import BudgetMonitor
from src.cache.result_cache import ResultCache
from src.geo.distance import haversine_m
from src.geo.organizations import (
    CompanyLocationDetector,
    CompanyMatch,
    MatchConfidence,
    normalize_organization_name,
)
from src.geo.radius import RadiusPolicy
from src.geo.validation import ClusterValidator
from src.places.client import (
    DEFAULT_TEXT_RADIUS_M,
    PlacesApiClient,
    SearchResult,
    generate_contextual_queries,
)
from src.places.circuit import CircuitState
from src.places.errors import CircuitOpenError, PlacesApiError, QuotaExceededError
from src.schemas.domain import (
    Cluster,
    ClusterSource,
    ContactLocation,
    SearchLocation,
)
from src.schemas.models import LocationFailure, SessionConfig, SessionReport, VenueCandidate

from .scoring import ScoredVenue, VenueScoringWeights, best_venue
from .store import ContactStore

logger = logging.getLogger(__name__)


CAMPUS_CONFIDENCE = {
    MatchConfidence.HIGH: 0.9,
    MatchConfidence.MEDIUM: 0.7,
}
SHARED_ORGANIZATION_CONFIDENCE = 0.6


class FreeGroupingStrategy(Protocol):
    """Groups contacts without any paid call."""

    def group(self, contacts: Sequence[ContactLocation]) -> List[Cluster]:
        ...


class _PaidPathClosed(Exception):
    """Budget exhausted or quota circuit open; no more paid calls this session."""


def build_search_locations(
    contacts: Sequence[ContactLocation],
    precision: int = 500,
) -> List[SearchLocation]:
    """
    Bucket contacts on a 1/precision degree grid.

    Returns locations ordered by contact count (descending), then by
    coordinate for a stable order. Contacts with non-finite coordinates
    are skipped.
    """
    buckets: Dict[Tuple[int, int], List[ContactLocation]] = defaultdict(list)
    for contact in contacts:
        if not (math.isfinite(contact.lat) and math.isfinite(contact.lng)):
            logger.warning("Skipping contact %s with invalid coordinates", contact.contact_id)
            continue
        buckets[(round(contact.lat * precision), round(contact.lng * precision))].append(contact)

    locations = [
        SearchLocation(lat=key[0] / precision, lng=key[1] / precision, contacts=members)
        for key, members in buckets.items()
    ]
    return sorted(locations, key=lambda loc: (-loc.priority, loc.lat, loc.lng))


def _dominant_organization(contacts: Sequence[ContactLocation]) -> Optional[str]:
    names = Counter(c.organization for c in contacts if c.organization)
    return names.most_common(1)[0][0] if names else None


@dataclass
class _CampusGroup:
    match: CompanyMatch
    contacts: List[ContactLocation] = field(default_factory=list)
    confidence: float = 0.0


class GroupingOrchestrator:
    """
    Runs one grouping session.

    Every collaborator is injected; only the ResultCache is meant to be
    shared across sessions. Build a fresh orchestrator (with its own
    BudgetMonitor and PlacesApiClient) per session, e.g. via for_session().
    """

    def __init__(
        self,
        client: PlacesApiClient,
        cache: ResultCache,
        budget: BudgetMonitor,
        config: Optional[SessionConfig] = None,
        *,
        detector: Optional[CompanyLocationDetector] = None,
        radius_policy: Optional[RadiusPolicy] = None,
        validator: Optional[ClusterValidator] = None,
        free_strategy: Optional[FreeGroupingStrategy] = None,
    ):
        self.client = client
        self.cache = cache
        self.budget = budget
        self.config = config or SessionConfig(budget_limit=budget.limit)
        self.detector = detector or CompanyLocationDetector()
        self.radius_policy = radius_policy or RadiusPolicy()
        self.validator = validator or ClusterValidator()
        self.free_strategy = free_strategy
        self.scoring = VenueScoringWeights(
            min_score=self.config.min_venue_score,
            high_confidence=self.config.high_confidence_score,
        )

    @classmethod
    def for_session(
        cls,
        config: SessionConfig,
        cache: ResultCache,
        client: Optional[PlacesApiClient] = None,
        **kwargs,
    ) -> "GroupingOrchestrator":
        """Build an orchestrator with a fresh budget (and client) for ``config``."""
        budget = BudgetMonitor(config.budget_limit, max_calls=config.max_api_calls)
        return cls(client or PlacesApiClient(), cache, budget, config, **kwargs)

    # -- session entry points ---------------------------------------------

    async def run_session(self, store: ContactStore, session_id: str) -> Tuple[List[Cluster], SessionReport]:
        """Read a session's contacts from ``store``, group them, write clusters back."""
        contacts = store.load_contacts(session_id)
        clusters, report = await self.group(contacts, session_id=session_id)
        store.save_clusters(session_id, clusters)
        return clusters, report

    async def group(
        self,
        contacts: Sequence[ContactLocation],
        session_id: Optional[str] = None,
    ) -> Tuple[List[Cluster], SessionReport]:
        """
        Group contacts into venue and organization clusters.

        Raises:
            ConfigurationError: missing API key while the budget allows paid calls
        """
        config = self.config
        report = SessionReport(
            session_id=session_id or uuid.uuid4().hex[:12],
            mode=config.mode,
            budget_limit=self.budget.limit,
        )
        if self.budget.limit > 0:
            self.client.ensure_credentials()

        locations = build_search_locations(contacts, config.coordinate_precision)
        report.locations_total = len(locations)
        logger.info("Session %s: %d contacts in %d locations (budget $%.4f)",
                    report.session_id, len(contacts), len(locations), self.budget.limit)

        clusters: List[Cluster] = []
        campus_groups: Dict[Tuple[str, str], _CampusGroup] = {}
        leftovers: List[ContactLocation] = []
        paid_open = True

        for rank, location in enumerate(locations):
            match = self.detector.detect(location.lat, location.lng)
            if match is not None:
                group = campus_groups.setdefault(
                    (match.organization, match.campus_name), _CampusGroup(match)
                )
                group.contacts.extend(location.contacts)
                group.confidence = max(group.confidence, CAMPUS_CONFIDENCE[match.confidence])
                report.organization_matches += 1
                report.locations_processed += 1
                continue

            eligible = rank < config.max_locations and location.priority >= config.min_cluster_size
            if not (eligible and paid_open):
                report.free_only_locations += 1
                leftovers.extend(location.contacts)
                continue

            try:
                scored = await self._resolve_venue(location, report)
            except _PaidPathClosed as e:
                paid_open = False
                report.warnings.append(str(e))
                logger.warning("%s; remaining locations use free grouping", e)
                report.free_only_locations += 1
                leftovers.extend(location.contacts)
                continue
            except QuotaExceededError as e:
                logger.warning("Quota exceeded at %s, using free grouping: %s", location.label, e)
                report.free_only_locations += 1
                leftovers.extend(location.contacts)
                continue
            except PlacesApiError as e:
                report.failed_locations.append(
                    LocationFailure(location=location.label, error_type=type(e).__name__, reason=str(e))
                )
                logger.error("Location %s failed: %s", location.label, e)
                continue

            report.locations_processed += 1
            if scored is None:
                leftovers.extend(location.contacts)
                continue

            cluster = self._venue_cluster(location, scored)
            if cluster is None:
                report.rejected_clusters += 1
                leftovers.extend(location.contacts)
            else:
                clusters.append(cluster)

        leftovers = self._consolidate_venue_clusters(clusters, leftovers, report)

        for group in campus_groups.values():
            cluster = self._campus_cluster(group)
            if cluster is None:
                if len(group.contacts) >= config.min_cluster_size:
                    report.rejected_clusters += 1
                leftovers.extend(group.contacts)
            else:
                clusters.append(cluster)

        clusters.extend(self._free_clusters(leftovers, report))

        report.cluster_count = len(clusters)
        report.budget_status = self.budget.status.value
        report.reconciled_overshoot = round(self.budget.overshoot(), 6)
        report.circuit_state = self.client.breaker.state.value
        logger.info(
            "Session %s done: %d clusters, %d API calls, $%.4f estimated, cache hit rate %.0f%%",
            report.session_id, report.cluster_count, report.api_calls,
            report.total_estimated_cost, report.cache_hit_rate * 100,
        )
        return clusters, report

    # -- paid path --------------------------------------------------------

    async def _cached_search(
        self,
        key: str,
        call: Callable[[], Awaitable[SearchResult]],
        report: SessionReport,
        description: str,
    ) -> List[VenueCandidate]:
        cached = self.cache.get(key)
        if cached is not None:
            report.cache_hits += 1
            return cached
        report.cache_misses += 1

        estimate = self.client.estimate_request_cost(self.config.field_tier)
        if not self.budget.can_afford(estimate):
            raise _PaidPathClosed(
                f"Budget gate closed before {description} "
                f"(spent ${self.budget.spent:.4f} of ${self.budget.limit:.4f})"
            )

        try:
            result = await call()
        except CircuitOpenError as e:
            raise _PaidPathClosed(f"Quota circuit open: {e}") from e
        except QuotaExceededError as e:
            report.warnings.append(f"Quota exceeded during {description}")
            if self.client.breaker.state == CircuitState.OPEN:
                raise _PaidPathClosed(f"Quota circuit open after repeated quota errors: {e}") from e
            raise

        self.cache.set(key, result.venues)
        report.api_calls += 1
        report.total_estimated_cost += result.estimated_cost
        if result.actual_cost is not None:
            report.total_actual_cost += result.actual_cost
        report.discarded_venues += result.discarded
        self.budget.add_cost(result.billed_cost, description)
        return result.venues

    async def _resolve_venue(self, location: SearchLocation, report: SessionReport) -> Optional[ScoredVenue]:
        config = self.config
        organizations = {c.organization for c in location.contacts if c.organization}
        radius = self.radius_policy.resolve_radius(
            config.venue_types, config.city, _dominant_organization(location.contacts)
        )
        key = self.cache.make_key(
            "nearby", location.lat, location.lng, radius,
            venue_types=config.venue_types, tier=config.field_tier.value,
        )
        venues = await self._cached_search(
            key,
            lambda: self.client.search_nearby(
                location.lat, location.lng, radius, config.venue_types,
                max_results=config.max_results, tier=config.field_tier,
            ),
            report,
            f"nearby search at {location.label}",
        )
        scored = best_venue(venues, config.venue_types, organizations, self.scoring)
        if scored is not None or not config.enable_text_search:
            return scored

        for query in generate_contextual_queries(config.city, config.venue_types, config.max_text_queries):
            key = self.cache.make_key(
                "text", location.lat, location.lng, DEFAULT_TEXT_RADIUS_M,
                tier=config.field_tier.value, query=query,
            )
            try:
                venues = await self._cached_search(
                    key,
                    lambda: self.client.search_text(query, location.lat, location.lng, tier=config.field_tier),
                    report,
                    f"text search {query!r} at {location.label}",
                )
            except QuotaExceededError:
                break
            scored = best_venue(venues, config.venue_types, organizations, self.scoring)
            if scored is not None:
                return scored
        return None

    # -- cluster construction ---------------------------------------------

    def _venue_cluster(self, location: SearchLocation, scored: ScoredVenue) -> Optional[Cluster]:
        limit = self.config.max_intra_cluster_distance_m
        if not self.validator.validate_cluster_coherence(location.contacts, limit):
            return None
        return Cluster(
            contacts=list(location.contacts),
            confidence=scored.score,
            similarity_tier=self.validator.classify_spread(location.contacts),
            source=ClusterSource.VENUE,
            label=scored.venue.name,
            max_distance_m=limit,
            venue=scored.venue,
        )

    def _consolidate_venue_clusters(
        self,
        clusters: List[Cluster],
        leftovers: List[ContactLocation],
        report: SessionReport,
    ) -> List[ContactLocation]:
        """
        Undo grid-cell splits around resolved venues.

        Venue clusters that resolved to the same venue are merged when the
        combined set is still coherent. Each leftover contact then joins the
        venue cluster it is closest to, provided it stays within that
        cluster's validated distance of every member. ``clusters`` is updated
        in place; the contacts still unassigned are returned.
        """
        merged: List[Cluster] = []
        by_venue: Dict[str, Cluster] = {}
        for cluster in clusters:
            venue_id = cluster.venue.id if cluster.venue is not None else None
            existing = by_venue.get(venue_id) if venue_id else None
            if existing is not None:
                combined = existing.contacts + cluster.contacts
                if self.validator.validate_cluster_coherence(combined, existing.max_distance_m):
                    existing.contacts = combined
                    existing.confidence = max(existing.confidence, cluster.confidence)
                    report.merged_clusters += 1
                    continue
            elif venue_id:
                by_venue[venue_id] = cluster
            merged.append(cluster)

        remaining: List[ContactLocation] = []
        for contact in leftovers:
            target = self._nearest_venue_cluster(merged, contact)
            if target is None:
                remaining.append(contact)
            else:
                target.contacts.append(contact)
                report.absorbed_contacts += 1

        for cluster in merged:
            cluster.similarity_tier = self.validator.classify_spread(cluster.contacts)
        clusters[:] = merged
        return remaining

    @staticmethod
    def _nearest_venue_cluster(clusters: Sequence[Cluster], contact: ContactLocation) -> Optional[Cluster]:
        best: Optional[Cluster] = None
        best_spread = math.inf
        for cluster in clusters:
            spread = max(haversine_m(contact.lat, contact.lng, c.lat, c.lng) for c in cluster.contacts)
            if spread <= cluster.max_distance_m and spread < best_spread:
                best, best_spread = cluster, spread
        return best

    def _campus_cluster(self, group: _CampusGroup) -> Optional[Cluster]:
        if len(group.contacts) < self.config.min_cluster_size:
            return None
        limit = self.validator.organization_max_distance(group.match.organization)
        if not self.validator.validate_cluster_coherence(group.contacts, limit):
            return None
        return Cluster(
            contacts=list(group.contacts),
            confidence=group.confidence,
            similarity_tier=self.validator.classify_spread(group.contacts),
            source=ClusterSource.ORGANIZATION_CAMPUS,
            label=group.match.campus_name,
            max_distance_m=limit,
            organization=group.match.organization,
        )

    def _shared_organization_clusters(self, contacts: Sequence[ContactLocation]) -> Tuple[List[Cluster], Set[str]]:
        by_org: Dict[str, List[ContactLocation]] = defaultdict(list)
        for contact in contacts:
            if contact.organization:
                key = normalize_organization_name(contact.organization)
                if key:
                    by_org[key].append(contact)

        clusters: List[Cluster] = []
        used: Set[str] = set()
        for members in by_org.values():
            if len(members) < self.config.min_cluster_size:
                continue
            groups: List[List[ContactLocation]] = []
            for contact in sorted(members, key=lambda c: c.contact_id):
                for group in groups:
                    if all(self.validator.should_cluster_together(contact, other) for other in group):
                        group.append(contact)
                        break
                else:
                    groups.append([contact])

            for group in groups:
                if len(group) < self.config.min_cluster_size:
                    continue
                organization = group[0].organization
                limit = self.validator.organization_max_distance(organization)
                if not self.validator.validate_cluster_coherence(group, limit):
                    continue
                clusters.append(Cluster(
                    contacts=group,
                    confidence=SHARED_ORGANIZATION_CONFIDENCE,
                    similarity_tier=self.validator.classify_spread(group),
                    source=ClusterSource.SHARED_ORGANIZATION,
                    label=organization,
                    max_distance_m=limit,
                    organization=organization,
                ))
                used.update(c.contact_id for c in group)
        return clusters, used

    def _free_clusters(self, contacts: Sequence[ContactLocation], report: SessionReport) -> List[Cluster]:
        clusters, used = self._shared_organization_clusters(contacts)
        if self.free_strategy is None:
            return clusters

        remaining = [c for c in contacts if c.contact_id not in used]
        limit = self.config.max_intra_cluster_distance_m
        for cluster in self.free_strategy.group(remaining):
            if self.validator.validate_cluster_coherence(cluster.contacts, limit):
                cluster.max_distance_m = limit
                clusters.append(cluster)
            else:
                report.rejected_clusters += 1
        return clusters

