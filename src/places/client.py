"""
Cost-controlled client for Google Places API (New).

Every request:
- carries a tiered FieldMask (minimal by default) that fixes its SKU
- waits a rate-limit delay that grows with the number of prior requests
- is retried with exponential backoff on 5xx/transport errors (2 retries)
- surfaces HTTP 429 immediately as QuotaExceededError, never retried
- is refused locally while the quota circuit breaker is open

Responses are parsed into VenueCandidate models at this boundary. A venue
missing its id, name or coordinate is discarded and counted; a body that is
not the documented shape raises MalformedResponseError.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import httpx
from pydantic import ValidationError

from src.schemas.models import VenueCandidate
from src.tools.config_loader import require_google_api_key
from src.tools.fields import FieldTier, estimate_request_cost, get_tier_mask

from .circuit import CircuitBreaker
from .errors import (
    CircuitOpenError,
    MalformedResponseError,
    PlacesApiError,
    QuotaExceededError,
    TransientApiError,
)

logger = logging.getLogger(__name__)


PLACES_BASE = "https://places.googleapis.com/v1"
NEARBY_URL = f"{PLACES_BASE}/places:searchNearby"
TEXT_URL = f"{PLACES_BASE}/places:searchText"

# Request caps
MAX_NEARBY_RADIUS_M = 2000
MAX_NEARBY_RESULTS = 15
MAX_INCLUDED_TYPES = 5
MAX_TEXT_RADIUS_M = 2500
MAX_TEXT_RESULTS = 10
DEFAULT_TEXT_RADIUS_M = 1500
DEFAULT_TEXT_RESULTS = 6

# Pacing
BASE_DELAY = 0.150
DELAY_INCREMENT = 0.025
INTER_BATCH_DELAY = 0.5
MAX_BATCH_SIZE = 3

# Retry configuration
MAX_RETRIES = 2
BACKOFF_BASE = 2.0

# A batch stops once this many consecutive calls hit the quota
QUOTA_STREAK_LIMIT = 2

MAX_CONTEXTUAL_QUERIES = 3

CITY_QUERIES: Dict[str, Tuple[str, ...]] = {
    "las vegas": ("CES convention center", "strip conference venues"),
    "austin": ("SXSW venues", "downtown conference center"),
    "san francisco": ("tech conference venues", "Moscone Center events"),
    "new york": ("Javits Center events", "midtown conference venues"),
}
GENERAL_QUERIES: Tuple[str, ...] = ("conference center", "convention hall")
CONVENTION_QUERY = "trade show venue"


SleepFn = Callable[[float], Awaitable[None]]
LatLngLike = Union[Tuple[float, float], Any]


# -----------------------------
# Results
# -----------------------------

@dataclass
class SearchResult:
    """Parsed venues from one billed request."""
    venues: List[VenueCandidate]
    tier: FieldTier
    estimated_cost: float
    actual_cost: Optional[float] = None
    discarded: int = 0
    query: Optional[str] = None

    @property
    def billed_cost(self) -> float:
        """Actual cost when the response reported one, else the estimate."""
        return self.actual_cost if self.actual_cost is not None else self.estimated_cost


@dataclass
class BatchOutcome:
    lat: float
    lng: float
    result: Optional[SearchResult] = None
    error: Optional[PlacesApiError] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    outcomes: List[BatchOutcome] = field(default_factory=list)
    stopped_early: bool = False

    @property
    def successes(self) -> List[BatchOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def errors(self) -> List[BatchOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def total_estimated_cost(self) -> float:
        return sum(o.result.estimated_cost for o in self.successes if o.result is not None)


# -----------------------------
# Helpers
# -----------------------------

def retry_backoff(attempt: int, base: float = BACKOFF_BASE) -> float:
    """
    Backoff before retry ``attempt`` (0-indexed): base * 2^attempt.

    With the default base this yields 2s then 4s.
    """
    return base * (2 ** attempt)


def generate_contextual_queries(
    city: Optional[str] = None,
    venue_types: Iterable[str] = (),
    max_queries: int = MAX_CONTEXTUAL_QUERIES,
) -> List[str]:
    """
    Small, city-aware set of text queries.

    Example:
        >>> generate_contextual_queries("Las Vegas, NV")
        ['CES convention center', 'strip conference venues', 'conference center']
    """
    max_queries = min(max_queries, MAX_CONTEXTUAL_QUERIES)
    queries: List[str] = []

    if city:
        city_lower = city.lower()
        for name, city_queries in CITY_QUERIES.items():
            if name in city_lower:
                queries.extend(city_queries)
                break

    if len(queries) < max_queries:
        queries.extend(GENERAL_QUERIES)

    if "convention_center" in set(venue_types) and len(queries) < max_queries:
        queries.append(CONVENTION_QUERY)

    return queries[:max_queries]


def _coords(location: LatLngLike) -> Tuple[float, float]:
    if isinstance(location, tuple):
        return float(location[0]), float(location[1])
    return float(location.lat), float(location.lng)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or str(response.status_code)
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return str(payload["error"].get("message") or response.reason_phrase)
    return response.reason_phrase or str(response.status_code)


# -----------------------------
# API Client
# -----------------------------

class PlacesApiClient:
    """
    One client per session: the request counter drives rate limiting and
    must not be shared between sessions.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
        base_delay: float = BASE_DELAY,
        delay_increment: float = DELAY_INCREMENT,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE,
        inter_batch_delay: float = INTER_BATCH_DELAY,
        cost_header: Optional[str] = None,
        breaker: Optional[CircuitBreaker] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        """
        Args:
            api_key: Google Maps API key; read from GOOGLE_MAPS_API_KEY at call time if omitted
            transport: Optional httpx transport (tests pass httpx.MockTransport)
            timeout: Per-request timeout in seconds
            base_delay: Rate-limit delay before the first request
            delay_increment: Added to the delay per prior request
            max_retries: Retries after the first attempt for transient failures
            backoff_base: Backoff before retry n is backoff_base * 2^n
            inter_batch_delay: Pause between batches in batch_search_nearby
            cost_header: Response header carrying the actual billed cost, if any
            breaker: Quota circuit breaker (a fresh one by default)
            sleep: Awaitable sleep, injectable for tests
        """
        self._api_key = api_key
        self._transport = transport
        self.timeout = timeout
        self.base_delay = base_delay
        self.delay_increment = delay_increment
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.inter_batch_delay = inter_batch_delay
        self.cost_header = cost_header
        self.breaker = breaker or CircuitBreaker()
        self._sleep = sleep
        self.request_count = 0
        self.estimated_spend = 0.0

    # -- credentials and pacing -------------------------------------------

    def ensure_credentials(self) -> str:
        """Resolve the API key now; raises ConfigurationError when missing."""
        return self._api_key or require_google_api_key()

    def current_delay(self) -> float:
        return self.base_delay + self.delay_increment * self.request_count

    @staticmethod
    def estimate_request_cost(tier: Union[str, FieldTier] = FieldTier.MINIMAL) -> float:
        return estimate_request_cost(tier)

    def usage_stats(self) -> Dict[str, Any]:
        return {
            "request_count": self.request_count,
            "next_delay": round(self.current_delay(), 3),
            "estimated_spend": round(self.estimated_spend, 4),
            "batch_size_limit": MAX_BATCH_SIZE,
            "circuit": self.breaker.to_dict(),
        }

    def reset_usage(self) -> None:
        """Start a fresh session: clears the request counter and spend estimate."""
        self.request_count = 0
        self.estimated_spend = 0.0
        logger.info("Places API usage tracking reset")

    # -- transport --------------------------------------------------------

    async def _post(
        self,
        url: str,
        body: Dict[str, Any],
        tier: FieldTier,
    ) -> Tuple[Dict[str, Any], Optional[float]]:
        if not self.breaker.allow_request():
            raise CircuitOpenError("Quota circuit is open; Places API call refused")

        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.ensure_credentials(),
            **get_tier_mask(tier),
        }

        last_error: Optional[PlacesApiError] = None
        for attempt in range(self.max_retries + 1):
            await self._sleep(self.current_delay())
            self.request_count += 1
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(url, json=body, headers=headers)
            except httpx.TransportError as e:
                last_error = TransientApiError(f"Places API transport error: {e}")
            else:
                if response.status_code == 429:
                    self.breaker.record_quota_failure()
                    raise QuotaExceededError(
                        f"Places API quota exceeded: {_error_message(response)}",
                        status_code=429,
                    )
                if response.status_code >= 500:
                    last_error = TransientApiError(
                        f"Places API server error: {response.status_code}",
                        status_code=response.status_code,
                    )
                elif response.status_code >= 400:
                    raise PlacesApiError(
                        f"Places API request failed: {response.status_code} - {_error_message(response)}",
                        status_code=response.status_code,
                    )
                else:
                    self.breaker.record_success()
                    return self._parse_body(response), self._actual_cost(response)

            if attempt < self.max_retries:
                sleep_time = retry_backoff(attempt, self.backoff_base)
                logger.warning("%s; retrying in %.1fs (attempt %d/%d)",
                               last_error, sleep_time, attempt + 1, self.max_retries)
                await self._sleep(sleep_time)

        assert last_error is not None
        raise last_error

    @staticmethod
    def _parse_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Places API returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError("Places API response is not a JSON object")
        places = data.get("places")
        if places is not None and not isinstance(places, list):
            raise MalformedResponseError("Places API 'places' field is not a list")
        return data

    def _actual_cost(self, response: httpx.Response) -> Optional[float]:
        if not self.cost_header:
            return None
        raw = response.headers.get(self.cost_header)
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            logger.warning("Ignoring unparseable %s header: %r", self.cost_header, raw)
            return None

    def _build_result(
        self,
        data: Dict[str, Any],
        tier: FieldTier,
        actual_cost: Optional[float],
        query: Optional[str] = None,
    ) -> SearchResult:
        venues: List[VenueCandidate] = []
        discarded = 0
        for payload in data.get("places") or []:
            if not isinstance(payload, dict):
                discarded += 1
                continue
            try:
                venues.append(VenueCandidate.from_api_payload(payload))
            except ValidationError as e:
                discarded += 1
                logger.warning("Discarding malformed venue %r: %d validation errors",
                               payload.get("id"), e.error_count())

        estimated = estimate_request_cost(tier)
        self.estimated_spend += estimated
        return SearchResult(
            venues=venues,
            tier=tier,
            estimated_cost=estimated,
            actual_cost=actual_cost,
            discarded=discarded,
            query=query,
        )

    # -- searches ---------------------------------------------------------

    async def search_nearby(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        included_types: Optional[Sequence[str]] = None,
        *,
        max_results: int = 10,
        tier: Union[str, FieldTier] = FieldTier.MINIMAL,
        rank_preference: str = "POPULARITY",
    ) -> SearchResult:
        """
        Places Nearby Search (New).

        Raises:
            QuotaExceededError: HTTP 429 (not retried)
            TransientApiError: 5xx/transport error after retries
            CircuitOpenError: breaker is open
            MalformedResponseError: body is not the documented shape
            PlacesApiError: any other non-2xx status
        """
        tier = FieldTier.parse(tier)
        body: Dict[str, Any] = {
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": lat, "longitude": lng},
                    "radius": float(min(radius_m, MAX_NEARBY_RADIUS_M)),
                }
            },
            "maxResultCount": min(max_results, MAX_NEARBY_RESULTS),
            "rankPreference": rank_preference,
        }
        if included_types:
            body["includedTypes"] = list(included_types)[:MAX_INCLUDED_TYPES]

        data, actual_cost = await self._post(NEARBY_URL, body, tier)
        result = self._build_result(data, tier, actual_cost)
        logger.debug("Nearby search at %.4f,%.4f r=%sm -> %d venues (%s tier)",
                     lat, lng, body["locationRestriction"]["circle"]["radius"],
                     len(result.venues), tier.value)
        return result

    async def search_text(
        self,
        query: str,
        lat: float,
        lng: float,
        radius_m: float = DEFAULT_TEXT_RADIUS_M,
        *,
        max_results: int = DEFAULT_TEXT_RESULTS,
        tier: Union[str, FieldTier] = FieldTier.MINIMAL,
    ) -> SearchResult:
        """Places Text Search (New) biased to a circle around (lat, lng)."""
        tier = FieldTier.parse(tier)
        body = {
            "textQuery": query,
            "maxResultCount": min(max_results, MAX_TEXT_RESULTS),
            "locationBias": {
                "circle": {
                    "center": {"latitude": lat, "longitude": lng},
                    "radius": float(min(radius_m, MAX_TEXT_RADIUS_M)),
                }
            },
        }
        data, actual_cost = await self._post(TEXT_URL, body, tier)
        result = self._build_result(data, tier, actual_cost, query=query)
        logger.debug("Text search %r -> %d venues", query, len(result.venues))
        return result

    async def batch_search_nearby(
        self,
        locations: Sequence[LatLngLike],
        radius_m: float,
        included_types: Optional[Sequence[str]] = None,
        *,
        max_batch_size: int = MAX_BATCH_SIZE,
        max_results: int = 10,
        tier: Union[str, FieldTier] = FieldTier.MINIMAL,
    ) -> BatchResult:
        """
        Search several locations in small sequential batches.

        Failures are recorded per location. Processing stops once the two
        most recent calls both hit the quota, or the breaker opens.
        """
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")

        batches = [locations[i:i + max_batch_size] for i in range(0, len(locations), max_batch_size)]
        logger.info("Processing %d locations in %d batches (max %d per batch)",
                    len(locations), len(batches), max_batch_size)

        outcome = BatchResult()
        quota_streak = 0
        for batch_index, batch in enumerate(batches):
            for location in batch:
                lat, lng = _coords(location)
                try:
                    result = await self.search_nearby(
                        lat, lng, radius_m, included_types,
                        max_results=max_results, tier=tier,
                    )
                except CircuitOpenError as e:
                    outcome.outcomes.append(BatchOutcome(lat, lng, error=e))
                    outcome.stopped_early = True
                    logger.warning("Quota circuit open, stopping batch processing")
                    return outcome
                except PlacesApiError as e:
                    outcome.outcomes.append(BatchOutcome(lat, lng, error=e))
                    quota_streak = quota_streak + 1 if isinstance(e, QuotaExceededError) else 0
                    logger.error("Batch %d/%d location %.4f,%.4f failed: %s",
                                 batch_index + 1, len(batches), lat, lng, e)
                    if quota_streak >= QUOTA_STREAK_LIMIT:
                        outcome.stopped_early = True
                        logger.warning("Multiple quota errors detected, stopping batch processing")
                        return outcome
                else:
                    outcome.outcomes.append(BatchOutcome(lat, lng, result=result))
                    quota_streak = 0

            if batch_index < len(batches) - 1:
                await self._sleep(self.inter_batch_delay)

        return outcome

    async def contextual_text_search(
        self,
        lat: float,
        lng: float,
        *,
        city: Optional[str] = None,
        venue_types: Iterable[str] = (),
        max_queries: int = MAX_CONTEXTUAL_QUERIES,
        tier: Union[str, FieldTier] = FieldTier.MINIMAL,
    ) -> List[SearchResult]:
        """
        Run the contextual queries for a location, stopping on quota errors.

        Callers that need per-query budget gating or caching should iterate
        generate_contextual_queries themselves.
        """
        results: List[SearchResult] = []
        for query in generate_contextual_queries(city, venue_types, max_queries):
            try:
                results.append(await self.search_text(query, lat, lng, tier=tier))
            except (QuotaExceededError, CircuitOpenError) as e:
                logger.warning("Quota exceeded, stopping contextual search: %s", e)
                break
            except PlacesApiError as e:
                logger.error("Query %r failed: %s", query, e)
        return results
