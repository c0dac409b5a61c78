"""
src/places: Cost-controlled Google Places API (New) client.
"""

from .circuit import CircuitBreaker, CircuitState
from .client import (
    BatchOutcome,
    BatchResult,
    PlacesApiClient,
    SearchResult,
    generate_contextual_queries,
    retry_backoff,
)
from .errors import (
    CircuitOpenError,
    MalformedResponseError,
    PlacesApiError,
    QuotaExceededError,
    TransientApiError,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "BatchOutcome",
    "BatchResult",
    "PlacesApiClient",
    "SearchResult",
    "generate_contextual_queries",
    "retry_backoff",
    "CircuitOpenError",
    "MalformedResponseError",
    "PlacesApiError",
    "QuotaExceededError",
    "TransientApiError",
]
