"""Pre-session cost estimates and performance-mode recommendation."""

from __future__ import annotations

import math
from typing import Any, Dict, Union

from src.tools.config_loader import ConfigLoader
from src.tools.fields import FieldTier, estimate_request_cost

DEFAULT_SESSION_BUDGET = 0.10
DEDUP_RATIO = 3
MAX_LOCATIONS_TO_PROCESS = 5
MAX_TEXT_SEARCH_QUERIES = 3


def estimate_session_cost(
    contacts_with_location: int,
    tier: Union[str, FieldTier] = FieldTier.MINIMAL,
    enable_text_search: bool = False,
    cache_hit_rate: float = 0.7,
    budget_limit: float = DEFAULT_SESSION_BUDGET,
    max_locations: int = MAX_LOCATIONS_TO_PROCESS,
) -> Dict[str, Any]:
    """
    Rough upfront spend for a session.

    Assumes about three contacts share each deduplicated location and that
    ``cache_hit_rate`` of those locations are already cached.
    """
    field_cost = estimate_request_cost(tier)
    unique_locations = min(math.ceil(contacts_with_location / DEDUP_RATIO), max_locations)
    api_calls = math.ceil(unique_locations * (1 - cache_hit_rate))

    nearby_cost = api_calls * field_cost
    text_cost = min(api_calls, MAX_TEXT_SEARCH_QUERIES) * field_cost if enable_text_search else 0.0
    total = nearby_cost + text_cost

    return {
        "estimated_cost": round(total, 4),
        "api_calls": api_calls,
        "field_cost": field_cost,
        "within_budget": total <= budget_limit,
        "breakdown": {
            "nearby_search_cost": round(nearby_cost, 4),
            "text_search_cost": round(text_cost, 4),
            "cache_savings": round(unique_locations * cache_hit_rate * field_cost, 4),
        },
    }


def recommend_performance_mode(
    contacts_count: int,
    budget_limit: float = DEFAULT_SESSION_BUDGET,
) -> Dict[str, Any]:
    """
    Pick a preset for the given workload.

    Example:
        >>> recommend_performance_mode(20, 0.03)["mode"]
        'budget'
    """
    if budget_limit <= 0.05:
        mode, reason = "budget", "Low budget requires maximum cost optimization"
    elif contacts_count > 100 or budget_limit <= 0.10:
        mode, reason = "balanced", "Good balance of features and cost for medium datasets"
    else:
        mode, reason = "premium", "Full features available within budget"

    return {
        "mode": mode,
        "config": ConfigLoader.load_mode_profile(mode),
        "reason": reason,
    }
