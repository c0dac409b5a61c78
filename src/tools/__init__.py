"""Places API field tiers and configuration utilities."""

from .fields import (
    FieldTier,
    TIER_COSTS,
    TIER_FIELDS,
    estimate_request_cost,
    get_fieldmask_header,
    get_tier_mask,
)
from .config_loader import (
    ConfigLoader,
    ConfigurationError,
    require_google_api_key,
)

__all__ = [
    "FieldTier",
    "TIER_COSTS",
    "TIER_FIELDS",
    "estimate_request_cost",
    "get_fieldmask_header",
    "get_tier_mask",
    "ConfigLoader",
    "ConfigurationError",
    "require_google_api_key",
]
