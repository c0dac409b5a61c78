"""Pydantic models validated at the Places API and session boundaries."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from src.tools.config_loader import ConfigLoader, ConfigurationError
from src.tools.fields import FieldTier

PRIORITY_VENUE_TYPES = ["convention_center", "university", "stadium", "event_venue"]
SECONDARY_VENUE_TYPES = ["performing_arts_theater", "community_center", "museum", "art_gallery"]


class LatLng(BaseModel):
    """Simple latitude/longitude container."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude in decimal degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in decimal degrees")


class VenueCandidate(BaseModel):
    """A place returned by the Places API, read-only once parsed."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    types: List[str] = Field(default_factory=list)
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    business_status: Optional[str] = None
    formatted_address: Optional[str] = None
    price_level: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def from_api_payload(cls, payload: Dict[str, Any]) -> "VenueCandidate":
        """
        Parse one entry of a Places API ``places`` array.

        Raises:
            pydantic.ValidationError: if the id, display name or coordinate
                is missing or out of range
        """
        location = payload.get("location") or {}
        display_name = payload.get("displayName") or {}
        return cls(
            id=payload.get("id"),
            name=display_name.get("text") if isinstance(display_name, dict) else display_name,
            lat=location.get("latitude"),
            lng=location.get("longitude"),
            types=payload.get("types") or [],
            rating=payload.get("rating"),
            user_ratings_total=payload.get("userRatingCount"),
            business_status=payload.get("businessStatus"),
            formatted_address=payload.get("formattedAddress"),
            price_level=payload.get("priceLevel"),
        )


class SessionConfig(BaseModel):
    """Inputs for one grouping session."""

    budget_limit: float = Field(0.10, ge=0, description="Dollar cap for paid API calls")
    max_locations: int = Field(5, ge=0, description="Top-K locations eligible for paid search")
    field_tier: FieldTier = FieldTier.MINIMAL
    max_api_calls: Optional[int] = Field(default=None, ge=0)
    enable_text_search: bool = False
    max_text_queries: int = Field(3, ge=0, le=3)
    city: Optional[str] = None
    venue_types: List[str] = Field(default_factory=lambda: list(PRIORITY_VENUE_TYPES))
    max_results: int = Field(10, ge=1, le=15)
    min_cluster_size: int = Field(2, ge=2)
    coordinate_precision: int = Field(500, ge=1, description="Dedup grid buckets per degree")
    max_intra_cluster_distance_m: float = Field(500.0, gt=0)
    min_venue_score: float = Field(0.3, ge=0, le=1)
    high_confidence_score: float = Field(0.7, ge=0, le=1)
    mode: Optional[str] = None

    @field_validator("venue_types")
    @classmethod
    def _limit_venue_types(cls, value: List[str]) -> List[str]:
        if len(value) > 5:
            raise ValueError("At most 5 venue types may be requested")
        return value

    @classmethod
    def from_mode(cls, mode: Optional[str] = None, **overrides: Any) -> "SessionConfig":
        """
        Build a config from a performance-mode preset plus explicit overrides.

        ``None`` overrides are ignored so CLI flags can be passed straight
        through. Unknown modes raise ConfigurationError.
        """
        if mode:
            profile = ConfigLoader.load_mode_profile(mode)
        else:
            profile = ConfigLoader.load_default_or_env_mode()
            mode = ConfigLoader.get_mode_from_env() or "balanced"
        if not isinstance(profile, dict):
            raise ConfigurationError(f"Mode '{mode}' must be a mapping")
        data = {**profile, **{k: v for k, v in overrides.items() if v is not None}}
        data["mode"] = mode.lower()
        return cls(**data)


class LocationFailure(BaseModel):
    location: str
    error_type: str
    reason: str


class SessionReport(BaseModel):
    """Observability and billing summary for one session."""

    session_id: Optional[str] = None
    mode: Optional[str] = None
    budget_limit: float = 0.0
    budget_status: str = "OK"
    locations_total: int = 0
    locations_processed: int = 0
    organization_matches: int = 0
    free_only_locations: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    api_calls: int = 0
    total_estimated_cost: float = 0.0
    total_actual_cost: float = 0.0
    reconciled_overshoot: float = 0.0
    discarded_venues: int = 0
    cluster_count: int = 0
    rejected_clusters: int = 0
    merged_clusters: int = 0
    absorbed_contacts: int = 0
    circuit_state: str = "closed"
    failed_locations: List[LocationFailure] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        return round(self.cache_hits / lookups, 3) if lookups else 0.0
