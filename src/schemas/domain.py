"""Session-scoped domain objects: contacts, search locations and clusters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .models import VenueCandidate


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class ContactLocation:
    """Where and when a contact was captured. Immutable once created."""

    contact_id: str
    lat: float
    lng: float
    organization: Optional[str] = None
    timestamp: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContactLocation":
        """
        Build from a contact-store record.

        Accepts either flat ``lat``/``lng`` keys or a nested
        ``location: {latitude, longitude}`` object, and ``company`` as an
        alias of ``organization``.
        """
        location = data.get("location") or {}
        lat = data.get("lat", location.get("latitude"))
        lng = data.get("lng", location.get("longitude"))
        if lat is None or lng is None:
            raise ValueError(f"Contact {data.get('id')!r} has no coordinates")
        return cls(
            contact_id=str(data.get("contact_id") or data["id"]),
            lat=float(lat),
            lng=float(lng),
            organization=data.get("organization") or data.get("company") or None,
            timestamp=_parse_timestamp(data.get("timestamp")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contact_id": self.contact_id,
            "lat": self.lat,
            "lng": self.lng,
            "organization": self.organization,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class SearchLocation:
    """A deduplicated focal point aggregating nearby contacts."""
    lat: float
    lng: float
    contacts: List[ContactLocation] = field(default_factory=list)

    @property
    def priority(self) -> int:
        return len(self.contacts)

    @property
    def label(self) -> str:
        return f"{self.lat:.4f},{self.lng:.4f}"


class SimilarityTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ClusterSource(str, Enum):
    """Which grouping path produced a cluster."""
    VENUE = "venue"
    ORGANIZATION_CAMPUS = "organization_campus"
    SHARED_ORGANIZATION = "shared_organization"
    FREE = "free"


@dataclass
class Cluster:
    """Contacts believed to have met at the same place."""

    contacts: List[ContactLocation]
    confidence: float
    similarity_tier: SimilarityTier
    source: ClusterSource
    label: str
    max_distance_m: float
    """Validated maximum distance between any two members."""
    venue: Optional[VenueCandidate] = None
    organization: Optional[str] = None

    @property
    def contact_ids(self) -> List[str]:
        return [c.contact_id for c in self.contacts]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "source": self.source.value,
            "contact_ids": self.contact_ids,
            "confidence": round(self.confidence, 3),
            "similarity_tier": self.similarity_tier.value,
            "max_distance_m": self.max_distance_m,
            "organization": self.organization,
            "venue": self.venue.model_dump() if self.venue else None,
        }
