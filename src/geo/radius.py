"""
Adaptive search-radius policy.

The radius for a venue search starts from the widest base radius among the
requested venue types, is scaled by a city adjustment, clamped for corporate
cities and tightly clustered organizations, and finally clamped to absolute
bounds. The policy is pure: the same inputs always yield the same radius.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

import yaml

from .organizations import DEFAULT_ORGANIZATIONS, OrganizationPattern, find_organization


class VenueType(str, Enum):
    """Venue categories with a dedicated base radius."""
    CORPORATE_CAMPUS = "corporate_campus"
    OFFICE_BUILDING = "office_building"
    CONVENTION_CENTER = "convention_center"
    EXPO_CENTER = "expo_center"
    STADIUM = "stadium"
    ARENA = "arena"
    UNIVERSITY = "university"
    MUSEUM = "museum"
    ART_GALLERY = "art_gallery"
    LODGING = "lodging"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: Union[str, "VenueType"]) -> "VenueType":
        """Map a free-form type string onto the enum, falling back to DEFAULT."""
        if isinstance(value, VenueType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.DEFAULT


@dataclass(frozen=True)
class VenuePolicy:
    base_radius_m: float
    description: str = ""


@dataclass(frozen=True)
class CityPolicy:
    """City-specific multiplier; corporate cities get a hard ceiling."""
    multiplier: float
    corporate_mode: bool = False
    description: str = ""


DEFAULT_VENUE_POLICIES: Dict[VenueType, VenuePolicy] = {
    VenueType.CORPORATE_CAMPUS: VenuePolicy(300, "Corporate buildings and immediate vicinity"),
    VenueType.OFFICE_BUILDING: VenuePolicy(200, "Individual office buildings"),
    VenueType.CONVENTION_CENTER: VenuePolicy(800, "Convention center complex"),
    VenueType.EXPO_CENTER: VenuePolicy(1000, "Expo center with multiple halls"),
    VenueType.STADIUM: VenuePolicy(500, "Stadium and immediate facilities"),
    VenueType.ARENA: VenuePolicy(400, "Arena and immediate vicinity"),
    VenueType.UNIVERSITY: VenuePolicy(600, "University building or quad area"),
    VenueType.MUSEUM: VenuePolicy(300, "Museum building and immediate area"),
    VenueType.ART_GALLERY: VenuePolicy(200, "Gallery building"),
    VenueType.LODGING: VenuePolicy(300, "Hotel building and immediate facilities"),
    VenueType.DEFAULT: VenuePolicy(250, "Individual buildings or small complexes"),
}

DEFAULT_CITY_POLICIES: Dict[str, CityPolicy] = {
    "mountain view": CityPolicy(0.4, True, "Google campus and surrounding tech companies"),
    "palo alto": CityPolicy(0.4, True, "Stanford campus and tech offices"),
    "cupertino": CityPolicy(0.3, True, "Apple Park area"),
    "redmond": CityPolicy(0.4, True, "Microsoft campus"),
    "san francisco": CityPolicy(0.6, False, "Dense urban area"),
    "new york": CityPolicy(0.5, False, "Very dense urban area"),
    "las vegas": CityPolicy(1.2, False, "Convention areas"),
}

CORPORATE_CEILING_M = 400
MIN_RADIUS_M = 100
MAX_RADIUS_M = 600


def normalize_city(city: str) -> str:
    """'San Francisco, CA' -> 'san francisco'."""
    return re.sub(r"[\s_]+", " ", city.split(",")[0].strip().lower())


@dataclass
class RadiusPolicy:
    """Structured lookup tables plus the clamping bounds."""

    venue_policies: Dict[VenueType, VenuePolicy] = field(
        default_factory=lambda: dict(DEFAULT_VENUE_POLICIES)
    )
    city_policies: Dict[str, CityPolicy] = field(
        default_factory=lambda: dict(DEFAULT_CITY_POLICIES)
    )
    organizations: Dict[str, OrganizationPattern] = field(
        default_factory=lambda: dict(DEFAULT_ORGANIZATIONS)
    )
    corporate_ceiling_m: float = CORPORATE_CEILING_M
    min_radius_m: float = MIN_RADIUS_M
    max_radius_m: float = MAX_RADIUS_M

    def base_radius(self, venue_types: Iterable[Union[str, VenueType]]) -> float:
        default = self.venue_policies[VenueType.DEFAULT].base_radius_m
        radii = [
            self.venue_policies.get(VenueType.parse(t), self.venue_policies[VenueType.DEFAULT]).base_radius_m
            for t in venue_types
        ]
        return max(radii) if radii else default

    def city_policy(self, city: Optional[str]) -> Optional[CityPolicy]:
        if not city:
            return None
        return self.city_policies.get(normalize_city(city))

    def resolve_radius(
        self,
        venue_types: Iterable[Union[str, VenueType]],
        city: Optional[str] = None,
        organization_context: Optional[str] = None,
    ) -> int:
        """
        Compute the search radius in metres.

        Args:
            venue_types: Requested venue types (strings or VenueType)
            city: Optional city name used for the city multiplier
            organization_context: Optional free text naming an organization

        Returns:
            Radius in whole metres within [min_radius_m, max_radius_m]
        """
        radius = self.base_radius(venue_types)

        city_cfg = self.city_policy(city)
        if city_cfg is not None:
            radius = round(radius * city_cfg.multiplier)
            if city_cfg.corporate_mode:
                radius = min(radius, self.corporate_ceiling_m)

        pattern = find_organization(organization_context, self.organizations)
        if pattern is not None and pattern.tight_clustering:
            radius = min(radius, pattern.max_radius_m)

        return int(min(max(radius, self.min_radius_m), self.max_radius_m))


def load_radius_policy_from_yaml(yaml_path: Optional[Union[str, Path]] = None) -> RadiusPolicy:
    """
    Load radius tables from YAML, falling back to built-in tables.

    Unknown venue-type keys raise ValueError so typos fail at load time.

    YAML Format:
        ```yaml
        venue_types:
          convention_center: 800
          default: 250
        cities:
          las vegas: {multiplier: 1.2, corporate_mode: false}
        corporate_ceiling_m: 400
        min_radius_m: 100
        max_radius_m: 600
        ```
    """
    if yaml_path is None:
        yaml_path = Path(__file__).parent.parent.parent / "configs" / "radius.yaml"

    yaml_path = Path(yaml_path)
    if not yaml_path.exists():
        return RadiusPolicy()

    with open(yaml_path, "r") as f:
        data = yaml.safe_load(f) or {}

    venue_policies = dict(DEFAULT_VENUE_POLICIES)
    for key, base in (data.get("venue_types") or {}).items():
        venue_policies[VenueType(key)] = VenuePolicy(float(base))

    city_policies = dict(DEFAULT_CITY_POLICIES)
    for name, cfg in (data.get("cities") or {}).items():
        city_policies[normalize_city(name)] = CityPolicy(
            multiplier=float(cfg["multiplier"]),
            corporate_mode=bool(cfg.get("corporate_mode", False)),
            description=cfg.get("description", ""),
        )

    return RadiusPolicy(
        venue_policies=venue_policies,
        city_policies=city_policies,
        corporate_ceiling_m=data.get("corporate_ceiling_m", CORPORATE_CEILING_M),
        min_radius_m=data.get("min_radius_m", MIN_RADIUS_M),
        max_radius_m=data.get("max_radius_m", MAX_RADIUS_M),
    )
