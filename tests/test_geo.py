"""
Unit Tests for Geo Module (src/geo)

Tests haversine distance, adaptive radius policy and campus detection.
"""

import math

import pytest

from src.geo import (
    Campus,
    CompanyLocationDetector,
    MatchConfidence,
    OrganizationPattern,
    RadiusPolicy,
    VenueType,
    find_organization,
    haversine_m,
    load_radius_policy_from_yaml,
    normalize_organization_name,
)
from src.geo.radius import MAX_RADIUS_M, MIN_RADIUS_M


# ==============================================================================
# Distance Tests
# ==============================================================================

class TestHaversine:
    """Test great-circle distance."""

    POINTS = [
        (37.7840, -122.4000),
        (37.4220, -122.0841),
        (40.7580, -73.9855),
        (-33.8688, 151.2093),
        (0.0, 0.0),
    ]

    def test_zero_distance(self):
        for lat, lng in self.POINTS:
            assert haversine_m(lat, lng, lat, lng) == 0.0

    def test_symmetric(self):
        for a in self.POINTS:
            for b in self.POINTS:
                assert haversine_m(*a, *b) == pytest.approx(haversine_m(*b, *a))

    def test_one_degree_latitude(self):
        # 2 * pi * R / 360
        assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_194.9, rel=1e-4)

    def test_nan_propagates(self):
        assert math.isnan(haversine_m(float("nan"), 0.0, 0.0, 0.0))


# ==============================================================================
# Radius Policy Tests
# ==============================================================================

class TestRadiusPolicy:
    """Test adaptive search radius resolution."""

    def test_default_venue_type(self):
        assert RadiusPolicy().resolve_radius(["unknown_type"]) == 250

    def test_takes_max_base_radius(self):
        policy = RadiusPolicy()
        # stadium 500 vs museum 300
        assert policy.resolve_radius(["museum", "stadium"]) == 500

    def test_clamped_to_ceiling(self):
        # expo centre base 1000 m
        assert RadiusPolicy().resolve_radius([VenueType.EXPO_CENTER]) == MAX_RADIUS_M

    def test_city_multiplier(self):
        # stadium 500 * 0.6
        assert RadiusPolicy().resolve_radius(["stadium"], city="San Francisco, CA") == 300

    def test_corporate_city_ceiling_and_floor(self):
        # convention 800 * 0.3 = 240, under the 400 corporate ceiling
        assert RadiusPolicy().resolve_radius(["convention_center"], city="Cupertino") == 240
        # office 200 * 0.3 = 60 -> floor
        assert RadiusPolicy().resolve_radius(["office_building"], city="Cupertino") == MIN_RADIUS_M

    def test_organization_clamp(self):
        policy = RadiusPolicy()
        assert policy.resolve_radius(["stadium"], organization_context="Apple Inc.") == 150
        # tight clustering disabled: no clamp
        policy.organizations["apple"] = OrganizationPattern(
            slug="apple", keywords=("apple",), tight_clustering=False, max_radius_m=150,
        )
        assert policy.resolve_radius(["stadium"], organization_context="Apple Inc.") == 500

    def test_deterministic(self):
        policy = RadiusPolicy()
        args = (["convention_center", "museum"], "Las Vegas", "Microsoft")
        assert policy.resolve_radius(*args) == policy.resolve_radius(*args)

    def test_always_within_bounds(self):
        policy = RadiusPolicy()
        types = [[], ["office_building"], ["convention_center", "expo_center"], ["stadium"], ["nope"]]
        cities = [None, "Las Vegas", "Cupertino", "Mountain View", "New York", "Nowhere"]
        orgs = [None, "Google", "Apple", "Microsoft Corp", "Acme"]
        for t in types:
            for city in cities:
                for org in orgs:
                    radius = policy.resolve_radius(t, city, org)
                    assert MIN_RADIUS_M <= radius <= MAX_RADIUS_M

    def test_yaml_override(self, tmp_path):
        path = tmp_path / "radius.yaml"
        path.write_text(
            "venue_types:\n"
            "  stadium: 450\n"
            "cities:\n"
            "  Austin: {multiplier: 0.8}\n"
        )
        policy = load_radius_policy_from_yaml(path)
        assert policy.resolve_radius(["stadium"]) == 450
        assert policy.resolve_radius(["stadium"], city="austin") == 360

    def test_yaml_missing_file_uses_defaults(self, tmp_path):
        policy = load_radius_policy_from_yaml(tmp_path / "absent.yaml")
        assert policy.resolve_radius(["stadium"]) == 500

    def test_yaml_unknown_venue_type(self, tmp_path):
        path = tmp_path / "radius.yaml"
        path.write_text("venue_types:\n  stadum: 450\n")
        with pytest.raises(ValueError):
            load_radius_policy_from_yaml(path)


# ==============================================================================
# Organization / Campus Tests
# ==============================================================================

class TestOrganizations:
    """Test organization name handling and campus detection."""

    def test_normalize_organization_name(self):
        assert normalize_organization_name("Google LLC") == "google"
        assert normalize_organization_name("Microsoft Corp.") == "microsoft"
        assert normalize_organization_name("  Acme   Widgets, Inc. ") == "acme widgets"

    def test_find_organization(self):
        assert find_organization("Alphabet Inc").slug == "google"
        assert find_organization("Initech") is None
        assert find_organization(None) is None

    def test_detect_high_confidence(self):
        match = CompanyLocationDetector().detect(37.4220, -122.0841)
        assert match is not None
        assert match.organization == "google"
        assert match.campus_name == "Googleplex Main"
        assert match.confidence == MatchConfidence.HIGH

    def test_detect_medium_confidence(self):
        # ~110 m north of the Googleplex centre (radius 150 m)
        match = CompanyLocationDetector().detect(37.4230, -122.0841)
        assert match is not None
        assert match.confidence == MatchConfidence.MEDIUM

    def test_detect_outside_campus(self):
        assert CompanyLocationDetector().detect(37.7840, -122.4000) is None

    def test_nearest_campus_wins(self):
        catalog = {
            "acme": OrganizationPattern(
                slug="acme",
                keywords=("acme",),
                campuses=(
                    Campus("North", 10.0010, 10.0, 500),
                    Campus("South", 9.9995, 10.0, 500),
                ),
            )
        }
        match = CompanyLocationDetector(catalog).detect(10.0, 10.0)
        assert match.campus_name == "South"
