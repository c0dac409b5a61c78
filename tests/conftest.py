"""
Pytest configuration and shared fixtures for venue grouping tests.

This file provides:
- Mock Places API (New) transport built on httpx.MockTransport
- Contact and venue payload fixtures
- Fake clock and recording sleep for time-dependent components
"""

import json
import os
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

from src.budget import BudgetMonitor
from src.cache import ResultCache
from src.grouping import GroupingOrchestrator
from src.places import PlacesApiClient
from src.schemas import ContactLocation, SessionConfig


# ==============================================================================
# Places API payloads
# ==============================================================================

def place_payload(
    place_id: str,
    name: str,
    lat: float,
    lng: float,
    types: Optional[List[str]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """One entry of a Places API (New) ``places`` array."""
    payload = {
        "id": place_id,
        "displayName": {"text": name, "languageCode": "en"},
        "location": {"latitude": lat, "longitude": lng},
        "types": types or [],
    }
    payload.update(extra)
    return payload


@pytest.fixture
def moscone_payload() -> Dict[str, Any]:
    return place_payload(
        "moscone_1", "Moscone Center", 37.7842, -122.4010,
        ["convention_center", "event_venue"],
    )


# ==============================================================================
# Mock transport
# ==============================================================================

ScriptedResponse = Union[httpx.Response, Dict[str, Any], Exception]


class MockPlaces:
    """
    Scripted Places API.

    Each request pops the next scripted response; once the script is
    exhausted the ``default`` response is returned. Dict entries are sent
    as 200 JSON bodies; exceptions are raised from the transport.
    """

    def __init__(self, responses: Optional[List[ScriptedResponse]] = None, default: Optional[ScriptedResponse] = None):
        self.responses = list(responses or [])
        self.default = default if default is not None else {"places": []}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        scripted = self.responses.pop(0) if self.responses else self.default
        if isinstance(scripted, Exception):
            raise scripted
        if isinstance(scripted, httpx.Response):
            # fresh copy so scripted responses can be served repeatedly
            return httpx.Response(scripted.status_code, headers=scripted.headers, content=scripted.content)
        return httpx.Response(200, json=scripted)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def body(self, index: int = -1) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)


@pytest.fixture
def mock_places() -> Callable[..., MockPlaces]:
    """Factory: mock_places([responses...], default=...)."""
    return MockPlaces


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_client(recording_sleep):
    """Build a PlacesApiClient on a MockPlaces transport without real sleeping."""

    def _make(places: MockPlaces, **kwargs: Any) -> PlacesApiClient:
        kwargs.setdefault("api_key", "TEST_API_KEY_NOT_REAL")
        kwargs.setdefault("sleep", recording_sleep)
        return PlacesApiClient(transport=places.transport, **kwargs)

    return _make


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# ==============================================================================
# Contacts
# ==============================================================================

@pytest.fixture
def downtown_contacts() -> List[ContactLocation]:
    """Three contacts within ~80 m of each other near Moscone Center."""
    return [
        ContactLocation("c1", 37.7840, -122.4000),
        ContactLocation("c2", 37.7843, -122.4003),
        ContactLocation("c3", 37.7846, -122.3997),
    ]


@pytest.fixture
def googleplex_contacts() -> List[ContactLocation]:
    """Two contacts at the Googleplex main campus centre."""
    return [
        ContactLocation("g1", 37.4220, -122.0841, organization="Google LLC"),
        ContactLocation("g2", 37.4221, -122.0842, organization="Google"),
    ]


# ==============================================================================
# Orchestrator
# ==============================================================================

@pytest.fixture
def make_orchestrator(make_client):
    """Build a GroupingOrchestrator with a fresh budget around a MockPlaces."""

    def _make(
        places: MockPlaces,
        config: Optional[SessionConfig] = None,
        cache: Optional[ResultCache] = None,
        **kwargs: Any,
    ) -> GroupingOrchestrator:
        config = config or SessionConfig(budget_limit=0.10)
        budget = BudgetMonitor(config.budget_limit, max_calls=config.max_api_calls)
        return GroupingOrchestrator(
            make_client(places),
            cache if cache is not None else ResultCache(),
            budget,
            config,
            **kwargs,
        )

    return _make


# ==============================================================================
# Environment Setup
# ==============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Setup test environment variables."""
    # Dummy key for tests (not a real key)
    os.environ["GOOGLE_MAPS_API_KEY"] = "TEST_API_KEY_NOT_REAL"
    yield
