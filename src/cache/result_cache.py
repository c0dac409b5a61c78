"""
Two-tier cache for Places search results.

Keys are coarse (about 1 km buckets, radius rounded up to
500 m, at most two venue types) so nearby searches from different sessions
share entries. Keys carry only geometry, types, field tier and query text,
never contact identifiers.

Tiers:
- primary: per-entry TTL (default 30 minutes), bounded size, LRU eviction
- secondary: longer-lived (default 4 hours) for cross-session reuse;
  hits are promoted back into the primary tier
"""

from __future__ import annotations

import logging
import math
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from cachetools import TLRUCache, TTLCache

from src.schemas.models import VenueCandidate

logger = logging.getLogger(__name__)


# Cache TTL values (seconds)
TTL_PRIMARY = 30 * 60
TTL_SECONDARY = 4 * 60 * 60

MAX_ENTRIES = 1000
MAX_SECONDARY_ENTRIES = 5000


@dataclass(frozen=True)
class CacheKeyPolicy:
    """How much precision a key gives up; tune to trade hit rate for accuracy."""

    decimals: int = 2
    """Coordinate decimal places kept (2 ~ 1.1 km at the equator)."""

    radius_step_m: int = 500
    """Radius is rounded up to a multiple of this."""

    max_types: int = 2
    """Number of leading venue types kept (then sorted)."""

    def make_key(
        self,
        kind: str,
        lat: float,
        lng: float,
        radius_m: float,
        venue_types: Iterable[str] = (),
        tier: Optional[str] = None,
        query: Optional[str] = None,
    ) -> str:
        """
        Build a coarsened key.

        Example:
            >>> CacheKeyPolicy().make_key("nearby", 37.7843, -122.4003, 320, ["stadium", "arena", "museum"])
            'nearby|37.78|-122.40|500|arena,stadium|-'
        """
        lat_key = f"{round(lat, self.decimals) + 0.0:.{self.decimals}f}"
        lng_key = f"{round(lng, self.decimals) + 0.0:.{self.decimals}f}"
        radius_key = int(math.ceil(radius_m / self.radius_step_m) * self.radius_step_m)
        types_key = ",".join(sorted(list(venue_types)[: self.max_types]))
        parts = [kind, lat_key, lng_key, str(radius_key), types_key, tier or "-"]
        if query:
            parts.append(re.sub(r"\s+", " ", query.strip().lower()))
        return "|".join(parts)


@dataclass(frozen=True)
class CacheEntry:
    """A cached search payload; an empty ``venues`` tuple records a known-empty area."""
    key: str
    venues: Tuple[VenueCandidate, ...]
    created_at: float
    expires_at: float

    @property
    def ttl(self) -> float:
        return self.expires_at - self.created_at

    @property
    def is_empty(self) -> bool:
        return not self.venues


def _entry_is_valid(entry: Any) -> bool:
    return isinstance(entry, CacheEntry) and all(
        isinstance(v, VenueCandidate) for v in entry.venues
    )


class ResultCache:
    """Thread-safe coarse-keyed cache shared across sessions."""

    def __init__(
        self,
        maxsize: int = MAX_ENTRIES,
        ttl: float = TTL_PRIMARY,
        secondary_maxsize: int = MAX_SECONDARY_ENTRIES,
        secondary_ttl: Optional[float] = TTL_SECONDARY,
        key_policy: Optional[CacheKeyPolicy] = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            maxsize: Primary tier capacity
            ttl: Default primary TTL in seconds
            secondary_maxsize: Secondary tier capacity
            secondary_ttl: Secondary TTL in seconds; None disables the tier
            key_policy: Key coarsening policy
            timer: Clock shared by both tiers (injectable for tests)
        """
        self.default_ttl = ttl
        self.key_policy = key_policy or CacheKeyPolicy()
        self._timer = timer
        self._lock = threading.RLock()
        self._primary: TLRUCache = TLRUCache(
            maxsize=maxsize,
            ttu=lambda _key, entry, now: now + entry.ttl,
            timer=timer,
        )
        self._secondary: Optional[TTLCache] = (
            TTLCache(maxsize=secondary_maxsize, ttl=secondary_ttl, timer=timer)
            if secondary_ttl
            else None
        )
        self.hits = 0
        self.misses = 0
        self.writes = 0

    def make_key(self, kind: str, lat: float, lng: float, radius_m: float, **kwargs: Any) -> str:
        return self.key_policy.make_key(kind, lat, lng, radius_m, **kwargs)

    def _lookup(self, cache: Any, key: str) -> Optional[CacheEntry]:
        entry = cache.get(key)
        if entry is None:
            return None
        if not _entry_is_valid(entry):
            logger.warning("Dropping unreadable cache entry for key %s", key)
            cache.pop(key, None)
            return None
        return entry

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for ``key`` or None; unreadable entries count as misses."""
        with self._lock:
            entry = self._lookup(self._primary, key)
            if entry is None and self._secondary is not None:
                entry = self._lookup(self._secondary, key)
                if entry is not None:
                    now = self._timer()
                    self._primary[key] = CacheEntry(key, entry.venues, now, now + self.default_ttl)

            if entry is None:
                self.misses += 1
                return None

            self.hits += 1
            logger.debug("Cache HIT: %s (%d venues)", key, len(entry.venues))
            return entry

    def get(self, key: str) -> Optional[List[VenueCandidate]]:
        entry = self.get_entry(key)
        return list(entry.venues) if entry is not None else None

    def set(
        self,
        key: str,
        venues: Sequence[VenueCandidate],
        ttl: Optional[float] = None,
    ) -> CacheEntry:
        """Store ``venues`` (possibly empty) under ``key`` in both tiers."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            now = self._timer()
            entry = CacheEntry(key=key, venues=tuple(venues), created_at=now, expires_at=now + ttl)
            self._primary[key] = entry
            if self._secondary is not None:
                self._secondary[key] = entry
            self.writes += 1
            logger.debug("Cache SET: %s (%d venues, ttl=%ss)", key, len(entry.venues), ttl)
            return entry

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._primary or (self._secondary is not None and key in self._secondary)

    def __len__(self) -> int:
        with self._lock:
            return len(self._primary)

    def clear(self) -> None:
        """Clear both tiers and reset counters."""
        with self._lock:
            self._primary.clear()
            if self._secondary is not None:
                self._secondary.clear()
            self.hits = self.misses = self.writes = 0

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            self._primary.expire()
            lookups = self.hits + self.misses
            return {
                "primary": {
                    "size": len(self._primary),
                    "maxsize": self._primary.maxsize,
                    "ttl": self.default_ttl,
                },
                "secondary": {
                    "size": len(self._secondary) if self._secondary is not None else 0,
                    "maxsize": self._secondary.maxsize if self._secondary is not None else 0,
                    "ttl": self._secondary.ttl if self._secondary is not None else None,
                },
                "hits": self.hits,
                "misses": self.misses,
                "writes": self.writes,
                "hit_rate": round(self.hits / lookups, 3) if lookups else 0.0,
            }
