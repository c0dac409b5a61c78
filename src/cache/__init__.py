"""Shared, coarse-keyed cache for Places search results."""

from .result_cache import (
    CacheEntry,
    CacheKeyPolicy,
    ResultCache,
    TTL_PRIMARY,
    TTL_SECONDARY,
)

__all__ = [
    "CacheEntry",
    "CacheKeyPolicy",
    "ResultCache",
    "TTL_PRIMARY",
    "TTL_SECONDARY",
]
