"""
Query cache layer: key factory, staleness tiers, cache and prefetching.
"""

from .keys import QueryKey, QueryKeys, key_matches, key_to_path, key_to_request, query_keys
from .policy import CACHE_TIERS, CacheTier, is_realtime_key, tier_for_key
from .prefetch import PrefetchScheduler, make_fetcher
from .query_cache import CacheEntry, QueryCache

__all__ = [
    'CACHE_TIERS',
    'CacheEntry',
    'CacheTier',
    'PrefetchScheduler',
    'QueryCache',
    'QueryKey',
    'QueryKeys',
    'is_realtime_key',
    'key_matches',
    'key_to_path',
    'key_to_request',
    'make_fetcher',
    'query_keys',
    'tier_for_key',
]
