"""
Staleness tiers and which resources belong to them.
"""
from dataclasses import dataclass

from .keys import DASHBOARD_STATS, PROJECTS, QueryKey

MINUTE = 60


@dataclass(frozen=True)
class CacheTier:
    name: str
    stale_time: float  # seconds a fetched value is served without refetching
    gc_time: float  # seconds an unused entry is retained


CACHE_TIERS = {
    'realtime': CacheTier('realtime', 30, 2 * MINUTE),
    'dynamic': CacheTier('dynamic', 2 * MINUTE, 5 * MINUTE),
    'static': CacheTier('static', 15 * MINUTE, 30 * MINUTE),
    'dashboard': CacheTier('dashboard', 5 * MINUTE, 10 * MINUTE),
}

RESOURCE_TIERS = {
    'activities': 'realtime',
    'collaborators': 'realtime',
    'tasks': 'dynamic',
    'guests': 'dynamic',
    'budget': 'dynamic',
    'vendors': 'static',
}

REALTIME_RESOURCES = tuple(r for r, tier in RESOURCE_TIERS.items() if tier == 'realtime')


def tier_for_key(key: QueryKey) -> CacheTier:
    if key and key[0] == DASHBOARD_STATS:
        return CACHE_TIERS['dashboard']
    if len(key) >= 3 and key[0] == PROJECTS:
        return CACHE_TIERS[RESOURCE_TIERS.get(key[2], 'dynamic')]
    # Project lists, project details and the current user rarely change
    return CACHE_TIERS['static']


def is_realtime_key(key: QueryKey) -> bool:
    return any(resource in key for resource in REALTIME_RESOURCES)
