"""
Client-side query cache.

A ``QueryCache`` is an ordinary object: build one when the application
starts, pass it to whatever needs cached data, and ``close()`` it on
shutdown. Tests construct their own instance with a fake clock.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from planhaus.utils.config import Config
from planhaus.utils.logger import get_logger

from .keys import DASHBOARD_STATS, PROJECTS, QueryKey, key_matches
from .policy import is_realtime_key, tier_for_key

logger = get_logger(__name__)

Fetcher = Callable[[], Awaitable[Any]]

# Resources whose changes feed the dashboard stats snapshot
DASHBOARD_DEPENDENCIES = ('tasks', 'guests', 'budget')


@dataclass
class CacheEntry:
    key: QueryKey
    data: Any = None
    updated_at: float = 0.0
    last_accessed: float = 0.0
    invalidated: bool = False
    fetch_count: int = field(default=0)


class QueryCache:
    """Keyed cache with request de-duplication and staleness tiers."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, retries: int = Config.QUERY_RETRIES,
                 retry_delay: float = Config.QUERY_RETRY_DELAY_SECONDS):
        self._clock = clock
        self.retries = retries
        self.retry_delay = retry_delay
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._inflight: Dict[QueryKey, asyncio.Task] = {}
        # In-flight keys invalidated after their request was sent
        self._invalidated_inflight: Set[QueryKey] = set()
        self._cleanup_task: Optional[asyncio.Task] = None

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return tuple(key) in self._entries

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    def get_entry(self, key) -> Optional[CacheEntry]:
        return self._entries.get(tuple(key))

    def get_data(self, key) -> Any:
        entry = self._entries.get(tuple(key))
        return entry.data if entry else None

    def set_data(self, key, data: Any) -> CacheEntry:
        key = tuple(key)
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        entry.data = data
        entry.updated_at = now
        entry.last_accessed = now
        entry.invalidated = False
        entry.fetch_count += 1
        return entry

    def is_stale(self, key, stale_time: Optional[float] = None) -> bool:
        entry = self._entries.get(tuple(key))
        if entry is None or entry.invalidated:
            return True
        if stale_time is None:
            stale_time = tier_for_key(entry.key).stale_time
        return self._clock() - entry.updated_at >= stale_time

    def is_fetching(self, key) -> bool:
        return tuple(key) in self._inflight

    async def fetch(self, key, fetcher: Fetcher, stale_time: Optional[float] = None,
                    retries: Optional[int] = None) -> Any:
        """
        Return cached data for ``key`` if it is still fresh, otherwise load it.

        Concurrent calls for the same key share one in-flight request and all
        receive its result (or its exception). Failed loads are not cached.
        Errors flagged ``retryable`` (see ``ApiError``) are retried up to
        ``retries`` times with exponential backoff.
        """
        key = tuple(key)
        if not self.is_stale(key, stale_time):
            entry = self._entries[key]
            entry.last_accessed = self._clock()
            return entry.data

        task = self._inflight.get(key)
        if task is None:
            self._invalidated_inflight.discard(key)
            task = asyncio.ensure_future(self._load(key, fetcher, self.retries if retries is None else retries))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget_inflight(key, done))
        return await asyncio.shield(task)

    async def _load(self, key: QueryKey, fetcher: Fetcher, retries: int) -> Any:
        attempt = 0
        while True:
            logger.debug(f"Fetching {key}")
            try:
                data = await fetcher()
                break
            except Exception as e:
                if attempt >= retries or not getattr(e, 'retryable', False):
                    raise
                delay = self.retry_delay * (2 ** attempt)
                attempt += 1
                logger.debug(f"Retrying {key} in {delay}s (attempt {attempt} of {retries}): {e}")
                await asyncio.sleep(delay)

        entry = self.set_data(key, data)
        if key in self._invalidated_inflight:
            # Invalidated while the request was out; keep the data but refetch next time
            self._invalidated_inflight.discard(key)
            entry.invalidated = True
        return data

    def _forget_inflight(self, key: QueryKey, task: asyncio.Task):
        if self._inflight.get(key) is task:
            del self._inflight[key]
            self._invalidated_inflight.discard(key)

    async def prefetch(self, key, fetcher: Fetcher, stale_time: Optional[float] = None) -> None:
        """Warm the cache for ``key``; failures are logged at debug level only."""
        try:
            await self.fetch(key, fetcher, stale_time)
        except Exception as e:
            logger.debug(f"Prefetch error (non-critical) for {tuple(key)}: {e}")

    def _matching(self, keys, prefix, predicate) -> List[QueryKey]:
        return [
            key for key in keys
            if (prefix is None or key_matches(key, tuple(prefix)))
            and (predicate is None or predicate(key))
        ]

    def invalidate(self, prefix=None, predicate: Optional[Callable[[QueryKey], bool]] = None) -> int:
        """
        Mark matching entries stale so the next fetch reloads them.

        Requests already in flight for a matching key still complete, but
        their result is stored as stale.
        """
        matched = self._matching(self._entries, prefix, predicate)
        for key in matched:
            self._entries[key].invalidated = True
        inflight = self._matching(self._inflight, prefix, predicate)
        self._invalidated_inflight.update(inflight)
        return len(set(matched) | set(inflight))

    def remove(self, prefix=None, predicate: Optional[Callable[[QueryKey], bool]] = None) -> int:
        doomed = self._matching(self._entries, prefix, predicate)
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def invalidate_project_data(self, project_id, data_type: Optional[str] = None) -> int:
        """
        Invalidate one project's cached data.

        With no ``data_type`` (or ``'all'``) every key under the project is
        invalidated; otherwise only that resource. Dashboard stats are
        invalidated too whenever the change can affect them.
        """
        project_prefix = (PROJECTS, str(project_id))
        if data_type in (None, 'all'):
            return self.invalidate(prefix=project_prefix) + self._invalidate_dashboard(project_id)

        count = self.invalidate(prefix=project_prefix + (data_type,))
        if data_type in DASHBOARD_DEPENDENCIES:
            count += self._invalidate_dashboard(project_id)
        return count

    def _invalidate_dashboard(self, project_id) -> int:
        # The project's own stats plus the unscoped "current project" stats
        scoped = (DASHBOARD_STATS, str(project_id))
        return self.invalidate(predicate=lambda key: key[0] == DASHBOARD_STATS
                               and (len(key) == 1 or key == scoped))

    def on_visibility_change(self, visible: bool) -> int:
        """
        Tab refocus handling: only real-time feeds (activities, collaborators)
        are invalidated, never the whole cache.
        """
        if not visible:
            return 0
        return self.invalidate(prefix=(PROJECTS,), predicate=is_realtime_key)

    def remove_stale_data(self, max_age: float = Config.CACHE_MAX_AGE_SECONDS) -> int:
        """Evict entries whose data is older than ``max_age`` seconds."""
        cutoff = self._clock() - max_age
        removed = self.remove(predicate=lambda key: self._entries[key].updated_at < cutoff
                              and key not in self._inflight)
        if removed:
            logger.info(f"Removed {removed} stale cache entries")
        return removed

    def collect_garbage(self) -> int:
        """Evict entries nobody has read within their tier's retention window."""
        now = self._clock()
        return self.remove(predicate=lambda key: key not in self._inflight
                           and now - self._entries[key].last_accessed > tier_for_key(key).gc_time)

    def start_cleanup(self, interval: float = Config.CACHE_CLEANUP_INTERVAL_SECONDS,
                      max_age: float = Config.CACHE_MAX_AGE_SECONDS) -> asyncio.Task:
        """
        Run stale-data eviction every ``interval`` seconds until closed.

        Only entries older than ``max_age`` are evicted; tier retention is
        left to explicit ``collect_garbage()`` calls.
        """
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.ensure_future(self._cleanup_loop(interval, max_age))
        return self._cleanup_task

    async def _cleanup_loop(self, interval: float, max_age: float):
        while True:
            await asyncio.sleep(interval)
            self.remove_stale_data(max_age)

    def clear(self):
        self._entries.clear()

    def close(self):
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None
        for task in self._inflight.values():
            task.cancel()
        self._inflight.clear()
        self._invalidated_inflight.clear()
        self.clear()
