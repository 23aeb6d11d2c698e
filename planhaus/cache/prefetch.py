"""
Project prefetching.

Selecting a project schedules two rounds of background fetches: the
dashboard essentials after a short debounce, then the pages a planner is
likely to open next. Prefetching only warms the cache; every failure is
swallowed because the target views fetch for themselves anyway.
"""
import asyncio
from typing import Any, Callable, List, Optional, Set

from planhaus.utils.config import Config
from planhaus.utils.logger import get_logger

from .keys import QueryKey, key_to_request, query_keys
from .policy import tier_for_key
from .query_cache import QueryCache

logger = get_logger(__name__)


def make_fetcher(client, key: QueryKey) -> Callable:
    """Async fetcher loading ``key`` from its API path with ``client``."""
    path, params = key_to_request(key)

    async def fetch():
        return await client.aget(path, params=params)

    return fetch


def dashboard_essential_keys(project_id: Any) -> List[QueryKey]:
    return [
        query_keys.dashboard_stats(project_id),
        query_keys.project(project_id),
    ]


def navigation_target_keys(project_id: Any) -> List[QueryKey]:
    return [
        query_keys.tasks(project_id),
        query_keys.guests(project_id),
        query_keys.budget(project_id),
        query_keys.vendors(project_id),
        query_keys.activities(project_id),
    ]


class PrefetchScheduler:
    """Debounced, cancellable prefetching for the currently selected project."""

    def __init__(
        self,
        cache: QueryCache,
        client,
        debounce: float = Config.PREFETCH_DEBOUNCE_SECONDS,
        navigation_delay: float = Config.PREFETCH_NAVIGATION_DELAY_SECONDS,
    ):
        self.cache = cache
        self.client = client
        self.debounce = debounce
        self.navigation_delay = navigation_delay
        self.project_id: Optional[str] = None
        self._handles: List[asyncio.TimerHandle] = []
        self._tasks: Set[asyncio.Task] = set()

    def select_project(self, project_id: Any):
        """Cancel any pending prefetch and schedule both rounds for ``project_id``."""
        self.cancel()
        if project_id is None or str(project_id) in ('', 'undefined'):
            self.project_id = None
            return
        self.project_id = str(project_id)

        loop = asyncio.get_running_loop()
        self._handles = [
            loop.call_later(self.debounce, self._spawn, self.prefetch_dashboard_essentials, self.project_id),
            loop.call_later(self.debounce + self.navigation_delay, self._spawn,
                            self.prefetch_navigation_targets, self.project_id),
        ]

    def _spawn(self, prefetch, project_id: str):
        if project_id != self.project_id:
            return
        task = asyncio.ensure_future(prefetch(project_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _prefetch_keys(self, keys: List[QueryKey]):
        await asyncio.gather(*(
            self.cache.prefetch(key, make_fetcher(self.client, key), tier_for_key(key).stale_time)
            for key in keys
        ))

    async def prefetch_dashboard_essentials(self, project_id: Any):
        logger.debug(f"Prefetching dashboard essentials for project {project_id}")
        await self._prefetch_keys(dashboard_essential_keys(project_id))

    async def prefetch_navigation_targets(self, project_id: Any):
        logger.debug(f"Prefetching navigation targets for project {project_id}")
        await self._prefetch_keys(navigation_target_keys(project_id))

    def cancel(self):
        """Drop scheduled prefetches; call when the view using them goes away."""
        for handle in self._handles:
            handle.cancel()
        self._handles = []
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
