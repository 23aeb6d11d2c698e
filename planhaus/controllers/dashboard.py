"""
Dashboard data loader: cached fetches turned into chart-ready shapes.
"""
import asyncio
from typing import Any, Dict

from planhaus.analytics import (
    calculate_budget_progress,
    calculate_task_progress,
    summarize_budget_items,
    to_burndown,
    to_donut,
    to_funnel,
    to_status,
)
from planhaus.cache import QueryCache, make_fetcher, query_keys, tier_for_key
from planhaus.utils.logger import get_logger

logger = get_logger(__name__)


class DashboardLoader:
    """Loads a project's dashboard through the shared query cache."""

    def __init__(self, client, cache: QueryCache):
        self.client = client
        self.cache = cache

    async def _cached(self, key):
        return await self.cache.fetch(key, make_fetcher(self.client, key), tier_for_key(key).stale_time)

    async def load(self, project_id: Any) -> Dict[str, Any]:
        stats, tasks, budget_items, vendors = await asyncio.gather(
            self._cached(query_keys.dashboard_stats(project_id)),
            self._cached(query_keys.tasks(project_id)),
            self._cached(query_keys.budget(project_id)),
            self._cached(query_keys.vendors(project_id)),
        )
        tasks = tasks if isinstance(tasks, list) else []
        vendors = vendors if isinstance(vendors, list) else []
        budget = summarize_budget_items(budget_items if isinstance(budget_items, list) else [])

        return {
            'stats': stats or {},
            'budgetDonut': to_donut(budget),
            'budgetProgress': calculate_budget_progress(budget),
            'taskStatus': to_status(tasks),
            'taskProgress': calculate_task_progress(tasks),
            'burndown': to_burndown(tasks),
            'vendorFunnel': to_funnel(vendors),
        }
