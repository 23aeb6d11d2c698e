"""Tests for project prefetch scheduling."""

import asyncio

from planhaus.cache import PrefetchScheduler, QueryCache, query_keys


class FakeClient:
    def __init__(self, fail_paths=()):
        self.paths = []
        self.params = {}
        self.fail_paths = set(fail_paths)

    async def aget(self, path, params=None):
        self.paths.append(path)
        self.params[path] = params
        if path in self.fail_paths:
            raise ConnectionError(f"cannot reach {path}")
        return {'path': path}


def test_select_project_prefetches_essentials_then_navigation_targets():
    cache = QueryCache()
    client = FakeClient()
    scheduler = PrefetchScheduler(cache, client, debounce=0.01, navigation_delay=0.1)

    async def scenario():
        scheduler.select_project('p1')
        await asyncio.sleep(0.05)
        essentials = list(client.paths)
        await asyncio.sleep(0.15)
        return essentials

    essentials = asyncio.run(scenario())

    assert sorted(essentials) == ['/api/dashboard/stats', '/api/projects/p1']
    assert client.params['/api/dashboard/stats'] == {'projectId': 'p1'}
    assert sorted(client.paths[2:]) == [
        '/api/projects/p1/activities',
        '/api/projects/p1/budget',
        '/api/projects/p1/guests',
        '/api/projects/p1/tasks',
        '/api/projects/p1/vendors',
    ]
    assert cache.get_data(query_keys.tasks('p1')) == {'path': '/api/projects/p1/tasks'}


def test_reselecting_cancels_pending_prefetch():
    client = FakeClient()
    scheduler = PrefetchScheduler(QueryCache(), client, debounce=0.02, navigation_delay=0.02)

    async def scenario():
        scheduler.select_project('p1')
        await asyncio.sleep(0.005)
        scheduler.select_project('p2')
        await asyncio.sleep(0.08)

    asyncio.run(scenario())

    assert client.paths
    assert not any('/p1' in path for path in client.paths)


def test_cancel_drops_scheduled_prefetches():
    client = FakeClient()
    scheduler = PrefetchScheduler(QueryCache(), client, debounce=0.01, navigation_delay=0.01)

    async def scenario():
        scheduler.select_project('p1')
        scheduler.cancel()
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert client.paths == []


def test_prefetch_failures_never_surface():
    cache = QueryCache()
    client = FakeClient(fail_paths={'/api/dashboard/stats'})
    scheduler = PrefetchScheduler(cache, client, debounce=0.0, navigation_delay=0.0)

    asyncio.run(scheduler.prefetch_dashboard_essentials('p1'))

    assert query_keys.dashboard_stats('p1') not in cache
    assert cache.get_data(query_keys.project('p1')) == {'path': '/api/projects/p1'}


def test_selecting_no_project_schedules_nothing():
    client = FakeClient()
    scheduler = PrefetchScheduler(QueryCache(), client, debounce=0.0, navigation_delay=0.0)

    async def scenario():
        scheduler.select_project(None)
        await asyncio.sleep(0.01)

    asyncio.run(scenario())
    assert client.paths == []
    assert scheduler.project_id is None
