"""Tests for the query key factory, staleness tiers and the query cache."""

import asyncio

import pytest

from planhaus.cache import CACHE_TIERS, QueryCache, key_to_path, key_to_request, query_keys, tier_for_key
from planhaus.controllers import ApiError


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def cache(clock):
    return QueryCache(clock=clock)


def counting_fetcher(value='data', delay=0.0):
    calls = []

    async def fetch():
        calls.append(1)
        if delay:
            await asyncio.sleep(delay)
        return value

    return fetch, calls


# Keys and tiers

def test_identical_requests_build_identical_keys():
    assert query_keys.tasks(7) == query_keys.tasks('7') == ('/api/projects', '7', 'tasks')
    assert key_to_path(query_keys.budget('p1')) == '/api/projects/p1/budget'
    assert key_to_path(query_keys.dashboard_stats()) == '/api/dashboard/stats'


def test_dashboard_stats_key_is_scoped_by_project():
    assert query_keys.dashboard_stats('p1') != query_keys.dashboard_stats('p2')
    assert key_to_request(query_keys.dashboard_stats('p1')) == ('/api/dashboard/stats', {'projectId': 'p1'})
    assert key_to_request(query_keys.tasks('p1')) == ('/api/projects/p1/tasks', None)


@pytest.mark.parametrize("project_id", [None, '', 'undefined'])
def test_project_keys_require_a_project_id(project_id):
    with pytest.raises(ValueError):
        query_keys.tasks(project_id)


def test_unknown_resource_is_rejected():
    with pytest.raises(ValueError):
        query_keys.project_resource('p1', 'seating')


@pytest.mark.parametrize("key,tier", [
    (query_keys.activities('p1'), 'realtime'),
    (query_keys.collaborators('p1'), 'realtime'),
    (query_keys.tasks('p1'), 'dynamic'),
    (query_keys.guests('p1'), 'dynamic'),
    (query_keys.budget('p1'), 'dynamic'),
    (query_keys.vendors('p1'), 'static'),
    (query_keys.projects(), 'static'),
    (query_keys.dashboard_stats(), 'dashboard'),
    (query_keys.dashboard_stats('p1'), 'dashboard'),
])
def test_tier_for_key(key, tier):
    assert tier_for_key(key) is CACHE_TIERS[tier]


def test_tier_windows():
    assert (CACHE_TIERS['realtime'].stale_time, CACHE_TIERS['realtime'].gc_time) == (30, 120)
    assert (CACHE_TIERS['dashboard'].stale_time, CACHE_TIERS['dashboard'].gc_time) == (300, 600)


# Fetching

def test_concurrent_fetches_share_one_request(cache):
    fetch, calls = counting_fetcher(value={'tasks': 3}, delay=0.01)
    key = query_keys.dashboard_stats()

    async def scenario():
        return await asyncio.gather(*(cache.fetch(key, fetch) for _ in range(5)))

    results = asyncio.run(scenario())

    assert len(calls) == 1
    assert results == [{'tasks': 3}] * 5
    assert not cache.is_fetching(key)


def test_fresh_data_is_served_from_cache_until_stale(cache, clock):
    fetch, calls = counting_fetcher()
    key = query_keys.tasks('p1')

    async def scenario():
        await cache.fetch(key, fetch)
        clock.advance(119)
        await cache.fetch(key, fetch)
        clock.advance(1)
        await cache.fetch(key, fetch)

    asyncio.run(scenario())
    assert len(calls) == 2


def test_fetch_errors_reach_every_waiter_and_are_not_cached(cache):
    attempts = []

    async def failing():
        attempts.append(1)
        await asyncio.sleep(0.01)
        raise RuntimeError('boom')

    key = query_keys.guests('p1')

    async def scenario():
        return await asyncio.gather(cache.fetch(key, failing), cache.fetch(key, failing),
                                    return_exceptions=True)

    results = asyncio.run(scenario())

    assert len(attempts) == 1
    assert all(isinstance(r, RuntimeError) for r in results)
    assert key not in cache


def test_prefetch_swallows_errors(cache):
    async def failing():
        raise ConnectionError('offline')

    asyncio.run(cache.prefetch(query_keys.vendors('p1'), failing))
    assert len(cache) == 0


def test_retryable_errors_are_retried(clock):
    cache = QueryCache(clock=clock, retries=2, retry_delay=0)
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ApiError('Service unavailable', 503)
        return 'ok'

    assert asyncio.run(cache.fetch(query_keys.tasks('p1'), flaky)) == 'ok'
    assert len(attempts) == 3


def test_permanent_errors_are_not_retried(clock):
    cache = QueryCache(clock=clock, retries=2, retry_delay=0)
    attempts = []

    async def forbidden():
        attempts.append(1)
        raise ApiError('Forbidden', 403)

    with pytest.raises(ApiError):
        asyncio.run(cache.fetch(query_keys.tasks('p1'), forbidden))
    assert len(attempts) == 1


def test_retries_give_up_after_the_limit(clock):
    cache = QueryCache(clock=clock, retries=1, retry_delay=0)
    attempts = []

    async def offline():
        attempts.append(1)
        raise ApiError('connection refused')

    with pytest.raises(ApiError):
        asyncio.run(cache.fetch(query_keys.tasks('p1'), offline))
    assert len(attempts) == 2
    assert query_keys.tasks('p1') not in cache


# Invalidation

def test_invalidate_marks_entries_stale(cache):
    cache.set_data(query_keys.tasks('p1'), [])
    cache.set_data(query_keys.tasks('p2'), [])

    assert cache.invalidate(prefix=query_keys.project('p1')) == 1
    assert cache.is_stale(query_keys.tasks('p1'))
    assert not cache.is_stale(query_keys.tasks('p2'))
    # Invalidated data stays readable until refetched
    assert cache.get_data(query_keys.tasks('p1')) == []


def test_invalidate_during_fetch_refetches_next_time(cache):
    key = query_keys.tasks('p1')
    server = {'value': 'before-mutation'}
    release = None

    async def fetch():
        value = server['value']
        await release.wait()
        return value

    async def scenario():
        nonlocal release
        release = asyncio.Event()
        pending = asyncio.ensure_future(cache.fetch(key, fetch))
        await asyncio.sleep(0.01)
        assert cache.is_fetching(key)

        server['value'] = 'after-mutation'
        assert cache.invalidate(prefix=key) == 1
        release.set()
        first = await pending

        return first, await cache.fetch(key, fetch)

    first, second = asyncio.run(scenario())

    assert first == 'before-mutation'
    assert second == 'after-mutation'
    assert not cache.is_stale(key)


def test_invalidate_project_data_only_touches_that_projects_stats(cache):
    cache.set_data(query_keys.dashboard_stats('p1'), {})
    cache.set_data(query_keys.dashboard_stats('p2'), {})
    cache.set_data(query_keys.dashboard_stats(), {})

    cache.invalidate_project_data('p1', 'budget')

    assert cache.is_stale(query_keys.dashboard_stats('p1'))
    assert cache.is_stale(query_keys.dashboard_stats())
    assert not cache.is_stale(query_keys.dashboard_stats('p2'))


def test_invalidate_project_data_also_invalidates_dashboard_stats(cache):
    cache.set_data(query_keys.dashboard_stats(), {})
    cache.set_data(query_keys.tasks('p1'), [])
    cache.set_data(query_keys.vendors('p1'), [])

    cache.invalidate_project_data('p1', 'tasks')

    assert cache.is_stale(query_keys.tasks('p1'))
    assert cache.is_stale(query_keys.dashboard_stats())
    assert not cache.is_stale(query_keys.vendors('p1'))


def test_invalidate_project_data_for_vendors_keeps_dashboard(cache):
    cache.set_data(query_keys.dashboard_stats(), {})
    cache.set_data(query_keys.vendors('p1'), [])

    cache.invalidate_project_data('p1', 'vendors')

    assert cache.is_stale(query_keys.vendors('p1'))
    assert not cache.is_stale(query_keys.dashboard_stats())


def test_invalidate_all_project_data(cache):
    for key in (query_keys.tasks('p1'), query_keys.budget('p1'), query_keys.dashboard_stats()):
        cache.set_data(key, [])
    cache.invalidate_project_data('p1')
    assert all(cache.is_stale(key) for key in cache.keys())


def test_visibility_change_only_invalidates_realtime_feeds(cache):
    cache.set_data(query_keys.activities('p1'), [])
    cache.set_data(query_keys.collaborators('p1'), [])
    cache.set_data(query_keys.tasks('p1'), [])
    cache.set_data(query_keys.dashboard_stats(), {})

    assert cache.on_visibility_change(False) == 0
    assert cache.on_visibility_change(True) == 2

    assert cache.is_stale(query_keys.activities('p1'))
    assert cache.is_stale(query_keys.collaborators('p1'))
    assert not cache.is_stale(query_keys.tasks('p1'))
    assert not cache.is_stale(query_keys.dashboard_stats())


# Cleanup

def test_remove_stale_data_evicts_old_entries(cache, clock):
    cache.set_data(query_keys.vendors('p1'), [])
    clock.advance(20 * 60)
    cache.set_data(query_keys.tasks('p1'), [])
    clock.advance(11 * 60)

    assert cache.remove_stale_data(max_age=30 * 60) == 1
    assert query_keys.vendors('p1') not in cache
    assert query_keys.tasks('p1') in cache


def test_collect_garbage_uses_tier_retention(cache, clock):
    cache.set_data(query_keys.activities('p1'), [])
    cache.set_data(query_keys.vendors('p1'), [])
    clock.advance(3 * 60)

    assert cache.collect_garbage() == 1
    assert query_keys.activities('p1') not in cache
    assert query_keys.vendors('p1') in cache


def test_start_cleanup_runs_periodically_and_close_stops_it(cache, clock):
    cache.set_data(query_keys.tasks('p1'), [])
    clock.advance(31 * 60)

    async def scenario():
        task = cache.start_cleanup(interval=0.01, max_age=30 * 60)
        await asyncio.sleep(0.05)
        assert len(cache) == 0
        cache.close()
        await asyncio.sleep(0)
        return task

    task = asyncio.run(scenario())
    assert task.cancelled()


def test_cleanup_run_keeps_recently_fetched_entries(cache, clock):
    cache.set_data(query_keys.activities('p1'), [])
    clock.advance(3 * 60)

    async def scenario():
        cache.start_cleanup(interval=0.01, max_age=30 * 60)
        await asyncio.sleep(0.05)
        present = query_keys.activities('p1') in cache
        cache.close()
        return present

    assert asyncio.run(scenario())
