import asyncio

from planhaus.cache import QueryCache
from planhaus.controllers import DashboardLoader


class FakeClient:
    def __init__(self, data, stats):
        self.data = data
        self.stats = stats
        self.paths = []

    async def aget(self, path, params=None):
        self.paths.append(path)
        if path == '/api/dashboard/stats':
            return self.stats[(params or {}).get('projectId')]
        return self.data.get(path, [])


class AppClient:
    """Async client facade over a FastAPI TestClient."""

    def __init__(self, client, headers):
        self.client = client
        self.headers = headers

    async def aget(self, path, params=None):
        response = self.client.get(path, params=params, headers=self.headers)
        assert response.status_code == 200, response.text
        return response.json()


def test_load_builds_chart_shapes_through_the_cache():
    client = FakeClient({
        '/api/projects/p1/tasks': [{'title': 'Book venue', 'status': 'completed'}],
        '/api/projects/p1/budget': [
            {'category': 'Venue', 'estimatedCost': '1000', 'actualCost': '950'},
        ],
        '/api/projects/p1/vendors': [{'name': 'Hall', 'status': 'booked'}],
    }, stats={'p1': {'daysUntilWedding': 90}})
    loader = DashboardLoader(client, QueryCache())

    async def scenario():
        first = await loader.load('p1')
        await loader.load('p1')
        return first

    dashboard = asyncio.run(scenario())

    assert len(client.paths) == 4
    assert dashboard['stats'] == {'daysUntilWedding': 90}
    assert dashboard['budgetProgress'] == {'percentage': 95.0, 'status': 'on-track'}
    assert dashboard['budgetDonut']['remaining'] == 50
    assert dashboard['taskProgress']['percentage'] == 100
    assert dashboard['vendorFunnel']['stages'][-1]['value'] == 1


def test_stats_are_cached_per_project():
    client = FakeClient({}, stats={'p1': {'daysUntilWedding': 90}, 'p2': {'daysUntilWedding': 10}})
    loader = DashboardLoader(client, QueryCache())

    async def scenario():
        return await loader.load('p1'), await loader.load('p2')

    first, second = asyncio.run(scenario())

    assert first['stats'] == {'daysUntilWedding': 90}
    assert second['stats'] == {'daysUntilWedding': 10}


def test_load_second_project_against_the_api(client, auth_headers, project):
    second = client.post("/api/projects", headers=auth_headers, json={
        "name": "Second Wedding", "date": "2099-09-01", "budget": 500,
    }).json()
    response = client.post(f"/api/projects/{second['id']}/tasks", headers=auth_headers,
                           json={"title": "Pick flowers"})
    assert response.status_code == 201

    loader = DashboardLoader(AppClient(client, auth_headers), QueryCache())
    dashboard = asyncio.run(loader.load(second['id']))

    assert dashboard['stats']['projectId'] == second['id']
    assert dashboard['stats']['budget']['total'] == 500
    assert dashboard['stats']['tasks']['total'] == 1
    assert dashboard['taskProgress']['total'] == 1
