"""
Query key factory.

Keys are hierarchical tuples rooted at the API path they are fetched from,
so two call sites asking for the same resource always build the same key
and share one cache entry (and one in-flight request).
"""
from typing import Any, Dict, Optional, Tuple

QueryKey = Tuple[str, ...]

PROJECTS = '/api/projects'
DASHBOARD_STATS = '/api/dashboard/stats'
AUTH_ME = '/api/auth/me'

PROJECT_RESOURCES = (
    'tasks',
    'guests',
    'budget',
    'vendors',
    'activities',
    'collaborators',
)


def _project_id(project_id: Any) -> str:
    if project_id is None or str(project_id).strip() in ('', 'undefined', 'None'):
        raise ValueError('A project id is required to build a project query key')
    return str(project_id)


class QueryKeys:
    """Namespace of key builders, one per cached resource."""

    @staticmethod
    def me() -> QueryKey:
        return (AUTH_ME,)

    @staticmethod
    def projects() -> QueryKey:
        return (PROJECTS,)

    @staticmethod
    def project(project_id: Any) -> QueryKey:
        return (PROJECTS, _project_id(project_id))

    @staticmethod
    def project_resource(project_id: Any, resource: str) -> QueryKey:
        if resource not in PROJECT_RESOURCES:
            raise ValueError(f"Unknown project resource: {resource}")
        return (PROJECTS, _project_id(project_id), resource)

    @classmethod
    def tasks(cls, project_id: Any) -> QueryKey:
        return cls.project_resource(project_id, 'tasks')

    @classmethod
    def guests(cls, project_id: Any) -> QueryKey:
        return cls.project_resource(project_id, 'guests')

    @classmethod
    def budget(cls, project_id: Any) -> QueryKey:
        return cls.project_resource(project_id, 'budget')

    @classmethod
    def vendors(cls, project_id: Any) -> QueryKey:
        return cls.project_resource(project_id, 'vendors')

    @classmethod
    def activities(cls, project_id: Any) -> QueryKey:
        return cls.project_resource(project_id, 'activities')

    @classmethod
    def collaborators(cls, project_id: Any) -> QueryKey:
        return cls.project_resource(project_id, 'collaborators')

    @staticmethod
    def dashboard_stats(project_id: Any = None) -> QueryKey:
        if project_id is None:
            return (DASHBOARD_STATS,)
        return (DASHBOARD_STATS, _project_id(project_id))


query_keys = QueryKeys()


def key_to_path(key: QueryKey) -> str:
    """Join a query key into the API path it is fetched from."""
    return '/'.join(str(part) for part in key)


def key_to_request(key: QueryKey) -> Tuple[str, Optional[Dict[str, str]]]:
    """Path and query parameters a key is fetched with."""
    if key and key[0] == DASHBOARD_STATS and len(key) > 1:
        return DASHBOARD_STATS, {'projectId': str(key[1])}
    return key_to_path(key), None


def key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    return tuple(key[:len(prefix)]) == tuple(prefix)
