"""
Client-side controllers: API access, real-time updates and dashboard loading.
"""

from .api_client import ApiError, AuthenticationError, PlanHausClient
from .dashboard import DashboardLoader
from .realtime_client import RealtimeClient

__all__ = ['ApiError', 'AuthenticationError', 'DashboardLoader', 'PlanHausClient', 'RealtimeClient']
