"""
Database utilities for activity tracking.
"""

from .activity_log import ActivityLog, create_activity_description

__all__ = ['ActivityLog', 'create_activity_description']
