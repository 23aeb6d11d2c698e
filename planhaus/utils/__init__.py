"""
Shared utilities for the PlanHaus application.
"""

from .config import Config
from .logger import get_logger

__all__ = ['Config', 'get_logger']
