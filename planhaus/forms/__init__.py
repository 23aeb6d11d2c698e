"""
Form controllers with autosave and toast notifications.
"""

from .autosave import (
    UNSAVED_CHANGES_WARNING,
    AutosaveConfigError,
    AutosaveController,
    AutosaveOptions,
    SaveState,
)
from .notifications import Notifier, Toast

__all__ = [
    'UNSAVED_CHANGES_WARNING',
    'AutosaveConfigError',
    'AutosaveController',
    'AutosaveOptions',
    'Notifier',
    'SaveState',
    'Toast',
]
