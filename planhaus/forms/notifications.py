"""
Toast notifications raised by form controllers.
"""
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from planhaus.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Toast:
    title: str
    description: str
    variant: str = 'default'  # 'default' | 'destructive'
    duration: Optional[float] = None  # seconds; None stays until dismissed
    created_at: float = field(default=0.0)


class Notifier:
    """Keeps the toasts currently on screen; transient ones expire on their own."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._toasts: List[Toast] = []

    def notify(self, title: str, description: str, variant: str = 'default',
               duration: Optional[float] = None) -> Toast:
        toast = Toast(title, description, variant, duration, self._clock())
        self._toasts.append(toast)
        log = logger.error if variant == 'destructive' else logger.info
        log(f"{title}: {description}")
        return toast

    def success(self, title: str, description: str, duration: Optional[float] = 2.0) -> Toast:
        return self.notify(title, description, 'default', duration)

    def error(self, title: str, description: str) -> Toast:
        return self.notify(title, description, 'destructive', None)

    def dismiss(self, toast: Toast):
        if toast in self._toasts:
            self._toasts.remove(toast)

    def active(self) -> List[Toast]:
        now = self._clock()
        self._toasts = [
            t for t in self._toasts
            if t.duration is None or now - t.created_at < t.duration
        ]
        return list(self._toasts)
