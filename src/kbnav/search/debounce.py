"""Trailing-edge debouncing for interactive search input."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from kbnav.config import SearchConfig

__all__ = ["Debouncer"]

logger = logging.getLogger(__name__)

_NOTHING = object()


class Debouncer:
    """Call ``callback`` with the latest submitted value after a quiet period.

    Each ``submit`` cancels the pending evaluation and schedules a new one
    ``delay`` seconds later, so a burst of keystrokes produces one call.

    Usage::

        debouncer = Debouncer(0.3, lambda q: print(search(index, q)))
        debouncer.submit("sig")
        debouncer.submit("signal")   # only this one runs
    """

    def __init__(self, delay: float, callback: Callable[[Any], object]) -> None:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.delay = delay
        self.callback = callback
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending: Any = _NOTHING

    @classmethod
    def from_milliseconds(cls, delay_ms: int, callback: Callable[[Any], object]) -> Debouncer:
        return cls(delay_ms / 1000, callback)

    @classmethod
    def from_config(cls, config: SearchConfig, callback: Callable[[Any], object]) -> Debouncer:
        """Debouncer using the ``[search] debounce_ms`` setting."""
        return cls.from_milliseconds(config.debounce_ms, callback)

    @property
    def pending(self) -> bool:
        return self._pending is not _NOTHING

    def submit(self, value: Any) -> None:
        """Replace any scheduled evaluation with one for ``value``."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = value
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        """Drop the scheduled evaluation, if any."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = _NOTHING

    def flush(self) -> bool:
        """Run the scheduled evaluation now. Returns False when nothing was pending."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            value, self._pending = self._pending, _NOTHING
        if value is _NOTHING:
            return False
        self.callback(value)
        return True

    def _fire(self) -> None:
        with self._lock:
            # A newer submit or a cancel may have won the race
            if self._timer is None or threading.current_thread() is not self._timer:
                return
            self._timer = None
            value, self._pending = self._pending, _NOTHING
        if value is _NOTHING:
            return
        logger.debug("Debounced evaluation for %r", value)
        self.callback(value)
