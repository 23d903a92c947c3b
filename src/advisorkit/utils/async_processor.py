"""
Deferred execution for advisorkit - a single-slot debounce timer.

Used to hold off recomputing recommendations until the advisor stops
editing: each new edit reschedules the task, and the task re-checks that the
state it was scheduled for is still current before acting.
"""

import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class DeferredTask:
    """
    Run ``action`` once ``delay_seconds`` have passed without another
    ``schedule()`` call.

    Only one run can be pending. ``is_current(token)`` is consulted when the
    timer fires with the token given to ``schedule``; a False answer skips the
    run, so a timer that slipped past a cancel never acts on stale state.
    """

    def __init__(
        self,
        delay_seconds: float,
        action: Callable[[Any], Any],
        is_current: Optional[Callable[[Any], bool]] = None,
        name: str = "DeferredTask",
    ):
        self.delay_seconds = delay_seconds
        self.action = action
        self.is_current = is_current
        self.name = name
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self.last_error: Optional[BaseException] = None
        self.runs = 0
        self.skipped = 0

    def schedule(self, token: Any = None) -> int:
        """Cancel any pending run and start the delay over. Returns the run's generation."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = threading.Timer(self.delay_seconds, self._fire, args=(generation, token))
            timer.daemon = True
            timer.name = f"{self.name}-{generation}"
            self._timer = timer
        timer.start()
        return generation

    def cancel(self) -> bool:
        """Drop the pending run, if any. Returns True if one was pending."""
        with self._lock:
            pending = self._timer is not None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            # Invalidate a timer that already fired but hasn't taken the lock yet.
            self._generation += 1
        return pending

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def _fire(self, generation: int, token: Any):
        with self._lock:
            if generation != self._generation:
                self.skipped += 1
                return
            self._timer = None

        if self.is_current is not None and not self.is_current(token):
            logger.debug("%s skipped: state changed since scheduling", self.name)
            with self._lock:
                self.skipped += 1
            return

        try:
            self.action(token)
            self.last_error = None
        except Exception as e:
            # Runs on a timer thread, so there is no caller to re-raise to.
            logger.error("%s failed: %s", self.name, e, exc_info=True)
            self.last_error = e
        finally:
            with self._lock:
                self.runs += 1

    def run_now(self, token: Any = None):
        """Cancel the pending run and execute immediately on the calling thread."""
        self.cancel()
        with self._lock:
            self._generation += 1
            generation = self._generation
        self._fire(generation, token)
