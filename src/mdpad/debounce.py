"""Cancel-and-reschedule debouncing for bursty recomputation."""

import logging
import threading
from functools import partial
from typing import Any, Callable, Optional, Protocol, Tuple

log = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def _thread_timer(delay: float, fire: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay, fire)
    timer.daemon = True
    return timer


class Debouncer:
    """Coalesces a burst of triggers into one call with the latest arguments."""

    def __init__(
        self,
        delay_ms: int,
        callback: Callable[..., Any],
        timer_factory: Optional[TimerFactory] = None,
    ):
        """
        Initialize the debouncer.

        Args:
            delay_ms: Quiet period after the last trigger before the callback runs
            callback: Function to call with the arguments of the last trigger
            timer_factory: Creates the timer handle; defaults to a daemon threading.Timer
        """
        self.delay = delay_ms / 1000
        self.callback = callback
        self._timer_factory = timer_factory or _thread_timer
        self._timer: Optional[TimerHandle] = None
        self._pending: Optional[Tuple[tuple, dict]] = None
        # Bumped on every trigger and cancel; a timer only fires for its own generation
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def trigger(self, *args, **kwargs) -> None:
        """Reset and schedule the callback with these arguments."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (args, kwargs)
            self._generation += 1
            self._timer = self._timer_factory(self.delay, partial(self._fire, self._generation))
            self._timer.start()

    def flush(self) -> None:
        """Run a pending call immediately."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            generation = self._generation
        self._fire(generation)

    def cancel(self) -> None:
        """Drop a pending call without running it."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None
            self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                # Superseded by a later trigger while this timer was starting
                return
            pending = self._pending
            self._pending = None
            self._timer = None
        if pending is None:
            return
        args, kwargs = pending
        try:
            self.callback(*args, **kwargs)
        except Exception:
            log.exception("Debounced callback failed")
