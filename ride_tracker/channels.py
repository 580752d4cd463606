"""Ordered sample channels and the ride duration ticker."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Generic, Optional, TypeVar

from .config import CHANNEL_STOP_TIMEOUT_SECONDS, DURATION_TICK_SECONDS

T = TypeVar("T")

__all__ = ["DurationTicker", "SampleChannel"]

_STOP = object()


class SampleChannel(Generic[T]):
    """FIFO queue drained by a single consumer thread.

    Items are handed to ``handler`` one at a time in arrival order. A handler
    failure is logged and the consumer moves on to the next item. Items put
    while the channel is not running are dropped.
    """

    def __init__(self, name: str, handler: Callable[[T], None]) -> None:
        self.name = name
        self._handler = handler
        self._log = logging.getLogger(f"{self.__class__.__name__}.{name}")
        self._lock = threading.Lock()
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._accepting = False
        self._dropped = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._accepting

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def start(self) -> None:
        with self._lock:
            if self._accepting:
                return
            self._queue = queue.Queue()
            self._thread = threading.Thread(
                target=self._consume,
                args=(self._queue,),
                name=f"{self.name}-channel",
                daemon=True,
            )
            self._accepting = True
            self._thread.start()
        self._log.debug("Channel started")

    def put(self, item: T) -> bool:
        with self._lock:
            if not self._accepting:
                self._dropped += 1
                self._log.debug("Channel halted; dropping item")
                return False
            self._queue.put(item)
            return True

    def drain(self) -> None:
        """Block until every item queued so far has been handled."""

        self._queue.join()

    def stop(self, timeout: float = CHANNEL_STOP_TIMEOUT_SECONDS) -> None:
        """Stop accepting, finish queued items and wait for the consumer."""

        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            thread = self._thread
            self._thread = None
            self._queue.put(_STOP)
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout)
        if thread.is_alive():
            self._log.warning("Channel consumer did not stop within %.1fs", timeout)
        else:
            self._log.debug("Channel stopped")

    def _consume(self, items: "queue.Queue[object]") -> None:
        while True:
            item = items.get()
            try:
                if item is _STOP:
                    return
                self._handler(item)  # type: ignore[arg-type]
            except Exception as exc:
                self._log.error(
                    "Handler failed for channel item: %s", exc, exc_info=True
                )
            finally:
                items.task_done()


class DurationTicker:
    """Calls ``on_tick(generation)`` at a fixed cadence until stopped.

    Every start bumps the generation. The callback is expected to ignore
    ticks from an older generation, so a tick already in flight when the
    ticker is stopped never counts.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None],
        interval_s: float = DURATION_TICK_SECONDS,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._on_tick = on_tick
        self.interval_s = interval_s
        self._log = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._generation = 0
        self._stop_event: Optional[threading.Event] = None

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def running(self) -> bool:
        with self._lock:
            return self._stop_event is not None

    def start(self) -> int:
        with self._lock:
            if self._stop_event is not None:
                self._stop_event.set()
            self._generation += 1
            generation = self._generation
            stop_event = threading.Event()
            self._stop_event = stop_event
        thread = threading.Thread(
            target=self._run,
            args=(generation, stop_event),
            name=f"duration-ticker-{generation}",
            daemon=True,
        )
        thread.start()
        return generation

    def stop(self) -> None:
        with self._lock:
            if self._stop_event is None:
                return
            self._stop_event.set()
            self._stop_event = None
            self._generation += 1

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return self._stop_event is not None and generation == self._generation

    def _run(self, generation: int, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval_s):
            try:
                self._on_tick(generation)
            except Exception as exc:
                self._log.error("Duration tick failed: %s", exc, exc_info=True)
