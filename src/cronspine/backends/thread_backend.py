"""Zero-dependency threading-based timer backend.

This is the DEFAULT backend. Each Runner gets its own daemon thread.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD BACKEND LOOP                                                          │
│                                                                               │
│   start()                                                                     │
│      │                                                                        │
│      ▼                                                                        │
│   ┌─────────────────────────────────────────────────────────┐                │
│   │              Daemon Thread (loop)                       │                │
│   │                                                         │                │
│   │   base = max(now, last_scheduled)                       │                │
│   │   next_fire = schedule.next(base)                       │                │
│   │   if stop_event.wait(until next_fire): exit             │                │
│   │   tick_count += 1                                       │                │
│   │   callback()                       ◄─────── Fire        │                │
│   │                                                         │                │
│   └─────────────────────────────────────────────────────────┘                │
│                                                                               │
│   stop()                                                                      │
│      │                                                                        │
│      ▼                                                                        │
│   stop_event.set()      (no join: an in-flight firing is not awaited)        │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any

from cronspine.backends.protocol import BackendHealth, FireCallback
from cronspine.logging import get_logger
from cronspine.schedule import Schedule

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now().astimezone()


class ThreadTimerBackend:
    """One daemon thread sleeping between occurrences of one schedule.

    Example:
        >>> backend = ThreadTimerBackend()
        >>> backend.start(every(5), lambda: print("Tick!"))
        >>> # ... later ...
        >>> backend.stop()
    """

    name = "thread"

    def __init__(self) -> None:
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._next_fire: datetime | None = None
        self._started = False
        self._lock = threading.Lock()

    def start(self, schedule: Schedule, callback: FireCallback, name: str = "cron") -> None:
        if self._started:
            logger.warning("timer_already_started", backend=self.name, timer=name)
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            args=(schedule, callback, name),
            daemon=True,
            name=f"cronspine-{name}",
        )
        self._started = True
        self._thread.start()

    def _sleep_until(self, moment: datetime) -> bool:
        """Wait until ``moment``; True if stopped first."""
        while True:
            remaining = (moment - _now()).total_seconds()
            if remaining <= 0:
                return self._stop_event.is_set()
            if self._stop_event.wait(remaining):
                return True

    def _loop(self, schedule: Schedule, callback: FireCallback, name: str) -> None:
        logger.debug("timer_started", backend=self.name, timer=name, schedule=schedule.text)
        last_scheduled: datetime | None = None

        while not self._stop_event.is_set():
            now = _now()
            base = now if last_scheduled is None or now > last_scheduled else last_scheduled
            next_fire = schedule.next(base)
            with self._lock:
                self._next_fire = next_fire

            if self._sleep_until(next_fire):
                break
            # stop() may have landed after the wait returned
            if self._stop_event.is_set():
                break

            last_scheduled = next_fire
            with self._lock:
                self._tick_count += 1
                self._last_tick = datetime.now(UTC)

            try:
                callback()
            except Exception:
                logger.exception("timer_callback_failed", backend=self.name, timer=name)

        logger.debug("timer_stopped", backend=self.name, timer=name)

    def stop(self) -> None:
        """Signal the loop to exit. Returns immediately."""
        if not self._started:
            return
        self._stop_event.set()
        self._started = False
        with self._lock:
            self._next_fire = None

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        with self._lock:
            return BackendHealth(
                healthy=self.is_running,
                backend=self.name,
                tick_count=self._tick_count,
                last_tick=self._last_tick,
                next_fire=self._next_fire,
            )

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick
