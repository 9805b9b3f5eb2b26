"""Timer backend protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TIMER BACKEND PROTOCOL                                                       │
│                                                                               │
│  A backend owns exactly one timer loop for exactly one Runner. It decides    │
│  WHEN to fire (sleep until the schedule's next occurrence); the Runner       │
│  decides WHAT happens on each firing.                                         │
│                                                                               │
│   ┌─────────────────┐   callback()   ┌─────────────────┐                     │
│   │  Thread Backend │ ─────────────► │  Runner.fire()  │                     │
│   │  (default)      │                │                 │                     │
│   └─────────────────┘                │  - emit events  │                     │
│   ┌─────────────────┐   callback()   │  - or call fn   │                     │
│   │  APScheduler    │ ─────────────► │  - log failures │                     │
│   │  Backend        │                └─────────────────┘                     │
│   └─────────────────┘                                                         │
│                                                                               │
│  Contract:                                                                    │
│  - start() returns once the loop is live; it never blocks the caller         │
│  - firings are serial and chronological, at or after the scheduled instant   │
│  - stop() is safe from any thread (including from inside a firing),          │
│    never blocks on an in-flight firing, and no firing starts after it        │
│    returns                                                                    │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from cronspine.schedule import Schedule

FireCallback = Callable[[], None]


@runtime_checkable
class TimerBackend(Protocol):
    """Protocol for pluggable timer backends.

    Implementations:
        - ThreadTimerBackend: stdlib threading (default)
        - APSchedulerTimerBackend: APScheduler BackgroundScheduler
          (requires the [apscheduler] extra)
    """

    name: str

    def start(self, schedule: Schedule, callback: FireCallback, name: str = "cron") -> None:
        """Start firing ``callback`` at every occurrence of ``schedule``."""
        ...

    def stop(self) -> None:
        """Cancel the pending wait. Does not wait for an in-flight firing."""
        ...

    @property
    def is_running(self) -> bool:
        ...

    def health(self) -> dict[str, Any]:
        """Return backend health status.

        Returns:
            dict with at least:
                - healthy: bool
                - backend: str
                - tick_count: int
                - last_tick: str | None
        """
        ...


@dataclass
class BackendHealth:
    """Structured backend health response."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    next_fire: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "next_fire": self.next_fire.isoformat() if self.next_fire else None,
            **self.extra,
        }
