"""Event model and the sink contract consumed by cron runners.

Why This Package Exists
-----------------------
A runner built from ``schedule_event`` needs somewhere to publish its events.
The runner only ever calls ``await sink.publish(event)``, so any object with
that coroutine method is a valid sink. The host decides what that means:
fan-out to handlers, a Redis channel, a test spy.

``InMemoryEventBus`` is the default sink for single-process hosts and tests.

Usage::

    from cronspine.events import Event
    from cronspine.events.memory import InMemoryEventBus

    bus = InMemoryEventBus()

    async def on_tick(event: Event):
        print(f"tick at {event.timestamp}")

    await bus.subscribe("cron.*", on_tick)

Modules
-------
memory      InMemoryEventBus -- thread-safe, single process
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "EventSink",
]


# ── Event Model ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Event:
    """Immutable event published by a scheduled action.

    Attributes:
        event_type: Dot-separated type (e.g., ``cron.fired``, ``report.daily``)
        source: Origin system/component
        payload: Event-specific data
        timestamp: When the event was created (UTC)
        correlation_id: Optional ID linking related events
        event_id: Unique event identifier
    """

    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    correlation_id: str | None = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, pattern: str) -> bool:
        """Check if event type matches a pattern (supports wildcards).

        Examples:
            - ``cron.*`` matches ``cron.fired``, ``cron.report.daily``
            - ``*`` matches everything
            - ``cron.fired`` matches exactly ``cron.fired``
        """
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return self.event_type.startswith(prefix + ".")
        return self.event_type == pattern


# ── Type Aliases ─────────────────────────────────────────────────────────

EventHandler = Callable[[Event], Awaitable[None]]


# ── Protocols ────────────────────────────────────────────────────────────


@runtime_checkable
class EventSink(Protocol):
    """The emit contract: the only thing a runner needs from a bus."""

    async def publish(self, event: Event) -> None:
        ...


@runtime_checkable
class EventBus(EventSink, Protocol):
    """Publish/subscribe bus with wildcard patterns."""

    async def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """Subscribe to events matching a pattern.

        Returns:
            Subscription ID for later unsubscription
        """
        ...

    async def unsubscribe(self, subscription_id: str) -> None:
        ...

    async def close(self) -> None:
        ...
