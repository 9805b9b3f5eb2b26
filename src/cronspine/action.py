"""What a scheduled action does when it fires.

An action is one of two variants:

* ``EmitEvents`` publishes a fixed, ordered tuple of events to the event sink.
* ``InvokeCallback`` calls a zero-argument function.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field

from cronspine.errors import ConfigError
from cronspine.events import Event, EventSink

MARKER_EVENT_TYPE = "cron.fired"
MARKER_SOURCE = "cron"


def marker_event() -> Event:
    """The default event emitted by a job that was given no events."""
    return Event(event_type=MARKER_EVENT_TYPE, source=MARKER_SOURCE)


@dataclass(frozen=True)
class EmitEvents:
    """Publish ``events`` in order on every firing.

    An empty tuple means "emit the marker": a fresh :func:`marker_event`
    is built per firing so each one carries its own id and timestamp.
    """

    events: tuple[Event, ...] = ()

    @classmethod
    def default(cls) -> EmitEvents:
        return cls(())

    @property
    def uses_marker(self) -> bool:
        return not self.events

    def resolve(self) -> tuple[Event, ...]:
        """The events one firing publishes."""
        return self.events or (marker_event(),)


@dataclass(frozen=True)
class InvokeCallback:
    callback: Callable[[], object] = field(compare=False)


Action = EmitEvents | InvokeCallback


def describe(action: Action) -> str:
    """Log label for an action: event types, or the callback's qualified name."""
    if isinstance(action, EmitEvents):
        if action.uses_marker:
            return MARKER_EVENT_TYPE
        return ", ".join(_event_label(evt) for evt in action.events)
    fn = action.callback
    return getattr(fn, "__qualname__", None) or type(fn).__qualname__


def _event_label(event: object) -> str:
    return getattr(event, "event_type", None) or type(event).__qualname__


async def _publish_all(events: tuple[Event, ...], sink: EventSink) -> None:
    for event in events:
        await sink.publish(event)


def fire(action: Action, sink: EventSink | None = None) -> None:
    """Run one firing of ``action`` synchronously on the calling thread.

    Raises:
        ConfigError: ``EmitEvents`` with no sink.
        Exception: whatever the callback or the sink raises. If publishing
            one event fails, the remaining events of that firing are skipped.
    """
    if isinstance(action, EmitEvents):
        if sink is None:
            raise ConfigError("event sink is required to emit scheduled events")
        asyncio.run(_publish_all(action.resolve(), sink))
        return

    result = action.callback()
    if inspect.isawaitable(result):
        asyncio.run(_await(result))


async def _await(awaitable) -> None:
    await awaitable


__all__ = [
    "MARKER_EVENT_TYPE",
    "MARKER_SOURCE",
    "Action",
    "EmitEvents",
    "InvokeCallback",
    "describe",
    "fire",
    "marker_event",
]
