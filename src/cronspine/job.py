"""Build scheduled actions: what to do, bound to when to do it.

Two families of constructors exist.

Deferred (``schedule_event``, ``schedule_func`` and the ``*_every`` interval
variants) never raise for a bad cron expression. The parse error is kept on
the action and raised when the action is started, so a host can assemble
its whole configuration first and report every problem at startup::

    job = schedule_event("0 0 * * *", Event("report.daily", "reports"))
    runner = job.start(logger, bus)        # raises ScheduleError if invalid

Result-returning (``try_schedule_event``, ``try_schedule_func``) surface
the error at the call site instead::

    match try_schedule_func("*/5 * * * *", refresh):
        case Ok(job):
            runner = job.start(logger)
        case Err(error):
            ...
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Any

from cronspine.action import Action, EmitEvents, InvokeCallback, describe
from cronspine.backends import TimerBackend
from cronspine.errors import ScheduleError
from cronspine.events import Event, EventSink
from cronspine.result import Err, Ok, Result
from cronspine.runner import Runner
from cronspine.schedule import Schedule, every, parse_schedule

Interval = timedelta | float | int


@dataclass(frozen=True)
class ScheduledAction:
    """An immutable (schedule, action) pair.

    Attributes:
        schedule: Parsed schedule, or None if parsing failed
        action: EmitEvents or InvokeCallback
        label: Descriptive name used only for logging
        schedule_text: The schedule as the caller wrote it
        error: Deferred parse error, raised by :meth:`start`
    """

    schedule: Schedule | None
    action: Action
    label: str
    schedule_text: str
    error: ScheduleError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def next_run(self, now: datetime | None = None) -> datetime | None:
        if self.schedule is None:
            return None
        return self.schedule.next(now or datetime.now().astimezone())

    def start(
        self,
        logger: Any,
        events: EventSink | None = None,
        backend: TimerBackend | None = None,
    ) -> Runner:
        """Start a new Runner for this action.

        ``events`` may be None for callback actions. Each call starts an
        independent Runner with its own timer loop.

        Raises:
            ScheduleError: the deferred parse error, before anything starts.
        """
        return Runner(self, logger, events=events, backend=backend).start()


def _from_expression(
    expression: str,
    action: Action,
    label: str | None,
    tz: tzinfo | None,
) -> ScheduledAction:
    parsed = parse_schedule(expression, tz)
    return ScheduledAction(
        schedule=parsed.unwrap_or(None),
        action=action,
        label=label or describe(action),
        schedule_text=expression,
        error=None if parsed.is_ok() else parsed.error,
    )


def _from_interval(interval: Interval, action: Action, label: str | None) -> ScheduledAction:
    schedule = every(interval)
    return ScheduledAction(
        schedule=schedule,
        action=action,
        label=label or describe(action),
        schedule_text=schedule.text,
    )


def _emit(events: tuple[Event, ...]) -> EmitEvents:
    return EmitEvents(tuple(events)) if events else EmitEvents.default()


# ── Deferred-error constructors ──────────────────────────────────────────


def schedule_event(
    expression: str,
    *events: Event,
    label: str | None = None,
    tz: tzinfo | None = None,
) -> ScheduledAction:
    """Emit ``events`` (or the ``cron.fired`` marker) on a cron schedule."""
    return _from_expression(expression, _emit(events), label, tz)


def schedule_func(
    expression: str,
    callback: Callable[[], object],
    *,
    label: str | None = None,
    tz: tzinfo | None = None,
) -> ScheduledAction:
    """Call ``callback`` on a cron schedule."""
    return _from_expression(expression, InvokeCallback(callback), label, tz)


def schedule_event_every(
    interval: Interval,
    *events: Event,
    label: str | None = None,
) -> ScheduledAction:
    """Emit ``events`` every ``interval`` (at least one second)."""
    return _from_interval(interval, _emit(events), label)


def schedule_func_every(
    interval: Interval,
    callback: Callable[[], object],
    *,
    label: str | None = None,
) -> ScheduledAction:
    """Call ``callback`` every ``interval`` (at least one second)."""
    return _from_interval(interval, InvokeCallback(callback), label)


# ── Result-returning constructors ────────────────────────────────────────


def _checked(action: ScheduledAction) -> Result[ScheduledAction]:
    if action.error is not None:
        return Err(action.error)
    return Ok(action)


def try_schedule_event(
    expression: str,
    *events: Event,
    label: str | None = None,
    tz: tzinfo | None = None,
) -> Result[ScheduledAction]:
    return _checked(schedule_event(expression, *events, label=label, tz=tz))


def try_schedule_func(
    expression: str,
    callback: Callable[[], object],
    *,
    label: str | None = None,
    tz: tzinfo | None = None,
) -> Result[ScheduledAction]:
    return _checked(schedule_func(expression, callback, label=label, tz=tz))


__all__ = [
    "ScheduledAction",
    "schedule_event",
    "schedule_func",
    "schedule_event_every",
    "schedule_func_every",
    "try_schedule_event",
    "try_schedule_func",
]
