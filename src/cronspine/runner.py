"""The live timer loop bound to one ScheduledAction.

State machine::

    UNSTARTED ──start()──► RUNNING ──stop()──► STOPPED
        │
        └──start() with a deferred parse error──► FAILED  (dead end)

A Runner never stops on its own. A failing firing is logged as
``cron_job_failed`` and the loop keeps going until ``stop()``.

``stop()`` does not wait for a firing that is already executing. That firing
runs to completion on the timer thread and no firing follows it. This
keeps ``stop()`` safe to call from inside the action itself.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from cronspine.action import EmitEvents
from cronspine.action import fire as run_action
from cronspine.backends import ThreadTimerBackend, TimerBackend
from cronspine.errors import ConfigError, DispatchError, ScheduleError
from cronspine.events import EventSink

if TYPE_CHECKING:
    from cronspine.job import ScheduledAction


class RunnerState(str, Enum):
    UNSTARTED = "unstarted"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


def _bind(logger: Any, **context: Any) -> Any:
    if logger is None:
        raise ConfigError("a logger is required to start a scheduled action")
    if not hasattr(logger, "bind"):
        # plain stdlib loggers go through the structlog processor chain
        logger = structlog.wrap_logger(logger)
    return logger.bind(**context)


class Runner:
    """Runs one ScheduledAction on its own timer until stopped.

    Args:
        action: The scheduled action to run
        logger: structlog (or stdlib) logger receiving registration and
            failure logs
        events: Event sink; required only for event-emitting actions
        backend: Timer backend; a fresh ThreadTimerBackend by default

    Example:
        >>> runner = Runner(schedule_func_every(60, refresh), logger)
        >>> runner.start()
        >>> ...
        >>> runner.stop()
    """

    def __init__(
        self,
        action: ScheduledAction,
        logger: Any,
        events: EventSink | None = None,
        backend: TimerBackend | None = None,
    ) -> None:
        self.action = action
        self._logger = logger
        self._log: Any = None
        self._events = events
        self._backend = backend
        self._timer: TimerBackend | None = None
        self._state = RunnerState.UNSTARTED
        self._lock = threading.Lock()
        self._fire_count = 0
        self._last_fire: datetime | None = None

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> Runner:
        """Register the timer loop and return without blocking.

        Raises:
            ScheduleError: the action carries a deferred parse error, or
                this Runner was already started.
            ConfigError: no logger, or an event-emitting action without a sink.
        """
        with self._lock:
            if self.action.error is not None:
                self._state = RunnerState.FAILED
                raise self.action.error
            if self._state is not RunnerState.UNSTARTED:
                raise ScheduleError(
                    f"runner for {self.action.label} is already {self._state.value}"
                ).with_context(label=self.action.label, schedule=self.action.schedule_text)
            if isinstance(self.action.action, EmitEvents) and self._events is None:
                raise ConfigError(
                    f"scheduled events {self.action.label} need an event sink"
                ).with_context(label=self.action.label)

            schedule = self.action.schedule
            self._log = _bind(self._logger, label=self.action.label)
            next_run = schedule.next(datetime.now().astimezone())
            self._log.info(
                "cron_job_registered",
                schedule=self.action.schedule_text,
                next_run=next_run.isoformat(),
            )

            self._timer = self._backend or ThreadTimerBackend()
            self._timer.start(schedule, self.fire, name=self.action.label)
            self._state = RunnerState.RUNNING
        return self

    def stop(self) -> None:
        """Cancel the pending wait. A no-op if no timer was ever created."""
        with self._lock:
            if self._timer is None or self._state is not RunnerState.RUNNING:
                return
            self._timer.stop()
            self._state = RunnerState.STOPPED
        self._log.info("cron_job_stopped", fire_count=self._fire_count)

    def close(self) -> None:
        self.stop()

    def __enter__(self) -> Runner:
        if self._state is RunnerState.UNSTARTED:
            self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()

    # ── Firing ────────────────────────────────────────────────────────

    def fire(self) -> None:
        """Run the action once on the calling thread; failures are logged."""
        log = self._log if self._log is not None else _bind(self._logger, label=self.action.label)
        try:
            run_action(self.action.action, self._events)
        except Exception as exc:
            error = DispatchError(
                f"scheduled action {self.action.label} failed", cause=exc
            ).with_context(label=self.action.label, schedule=self.action.schedule_text)
            log.exception("cron_job_failed", **error.to_dict())
            return
        self._fire_count += 1
        self._last_fire = datetime.now(UTC)
        log.debug("cron_job_fired", fire_count=self._fire_count)

    # ── Introspection ─────────────────────────────────────────────────

    @property
    def state(self) -> RunnerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is RunnerState.RUNNING

    @property
    def fire_count(self) -> int:
        return self._fire_count

    @property
    def last_fire(self) -> datetime | None:
        return self._last_fire

    def health(self) -> dict[str, Any]:
        base: dict[str, Any] = {
            "label": self.action.label,
            "schedule": self.action.schedule_text,
            "state": self._state.value,
            "fire_count": self._fire_count,
        }
        if self._timer is not None:
            base["timer"] = self._timer.health()
        return base

    def __repr__(self) -> str:
        return f"Runner({self.action.label!r}, schedule={self.action.schedule_text!r}, state={self._state.value})"


__all__ = ["Runner", "RunnerState"]
