"""cronspine: run recurring actions on cron expressions or fixed intervals.

A scheduled action either publishes events to an event sink or calls a
plain function. Each started action gets its own Runner with a dedicated
timer loop, which fires the action serially until it is stopped.

Quick Start::

    from cronspine import Event, InMemoryEventBus, get_logger, schedule_event

    bus = InMemoryEventBus()
    job = schedule_event("0 0 * * *", Event("report.daily", "reports"))
    runner = job.start(get_logger("cron"), bus)
    ...
    runner.stop()
"""

from __future__ import annotations

from cronspine.action import MARKER_EVENT_TYPE, EmitEvents, InvokeCallback, marker_event
from cronspine.errors import (
    INVALID_SCHEDULE,
    ConfigError,
    CronspineError,
    DispatchError,
    ScheduleError,
)
from cronspine.events import Event, EventBus, EventSink
from cronspine.events.memory import InMemoryEventBus
from cronspine.host import CronModule, Host, HostConfig, Module
from cronspine.job import (
    ScheduledAction,
    schedule_event,
    schedule_event_every,
    schedule_func,
    schedule_func_every,
    try_schedule_event,
    try_schedule_func,
)
from cronspine.logging import configure_logging, get_logger
from cronspine.result import Err, Ok, Result
from cronspine.runner import Runner, RunnerState
from cronspine.schedule import CronSchedule, IntervalSchedule, Schedule, every, parse_schedule

__version__ = "0.1.0"

__all__ = [
    # Building
    "ScheduledAction",
    "schedule_event",
    "schedule_func",
    "schedule_event_every",
    "schedule_func_every",
    "try_schedule_event",
    "try_schedule_func",
    # Running
    "Runner",
    "RunnerState",
    # Host
    "Host",
    "HostConfig",
    "Module",
    "CronModule",
    # Schedules
    "Schedule",
    "CronSchedule",
    "IntervalSchedule",
    "every",
    "parse_schedule",
    # Actions / events
    "EmitEvents",
    "InvokeCallback",
    "MARKER_EVENT_TYPE",
    "marker_event",
    "Event",
    "EventBus",
    "EventSink",
    "InMemoryEventBus",
    # Errors / results
    "INVALID_SCHEDULE",
    "CronspineError",
    "ScheduleError",
    "ConfigError",
    "DispatchError",
    "Ok",
    "Err",
    "Result",
    # Logging
    "configure_logging",
    "get_logger",
]
