"""Host plugin adapter.

A host application collects modules at configuration time and applies them
at startup. Every module receives the same ``HostConfig``, which hands out
named loggers and the process-wide event sink. ``CronModule`` is the module
form of a ScheduledAction: ``apply`` behaves exactly like
``ScheduledAction.start``, except that a cron schedule written without a
``TZ=`` prefix is evaluated in the configured ``timezone`` setting. A
deferred parse error propagates from ``apply`` and aborts startup.

Usage::

    host = Host.from_settings(event_bus=InMemoryEventBus())
    host.register(schedule_event("@daily", Event("report.daily", "reports")))
    host.register(schedule_func_every(30, refresh_cache))

    with host:          # start() on enter, shutdown() on exit
        serve_forever()
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import tzinfo
from typing import Any, Protocol, runtime_checkable

from cronspine.backends import get_backend
from cronspine.errors import ConfigError
from cronspine.events import EventSink
from cronspine.job import ScheduledAction
from cronspine.logging import configure_logging, get_logger
from cronspine.runner import Runner
from cronspine.schedule import CronSchedule
from cronspine.settings import CronSettings, get_settings

logger = get_logger(__name__)


@dataclass
class HostConfig:
    """What the host shares with every module it applies."""

    event_bus: EventSink | None = None
    logger_factory: Callable[[str], Any] = get_logger
    settings: CronSettings | None = None

    def logger(self, name: str) -> Any:
        return self.logger_factory(name)

    def event_emitter(self) -> EventSink | None:
        return self.event_bus


@runtime_checkable
class Module(Protocol):
    def apply(self, config: HostConfig) -> None:
        ...

    def close(self) -> None:
        ...


def _in_zone(action: ScheduledAction, tz: tzinfo | None) -> ScheduledAction:
    """Pin a zone-less cron schedule to the host's configured timezone."""
    schedule = action.schedule
    if tz is None or not isinstance(schedule, CronSchedule) or schedule.tz is not None:
        return action
    return replace(action, schedule=replace(schedule, tz=tz))


class CronModule:
    """Plugin wrapper that starts one ScheduledAction when applied."""

    def __init__(self, action: ScheduledAction) -> None:
        self.action = action
        self.runner: Runner | None = None

    def apply(self, config: HostConfig) -> None:
        action = self.action
        backend = None
        if config.settings is not None:
            backend = get_backend(config.settings.backend)
            action = _in_zone(action, config.settings.tzinfo)
        self.runner = action.start(
            config.logger("cron"),
            config.event_emitter(),
            backend=backend,
        )

    def start(self, logger: Any, events: EventSink | None = None) -> Runner:
        """Start directly, for callers that manage the lifecycle themselves."""
        self.runner = self.action.start(logger, events)
        return self.runner

    def close(self) -> None:
        # runner is None when the schedule never parsed
        if self.runner is not None:
            self.runner.stop()

    stop = close

    def __repr__(self) -> str:
        return f"CronModule({self.action.label!r}, schedule={self.action.schedule_text!r})"


class Host:
    """Generic plugin loader: apply modules in order, close them in reverse."""

    def __init__(self, config: HostConfig | None = None) -> None:
        self.config = config or HostConfig()
        self._modules: list[Module] = []
        self._applied: list[Module] = []

    @classmethod
    def from_settings(
        cls,
        settings: CronSettings | None = None,
        event_bus: EventSink | None = None,
    ) -> Host:
        settings = settings or get_settings()
        configure_logging(
            level=settings.log_level,
            json_format=settings.json_logs,
            service=settings.service,
        )
        return cls(HostConfig(event_bus=event_bus, settings=settings))

    def register(self, module: Module | ScheduledAction) -> Module:
        if isinstance(module, ScheduledAction):
            module = CronModule(module)
        if not isinstance(module, Module):
            raise ConfigError(f"not a host module: {module!r}")
        self._modules.append(module)
        return module

    @property
    def modules(self) -> list[Module]:
        return list(self._modules)

    def start(self) -> None:
        """Apply every registered module.

        The first failure closes the modules applied so far and is
        re-raised, aborting startup.
        """
        for module in self._modules:
            try:
                module.apply(self.config)
            except Exception as exc:
                logger.error("module_apply_failed", module=repr(module), error=str(exc))
                self.shutdown()
                raise
            self._applied.append(module)

    def shutdown(self) -> None:
        while self._applied:
            module = self._applied.pop()
            try:
                module.close()
            except Exception as exc:
                logger.warning("module_close_failed", module=repr(module), error=str(exc))

    def __enter__(self) -> Host:
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()


__all__ = ["HostConfig", "Module", "CronModule", "Host"]
