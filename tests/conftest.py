"""
Shared pytest fixtures for cronspine tests.

This module provides:
- A recording logger that stands in for the host's structlog logger
- A fresh in-memory event bus per test
- Settings/structlog cleanup for test isolation
- A ``wait_for`` helper for tests that observe real timer threads
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest
import structlog

from cronspine.events import Event
from cronspine.events.memory import InMemoryEventBus
from cronspine.settings import reset_settings


@pytest.fixture(autouse=True)
def _isolate_globals(monkeypatch):
    """Drop cached settings and structlog config between tests."""
    for key in (
        "CRONSPINE_BACKEND",
        "CRONSPINE_TIMEZONE",
        "CRONSPINE_LOG_LEVEL",
        "CRONSPINE_JSON_LOGS",
        "CRONSPINE_SERVICE",
    ):
        monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()
    structlog.reset_defaults()


@pytest.fixture
def logger() -> MagicMock:
    """Logger double; ``logger.bound`` is what the runner logs through."""
    log = MagicMock(name="logger")
    log.bound = log.bind.return_value
    return log


class RecordingSink:
    """Event sink that records every published event, thread-safely."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.events: list[Event] = []
        self.fail_on = fail_on
        self._lock = threading.Lock()

    async def publish(self, event: Event) -> None:
        if event.event_type == self.fail_on:
            raise RuntimeError(f"cannot publish {event.event_type}")
        with self._lock:
            self.events.append(event)

    def snapshot(self) -> list[Event]:
        with self._lock:
            return list(self.events)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def bus() -> InMemoryEventBus:
    return InMemoryEventBus()


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
