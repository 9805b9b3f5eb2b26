"""Timer backends for cron runners.

Each Runner owns one backend instance and therefore one timer loop; no
scheduler object is shared between runners, so stopping one Runner never
affects another.

Backends:
    • thread       ThreadTimerBackend (default, stdlib only)
    • apscheduler  APSchedulerTimerBackend (pip install cronspine[apscheduler])
"""

from __future__ import annotations

from cronspine.errors import ConfigError

from .protocol import BackendHealth, FireCallback, TimerBackend
from .thread_backend import ThreadTimerBackend


def __getattr__(name: str):  # noqa: N807
    """Lazy import optional backends to avoid ImportError when extras are missing."""
    if name == "APSchedulerTimerBackend":
        from .apscheduler_backend import APSchedulerTimerBackend

        return APSchedulerTimerBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def get_backend(name: str = "thread") -> TimerBackend:
    """Create a fresh backend instance by name.

    Raises:
        ConfigError: unknown backend name.
    """
    key = getattr(name, "value", name)
    if key == "thread":
        return ThreadTimerBackend()
    if key == "apscheduler":
        from .apscheduler_backend import APSchedulerTimerBackend

        return APSchedulerTimerBackend()
    raise ConfigError(f"unknown timer backend: {key}").with_context(backend=str(key))


__all__ = [
    "TimerBackend",
    "BackendHealth",
    "FireCallback",
    "ThreadTimerBackend",
    "APSchedulerTimerBackend",
    "get_backend",
]
