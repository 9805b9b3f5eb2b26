"""APScheduler-based timer backend.

Wraps APScheduler 3.x ``BackgroundScheduler``: one scheduler per Runner,
holding a single job whose trigger delegates to the cronspine ``Schedule``.
The job runs with ``max_instances=1`` and ``coalesce=True`` so firings of
one Runner never overlap and a backlog collapses into a single run.

Requires the ``[apscheduler]`` extra::

    pip install cronspine[apscheduler]

.. note::

    The stdlib ``ThreadTimerBackend`` is sufficient for most hosts. Use this
    backend when the host already runs APScheduler and wants its executors
    and event listeners.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from cronspine.backends.protocol import FireCallback
from cronspine.logging import get_logger
from cronspine.schedule import Schedule

logger = get_logger(__name__)


def _require_apscheduler():
    """Validate that apscheduler is installed."""
    try:
        from apscheduler.schedulers.background import BackgroundScheduler
        from apscheduler.triggers.base import BaseTrigger

        return BackgroundScheduler, BaseTrigger
    except ImportError:
        raise ImportError(
            "APScheduler is required for APSchedulerTimerBackend. "
            "Install it with: pip install cronspine[apscheduler]"
        ) from None


def make_trigger(schedule: Schedule):
    """Adapt a cronspine ``Schedule`` to an APScheduler trigger."""
    _, BaseTrigger = _require_apscheduler()  # noqa: N806

    class ScheduleTrigger(BaseTrigger):
        def __init__(self, schedule: Schedule) -> None:
            self.schedule = schedule

        def get_next_fire_time(self, previous_fire_time, now):
            base = now
            if previous_fire_time is not None and previous_fire_time > now:
                base = previous_fire_time
            return self.schedule.next(base)

        def __str__(self) -> str:
            return f"schedule[{self.schedule.text}]"

    return ScheduleTrigger(schedule)


class APSchedulerTimerBackend:
    """APScheduler-based timer backend.

    Example::

        >>> backend = APSchedulerTimerBackend()
        >>> backend.start(parse_schedule("@hourly").unwrap(), job)
        >>> # … later …
        >>> backend.stop()
    """

    name: str = "apscheduler"

    def __init__(self) -> None:
        BackgroundScheduler, _ = _require_apscheduler()  # noqa: N806
        self._scheduler = BackgroundScheduler()
        self._tick_count: int = 0
        self._last_tick: datetime | None = None
        self._job_id: str | None = None

    def start(self, schedule: Schedule, callback: FireCallback, name: str = "cron") -> None:
        if self._job_id is not None:
            logger.warning("timer_already_started", backend=self.name, timer=name)
            return

        def _fire() -> None:
            self._tick_count += 1
            self._last_tick = datetime.now(UTC)
            try:
                callback()
            except Exception:
                logger.exception("timer_callback_failed", backend=self.name, timer=name)

        job = self._scheduler.add_job(
            _fire,
            trigger=make_trigger(schedule),
            id=f"cronspine-{name}",
            name=name,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
        )
        self._job_id = job.id
        self._scheduler.start()
        logger.debug("timer_started", backend=self.name, timer=name, schedule=schedule.text)

    def stop(self) -> None:
        """Shut the scheduler down without waiting for a running job."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.debug("timer_stopped", backend=self.name)

    @property
    def is_running(self) -> bool:
        return bool(self._scheduler.running)

    def health(self) -> dict[str, Any]:
        running = self.is_running
        next_fire = None
        if running and self._job_id is not None:
            job = self._scheduler.get_job(self._job_id)
            if job is not None and job.next_run_time is not None:
                next_fire = job.next_run_time.isoformat()
        return {
            "healthy": running,
            "backend": self.name,
            "tick_count": self._tick_count,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "next_fire": next_fire,
        }

    @property
    def tick_count(self) -> int:
        return self._tick_count
