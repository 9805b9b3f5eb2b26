"""Tests for cronspine.job — building scheduled actions."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cronspine.action import EmitEvents, InvokeCallback
from cronspine.errors import ScheduleError
from cronspine.events import Event
from cronspine.job import (
    ScheduledAction,
    schedule_event,
    schedule_event_every,
    schedule_func,
    schedule_func_every,
    try_schedule_event,
    try_schedule_func,
)
from cronspine.result import Err, Ok
from cronspine.schedule import CronSchedule, IntervalSchedule


def rebuild_index() -> None:
    pass


class TestDeferredConstructors:
    """Bad expressions never raise at construction."""

    def test_schedule_event_with_events(self):
        evt = Event("report.daily", "reports")
        job = schedule_event("0 0 * * *", evt)
        assert job.ok
        assert isinstance(job.schedule, CronSchedule)
        assert job.action == EmitEvents((evt,))
        assert job.label == "report.daily"
        assert job.schedule_text == "0 0 * * *"

    def test_schedule_event_without_events_uses_marker(self):
        job = schedule_event("@hourly")
        assert job.action.uses_marker
        assert job.label == "cron.fired"

    def test_schedule_func(self):
        job = schedule_func("*/5 * * * *", rebuild_index)
        assert isinstance(job.action, InvokeCallback)
        assert job.label == "rebuild_index"

    def test_label_override(self):
        job = schedule_func("@daily", rebuild_index, label="nightly-index")
        assert job.label == "nightly-index"

    def test_invalid_expression_is_deferred(self):
        job = schedule_event("foobar")
        assert not job.ok
        assert job.schedule is None
        assert isinstance(job.error, ScheduleError)
        assert str(job.error) == "invalid cron schedule: Expected 5 to 6 fields, found 1: foobar"
        assert job.next_run() is None

    def test_interval_constructors(self):
        job = schedule_event_every(timedelta(minutes=5), Event("poll", "t"))
        assert isinstance(job.schedule, IntervalSchedule)
        assert job.schedule_text == "@every 5m0s"

        job = schedule_func_every(0.1, rebuild_index)
        assert job.schedule.interval == timedelta(seconds=1)
        assert job.ok

    def test_next_run(self):
        job = schedule_event("0 0 * * *", tz=UTC)
        noon = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        assert job.next_run(noon) == datetime(2024, 1, 2, 0, 0, tzinfo=UTC)

    def test_is_immutable(self):
        job = schedule_event("@daily")
        with pytest.raises(AttributeError):
            job.label = "other"


class TestResultConstructors:
    """try_* constructors surface the error at the call site."""

    def test_ok(self):
        result = try_schedule_event("@daily", Event("report.daily", "reports"))
        assert isinstance(result, Ok)
        assert isinstance(result.unwrap(), ScheduledAction)

    def test_err(self):
        result = try_schedule_func("nope", rebuild_index)
        assert isinstance(result, Err)
        assert isinstance(result.error, ScheduleError)
        with pytest.raises(ScheduleError, match="invalid cron schedule"):
            result.unwrap()

    def test_match(self):
        match try_schedule_func("@hourly", rebuild_index, label="idx"):
            case Ok(job):
                assert job.label == "idx"
            case Err(error):
                pytest.fail(f"unexpected error: {error}")


class TestStart:
    def test_start_raises_deferred_error(self, logger):
        job = schedule_event("foobar")
        with pytest.raises(ScheduleError) as exc_info:
            job.start(logger, object())
        assert "invalid cron schedule" in str(exc_info.value)
        assert "Expected 5 to 6 fields" in str(exc_info.value)
        logger.bind.assert_not_called()

    def test_each_start_is_independent(self, logger):
        job = schedule_func("@yearly", rebuild_index)
        first = job.start(logger)
        second = job.start(logger)
        try:
            assert first is not second
            assert first.running and second.running
            first.stop()
            assert not first.running
            assert second.running
        finally:
            first.stop()
            second.stop()
