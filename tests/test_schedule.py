"""Tests for cronspine.schedule — cron parsing, descriptors, intervals, durations."""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from cronspine.errors import INVALID_SCHEDULE, ScheduleError
from cronspine.schedule import (
    DESCRIPTORS,
    MIN_INTERVAL,
    CronSchedule,
    IntervalSchedule,
    Schedule,
    every,
    format_duration,
    parse_duration,
    parse_schedule,
)

NOON = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def _parsed(expression: str, tz=UTC):
    result = parse_schedule(expression, tz)
    assert result.is_ok(), result
    return result.unwrap()


def _error(expression: str) -> ScheduleError:
    result = parse_schedule(expression)
    assert result.is_err()
    return result.error


class TestCronExpressions:
    """Five- and six-field cron expressions."""

    def test_midnight_round_trip(self):
        """'0 0 * * *' parses and next() from midday is the following midnight."""
        schedule = _parsed("0 0 * * *")
        assert schedule.next(NOON) == datetime(2024, 1, 2, 0, 0, tzinfo=UTC)

    def test_next_is_strictly_after(self):
        schedule = _parsed("0 0 * * *")
        midnight = datetime(2024, 1, 2, 0, 0, tzinfo=UTC)
        assert schedule.next(midnight) == datetime(2024, 1, 3, 0, 0, tzinfo=UTC)

    def test_six_fields_lead_with_seconds(self):
        schedule = _parsed("30 * * * * *")
        assert isinstance(schedule, CronSchedule)
        assert schedule.has_seconds
        assert schedule.next(NOON) == datetime(2024, 1, 1, 12, 0, 30, tzinfo=UTC)

    def test_every_second(self):
        schedule = _parsed("* * * * * *")
        assert schedule.next(NOON) == NOON + timedelta(seconds=1)

    def test_five_fields_fire_on_second_zero(self):
        schedule = _parsed("*/15 * * * *")
        assert not schedule.has_seconds
        assert schedule.next(NOON + timedelta(seconds=5)) == datetime(2024, 1, 1, 12, 15, tzinfo=UTC)

    def test_question_mark_is_wildcard(self):
        schedule = _parsed("0 0 ? * *")
        assert schedule.expression == "0 0 * * *"
        assert schedule.text == "0 0 ? * *"
        assert schedule.next(NOON) == datetime(2024, 1, 2, 0, 0, tzinfo=UTC)

    def test_result_keeps_timezone_of_after(self):
        paris = ZoneInfo("Europe/Paris")
        after = datetime(2024, 3, 1, 8, 0, tzinfo=paris)
        nxt = _parsed("0 9 * * *", tz=paris).next(after)
        assert nxt == datetime(2024, 3, 1, 9, 0, tzinfo=paris)

    def test_schedule_is_immutable(self):
        schedule = _parsed("0 0 * * *")
        with pytest.raises(AttributeError):
            schedule.expression = "* * * * *"

    def test_implements_protocol(self):
        assert isinstance(_parsed("@hourly"), Schedule)
        assert isinstance(every(5), Schedule)


class TestDaylightSaving:
    """Cron fields follow the wall clock across DST changes."""

    @pytest.fixture
    def paris_local(self, monkeypatch):
        """Run the test with Europe/Paris as the system local zone."""
        if not hasattr(time, "tzset"):
            pytest.skip("time.tzset is not available")
        monkeypatch.setenv("TZ", "Europe/Paris")
        time.tzset()
        yield
        monkeypatch.undo()
        time.tzset()

    def test_local_spring_forward(self, paris_local):
        schedule = parse_schedule("0 3 * * *").unwrap()
        nxt = schedule.next(datetime(2024, 3, 31, 1, 0).astimezone())
        assert nxt.astimezone().hour == 3
        assert nxt == datetime(2024, 3, 31, 1, 0, tzinfo=UTC)

    def test_local_fall_back_never_fires_early(self, paris_local):
        schedule = parse_schedule("0 3 * * *").unwrap()
        nxt = schedule.next(datetime(2024, 10, 27, 1, 0).astimezone())
        assert nxt.astimezone().hour == 3
        assert nxt == datetime(2024, 10, 27, 2, 0, tzinfo=UTC)

    def test_local_offset_follows_date(self, paris_local):
        schedule = parse_schedule("0 12 * * *").unwrap()
        nxt = schedule.next(datetime(2024, 3, 30, 13, 0).astimezone())
        assert nxt == datetime(2024, 3, 31, 10, 0, tzinfo=UTC)

    def test_zone_spring_forward(self):
        paris = ZoneInfo("Europe/Paris")
        schedule = _parsed("0 3 * * *", tz=paris)
        nxt = schedule.next(datetime(2024, 3, 30, 12, 0, tzinfo=UTC))
        assert nxt == datetime(2024, 3, 31, 1, 0, tzinfo=UTC)

    def test_zone_fall_back(self):
        paris = ZoneInfo("Europe/Paris")
        schedule = _parsed("0 3 * * *", tz=paris)
        nxt = schedule.next(datetime(2024, 10, 26, 12, 0, tzinfo=UTC))
        assert nxt == datetime(2024, 10, 27, 2, 0, tzinfo=UTC)

    def test_skipped_wall_time_resolves_past_gap(self):
        paris = ZoneInfo("Europe/Paris")
        schedule = _parsed("30 2 * * *", tz=paris)
        nxt = schedule.next(datetime(2024, 3, 30, 12, 0, tzinfo=UTC))
        assert nxt >= datetime(2024, 3, 31, 1, 0, tzinfo=UTC)
        assert nxt < datetime(2024, 3, 31, 2, 0, tzinfo=UTC)

    def test_repeated_hour_moves_forward(self):
        paris = ZoneInfo("Europe/Paris")
        schedule = _parsed("*/15 * * * *", tz=paris)
        # 02:30 during the second pass through 02:00-03:00 (CET)
        after = datetime(2024, 10, 27, 1, 30, tzinfo=UTC)
        assert schedule.next(after) == datetime(2024, 10, 27, 1, 45, tzinfo=UTC)


class TestDescriptors:
    """@-prefixed shorthands."""

    @pytest.mark.parametrize(
        "descriptor,expected",
        [
            ("@hourly", datetime(2024, 1, 1, 13, 0, tzinfo=UTC)),
            ("@daily", datetime(2024, 1, 2, 0, 0, tzinfo=UTC)),
            ("@midnight", datetime(2024, 1, 2, 0, 0, tzinfo=UTC)),
            ("@weekly", datetime(2024, 1, 7, 0, 0, tzinfo=UTC)),
            ("@monthly", datetime(2024, 2, 1, 0, 0, tzinfo=UTC)),
            ("@yearly", datetime(2025, 1, 1, 0, 0, tzinfo=UTC)),
            ("@annually", datetime(2025, 1, 1, 0, 0, tzinfo=UTC)),
        ],
    )
    def test_descriptor_next(self, descriptor, expected):
        assert _parsed(descriptor).next(NOON) == expected

    def test_descriptor_text_is_preserved(self):
        schedule = _parsed("@daily")
        assert schedule.text == "@daily"
        assert schedule.expression == DESCRIPTORS["@daily"]

    def test_every_builds_interval(self):
        schedule = _parsed("@every 1h30m")
        assert isinstance(schedule, IntervalSchedule)
        assert schedule.interval == timedelta(minutes=90)
        assert schedule.text == "@every 1h30m0s"

    def test_every_in_nanoseconds(self):
        schedule = _parsed("@every 2000000000ns")
        assert schedule.interval == timedelta(seconds=2)

    def test_tz_prefix(self):
        schedule = _parsed("TZ=Europe/Paris 0 9 * * *")
        assert schedule.tz == ZoneInfo("Europe/Paris")
        assert schedule.text == "TZ=Europe/Paris 0 9 * * *"
        # 09:00 Paris in June is 07:00 UTC
        assert schedule.next(datetime(2024, 6, 1, 0, 0, tzinfo=UTC)) == datetime(
            2024, 6, 1, 7, 0, tzinfo=UTC
        )

    def test_cron_tz_prefix_with_descriptor(self):
        schedule = _parsed("CRON_TZ=Asia/Tokyo @daily")
        # midnight in Tokyo is 15:00 UTC the day before
        assert schedule.next(NOON) == datetime(2024, 1, 1, 15, 0, tzinfo=UTC)


class TestParseErrors:
    """Malformed expressions produce ScheduleError with the parser's message."""

    def test_wrong_field_count(self):
        error = _error("foobar")
        assert str(error) == "invalid cron schedule: Expected 5 to 6 fields, found 1: foobar"

    def test_too_many_fields(self):
        error = _error("* * * * * * *")
        assert str(error) == "invalid cron schedule: Expected 5 to 6 fields, found 7: * * * * * * *"

    def test_empty(self):
        assert str(_error("   ")) == "invalid cron schedule: Empty spec string"

    def test_unknown_descriptor(self):
        assert str(_error("@fortnightly")) == "invalid cron schedule: Unrecognized descriptor: @fortnightly"

    def test_bad_every_duration(self):
        message = str(_error("@every soon"))
        assert message.startswith("invalid cron schedule: Failed to parse duration @every soon")

    def test_bad_timezone(self):
        message = str(_error("TZ=Nowhere/City 0 0 * * *"))
        assert message.startswith("invalid cron schedule: provided bad location Nowhere/City")

    def test_out_of_range_field(self):
        error = _error("61 * * * *")
        assert str(error).startswith(f"{INVALID_SCHEDULE}: ")
        assert len(str(error)) > len(f"{INVALID_SCHEDULE}: ")

    def test_error_chains_parser_exception(self):
        error = _error("foobar")
        assert isinstance(error.__cause__, ValueError)
        assert error.context.schedule == "foobar"
        assert error.retryable is False


class TestIntervalSchedule:
    """Fixed intervals with one-second granularity."""

    def test_next_adds_interval(self):
        assert every(30).next(NOON) == NOON + timedelta(seconds=30)

    def test_sub_second_interval_rounds_up(self):
        assert every(0.2).interval == MIN_INTERVAL
        assert every(timedelta(0)).interval == MIN_INTERVAL

    def test_fraction_is_truncated(self):
        assert every(2.7).interval == timedelta(seconds=2)
        assert every(timedelta(milliseconds=1500)).interval == timedelta(seconds=1)

    def test_next_drops_microseconds(self):
        after = NOON.replace(microsecond=500_000)
        assert every(1).next(after) == NOON + timedelta(seconds=1)

    def test_text(self):
        assert every(timedelta(hours=1)).text == "@every 1h0m0s"
        assert every(90).text == "@every 1m30s"
        assert every(5).text == "@every 5s"


class TestDurations:
    """Go-style duration strings."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1h30m", timedelta(minutes=90)),
            ("90s", timedelta(seconds=90)),
            ("500ms", timedelta(milliseconds=500)),
            ("1.5h", timedelta(minutes=90)),
            ("2h45m30s", timedelta(hours=2, minutes=45, seconds=30)),
            ("-2s", timedelta(seconds=-2)),
            ("0", timedelta(0)),
            ("2000000000ns", timedelta(seconds=2)),
            ("1500us", timedelta(microseconds=1500)),
            ("1.5ms", timedelta(microseconds=1500)),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_duration(text) == expected

    def test_missing_unit(self):
        with pytest.raises(ValueError, match="missing unit"):
            parse_duration("10")

    @pytest.mark.parametrize("text", ["", "abc", "1x", "h1"])
    def test_invalid(self, text):
        with pytest.raises(ValueError, match="invalid duration"):
            parse_duration(text)

    @pytest.mark.parametrize(
        "value,expected",
        [
            (timedelta(0), "0s"),
            (timedelta(seconds=1), "1s"),
            (timedelta(seconds=1.5), "1.5s"),
            (timedelta(milliseconds=500), "500ms"),
            (timedelta(minutes=90), "1h30m0s"),
            (timedelta(hours=26), "26h0m0s"),
        ],
    )
    def test_format(self, value, expected):
        assert format_duration(value) == expected
