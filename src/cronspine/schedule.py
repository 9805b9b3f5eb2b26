"""Schedule specifications: when a scheduled action fires.

Two shapes are supported:

* ``CronSchedule`` -- a cron expression evaluated with ``croniter``.
  Five fields (minute hour day-of-month month day-of-week) or six with a
  leading seconds field. ``?`` is accepted as an alias for ``*``. An optional
  ``TZ=<zone>`` / ``CRON_TZ=<zone>`` prefix pins the evaluation timezone.
* ``IntervalSchedule`` -- a fixed repeating interval, at least one second.

Descriptors (``@daily``, ``@hourly``, ...) expand to cron expressions, and
``@every <duration>`` builds an interval from a Go-style duration string
(``90s``, ``1h30m``).

Every schedule exposes ``next(after)``: the first occurrence strictly after
``after``. Schedules are immutable once built.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Protocol, runtime_checkable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from cronspine.errors import ScheduleError
from cronspine.result import Err, Ok, Result

MIN_INTERVAL = timedelta(seconds=1)

DESCRIPTORS: dict[str, str] = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

_EVERY = "@every "
_TZ_PREFIXES = ("TZ=", "CRON_TZ=")

_UNITS_NS: dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


@runtime_checkable
class Schedule(Protocol):
    """Anything that can compute its next occurrence."""

    @property
    def text(self) -> str:
        ...

    def next(self, after: datetime) -> datetime:
        ...


def _localize(moment: datetime, tz: tzinfo | None) -> datetime:
    if tz is not None:
        return moment.astimezone(tz)
    # naive datetimes are treated as local time
    return moment.astimezone()


def _resolve(wall: datetime, tz: tzinfo | None) -> datetime:
    """Attach zone rules to a naive wall-clock time."""
    if tz is not None:
        return wall.replace(tzinfo=tz)
    return wall.astimezone()


@dataclass(frozen=True)
class CronSchedule:
    """A cron expression evaluated by croniter.

    Fields are matched against wall-clock time in ``tz`` (the system's local
    zone when None), so DST transitions move the UTC offset, not the hour.
    A wall time skipped by a spring-forward gap resolves past the gap. A
    wall time repeated by a fall-back resolves to its first occurrence.

    Attributes:
        expression: Normalised 5- or 6-field expression handed to croniter
        text: Expression as written by the caller (descriptor, TZ prefix)
        tz: Evaluation timezone; local time when None
    """

    expression: str
    text: str = ""
    tz: tzinfo | None = None

    def __post_init__(self) -> None:
        if not self.text:
            object.__setattr__(self, "text", self.expression)

    @property
    def has_seconds(self) -> bool:
        return len(self.expression.split()) == 6

    def next(self, after: datetime) -> datetime:
        base = _localize(after, self.tz)
        it = croniter(
            self.expression,
            base.replace(tzinfo=None),
            second_at_beginning=self.has_seconds,
        )
        # compare instants; same-zone datetime comparison ignores fold
        floor = base.timestamp()
        while True:
            wall = it.get_next(datetime)
            for fold in (0, 1):
                candidate = _resolve(wall.replace(fold=fold), self.tz)
                if candidate.timestamp() > floor:
                    return candidate


@dataclass(frozen=True)
class IntervalSchedule:
    """A fixed repeating interval with one-second granularity.

    Intervals below one second are rounded up to one second and
    sub-second remainders are dropped.
    """

    interval: timedelta = field(default=MIN_INTERVAL)

    def __post_init__(self) -> None:
        whole = timedelta(seconds=int(self.interval.total_seconds()))
        object.__setattr__(self, "interval", max(whole, MIN_INTERVAL))

    @property
    def text(self) -> str:
        return f"@every {format_duration(self.interval)}"

    def next(self, after: datetime) -> datetime:
        base = after if after.tzinfo is not None else after.astimezone()
        return base.replace(microsecond=0) + self.interval


def every(interval: timedelta | float | int) -> IntervalSchedule:
    """Build an interval schedule from a timedelta or a number of seconds."""
    if not isinstance(interval, timedelta):
        interval = timedelta(seconds=interval)
    return IntervalSchedule(interval)


# ── Durations ────────────────────────────────────────────────────────────


def parse_duration(text: str) -> timedelta:
    """Parse a Go-style duration such as ``1h30m`` or ``250ms``."""
    body = text.strip()
    sign = 1
    if body and body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f'time: invalid duration "{text}"')

    total_ns = 0
    pos = 0
    for match in _DURATION_PART.finditer(body):
        if match.start() != pos:
            break
        whole, _, frac = match.group(1).partition(".")
        unit = _UNITS_NS[match.group(2)]
        total_ns += int(whole or 0) * unit
        if frac:
            total_ns += int(frac) * unit // 10 ** len(frac)
        pos = match.end()
    if pos != len(body):
        if re.fullmatch(r"\d+(?:\.\d*)?", body[pos:]):
            raise ValueError(f'time: missing unit in duration "{text}"')
        raise ValueError(f'time: invalid duration "{text}"')
    return timedelta(microseconds=total_ns // 1000) * sign


def format_duration(value: timedelta) -> str:
    """Render a duration the way Go's ``time.Duration.String`` does."""
    total_us = round(value / timedelta(microseconds=1))
    if total_us == 0:
        return "0s"
    sign = "-" if total_us < 0 else ""
    total_us = abs(total_us)

    if total_us < 1_000_000:
        if total_us % 1000 == 0:
            return f"{sign}{total_us // 1000}ms"
        return f"{sign}{total_us}µs"

    hours, rem = divmod(total_us, 3_600_000_000)
    minutes, rem = divmod(rem, 60_000_000)
    seconds = f"{rem / 1_000_000:.6f}".rstrip("0").rstrip(".")
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


# ── Parsing ──────────────────────────────────────────────────────────────


def _parse(expression: str, tz: tzinfo | None) -> CronSchedule | IntervalSchedule:
    body = expression.strip()
    if not body:
        raise ValueError("Empty spec string")

    if body.startswith(_TZ_PREFIXES):
        prefix, _, body = body.partition(" ")
        name = prefix.split("=", 1)[1]
        try:
            tz = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"provided bad location {name}: {exc}") from exc
        body = body.strip()

    if body.startswith("@"):
        if body.startswith(_EVERY):
            try:
                interval = parse_duration(body[len(_EVERY):])
            except ValueError as exc:
                raise ValueError(f"Failed to parse duration {body}: {exc}") from exc
            return IntervalSchedule(interval)
        if body not in DESCRIPTORS:
            raise ValueError(f"Unrecognized descriptor: {body}")
        schedule = CronSchedule(DESCRIPTORS[body], text=expression, tz=tz)
    else:
        fields = ["*" if f == "?" else f for f in body.split()]
        if not 5 <= len(fields) <= 6:
            raise ValueError(f"Expected 5 to 6 fields, found {len(fields)}: {body}")
        schedule = CronSchedule(" ".join(fields), text=expression, tz=tz)

    # croniter reports most syntax errors at construction and impossible
    # dates (Feb 30) on the first get_next.
    schedule.next(datetime.now(tz))
    return schedule


def parse_schedule(expression: str, tz: tzinfo | None = None) -> Result[CronSchedule | IntervalSchedule]:
    """Parse a cron expression or descriptor.

    Returns:
        Ok(schedule), or Err(ScheduleError) whose message is
        ``invalid cron schedule: <parser message>``.
    """
    try:
        return Ok(_parse(expression, tz))
    except (ValueError, KeyError) as exc:
        return Err(ScheduleError.invalid(expression, exc))


__all__ = [
    "MIN_INTERVAL",
    "DESCRIPTORS",
    "Schedule",
    "CronSchedule",
    "IntervalSchedule",
    "every",
    "parse_duration",
    "format_duration",
    "parse_schedule",
]
