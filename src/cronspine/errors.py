"""
Structured error types for cronspine.

Every error raised by cronspine extends ``CronspineError`` so that hosts can
tell a scheduling failure apart from a bug in their own callbacks, log it with
structured context, and decide whether it is worth retrying (it never is for
a malformed schedule).

Manifesto:
    - **Typed Error Hierarchy:** Schedule, config and dispatch failures each
      have their own type
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry the job label and schedule text
    - **Error Chaining:** The parser's own exception is kept as ``__cause__``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      CronspineError                              │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ScheduleError       ConfigError        DispatchError            │
        │  (SCHEDULE)          (CONFIG)           (DISPATCH)               │
        │  invalid cron        missing sink,      a single firing          │
        │  schedule            unknown backend    failed                   │
        └─────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Raise a bare ValueError for a bad cron expression
    ✅ DO: Return or raise ScheduleError with the parser error as cause=

Tags:
    error-handling, exception-hierarchy, cron, scheduling, cronspine

Doc-Types:
    - API Reference
    - Error Handling Guide

Usage:
    from cronspine.errors import ScheduleError

    try:
        runner = action.start(logger, bus)
    except ScheduleError as e:
        logger.error("startup_aborted", **e.to_dict())
        raise
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

INVALID_SCHEDULE = "invalid cron schedule"


class ErrorCategory(str, Enum):
    """
    Error categories for classification and routing.

    Attributes:
        SCHEDULE: Malformed cron expression or interval
        CONFIG: Missing event sink, unknown backend, bad settings
        DISPATCH: A single firing of an action failed
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    SCHEDULE = "SCHEDULE"
    CONFIG = "CONFIG"
    DISPATCH = "DISPATCH"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        label: Human-readable job label (event types or callback name)
        schedule: Schedule text as given by the caller
        backend: Timer backend name
        metadata: Additional key-value pairs
    """

    label: str | None = None
    schedule: str | None = None
    backend: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["label", "schedule", "backend"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CronspineError(Exception):
    """
    Base exception for all cronspine errors.

    All CronspineError instances carry:
    - **category:** ErrorCategory enum for classification
    - **retryable:** Whether the operation can be retried
    - **context:** ErrorContext with structured metadata
    - **cause:** Optional underlying exception for chaining

    Examples:
        >>> error = CronspineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(label="cron.fired").context.label
        'cron.fired'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CronspineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ScheduleError("bad").with_context(label="cron.fired")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class ScheduleError(CronspineError):
    """
    Malformed schedule expression.

    A bad schedule is a permanent configuration error, so this is never
    retryable. The message always starts with ``invalid cron schedule:``
    followed by the parser's message verbatim.
    """

    default_category = ErrorCategory.SCHEDULE
    default_retryable = False

    @classmethod
    def invalid(cls, expression: str, cause: Exception) -> ScheduleError:
        """Wrap a parser error for ``expression``."""
        return cls(f"{INVALID_SCHEDULE}: {cause}", cause=cause).with_context(
            schedule=expression
        )


class ConfigError(CronspineError):
    """Missing or invalid configuration (event sink, backend, settings)."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class DispatchError(CronspineError):
    """A single firing of a scheduled action failed."""

    default_category = ErrorCategory.DISPATCH
    default_retryable = False


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, CronspineError):
        return error.retryable
    return False


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, CronspineError):
        return error.category
    return ErrorCategory.UNKNOWN


__all__ = [
    "INVALID_SCHEDULE",
    "ErrorCategory",
    "ErrorContext",
    "CronspineError",
    "ScheduleError",
    "ConfigError",
    "DispatchError",
    "is_retryable",
    "categorize_error",
]
