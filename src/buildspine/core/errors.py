"""
Structured error types for buildspine.

Provides the typed error hierarchy shared by the event bus and the staleness
cache. Instead of generic exceptions that lose context, every
BuildSpineError carries:
- **Category:** What kind of error (event, handler, cache, storage, ...)
- **Context:** Structured metadata such as event name, handler, cache key
- **Cause:** Chained underlying exception for root cause analysis

Manifesto:
    - **Typed Error Hierarchy:** One class per failure the caller can act on
    - **Rich Context:** Errors carry metadata for logging and CLI reporting
    - **Error Chaining:** Preserve original exceptions while adding context
    - **Recoverable:** Nothing here is meant to crash the process

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     BuildSpineError                          │
        │               (category, context, cause)                     │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  EventError              CacheError          ConfigError     │
        │  (EVENT)                 (CACHE)             (CONFIG)        │
        │     │                       │                                │
        │  InvalidEventError       MissingPhysicalFileError            │
        │  InvalidHandlerError     CorruptCacheError                   │
        │  HandlerFailureError                                         │
        └─────────────────────────────────────────────────────────────┘

Examples:
    Adding context to an error:

    >>> error = CorruptCacheError("Cache file is not valid JSON")
    >>> error.with_context(path="/tmp/cache.json")
    CorruptCacheError('Cache file is not valid JSON', category=CACHE)
    >>> error.context.path
    '/tmp/cache.json'

    Reporting an aggregated handler failure:

    >>> failure = HandlerFailure(priority=10, index=0, handler="resize", error=ValueError("boom"))
    >>> err = HandlerFailureError("afterParse", [failure])
    >>> err.to_dict()["context"]["event"]
    'afterParse'

Guardrails:
    ❌ DON'T: Raise bare Exception from the bus or the cache
    ✅ DO: Use the matching BuildSpineError subclass

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, error-context, buildspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        EVENT: Unknown event names, invalid registrations
        HANDLER: Failures raised by handlers during an emission
        CACHE: Staleness cache state errors
        STORAGE: Disk and file system errors
        CONFIG: Missing or invalid settings
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    EVENT = "EVENT"
    HANDLER = "HANDLER"
    CACHE = "CACHE"
    STORAGE = "STORAGE"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover the metadata the bus and the cache attach; anything
    else goes into ``metadata``. ``to_dict()`` only emits fields that are set.

    Attributes:
        event: Event name involved in the failure
        handler: Handler identity (qualified name)
        priority: Priority group of the handler
        key: Cache key
        path: Physical file or cache document path
        metadata: Additional key-value pairs
    """

    event: str | None = None
    handler: str | None = None
    priority: int | None = None
    key: str | None = None
    path: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["event", "handler", "priority", "key", "path"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class BuildSpineError(Exception):
    """
    Base exception for all buildspine errors.

    Subclasses set ``default_category`` to classify themselves. Every
    instance carries a message, a category, an ``ErrorContext`` and an
    optional chained cause.

    Examples:
        >>> error = BuildSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(key="img/a.png").context.key
        'img/a.png'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> BuildSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise CorruptCacheError("Bad cache").with_context(path=str(path))
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# EVENT ERRORS
# =============================================================================


class EventError(BuildSpineError):
    """Event bus registration or emission error."""

    default_category = ErrorCategory.EVENT


class InvalidEventError(EventError):
    """Event name is not in the bus's set of valid events."""

    def __init__(self, event: str, **kwargs: Any):
        self.event = event
        super().__init__(f"'{event}' is an invalid event name.", **kwargs)
        self.context.event = event


class InvalidHandlerError(EventError):
    """Handler passed to ``on`` is not callable, or its priority is invalid."""

    def __init__(self, event: str, message: str | None = None, **kwargs: Any):
        self.event = event
        super().__init__(
            message or f"Event 'on' must be passed a callable ({event}).",
            **kwargs,
        )
        self.context.event = event


@dataclass(frozen=True)
class HandlerFailure:
    """One captured handler failure within an emission."""

    priority: int
    index: int
    handler: str
    error: BaseException

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority": self.priority,
            "index": self.index,
            "handler": self.handler,
            "error_type": type(self.error).__name__,
            "error": str(self.error),
        }


class HandlerFailureError(EventError):
    """
    One or more handlers failed during an emission.

    ``failures`` holds every captured failure ordered by priority group and
    then by registration index. ``cause`` is the first of them.
    """

    default_category = ErrorCategory.HANDLER

    def __init__(self, event: str, failures: list[HandlerFailure], **kwargs: Any):
        if not failures:
            raise ValueError("HandlerFailureError requires at least one failure")
        self.event = event
        self.failures = list(failures)
        first = self.failures[0]
        if len(self.failures) == 1:
            message = (
                f"Event function call failed for {event}: "
                f"{first.handler} (priority {first.priority}, index {first.index}): {first.error}"
            )
        else:
            message = (
                f"Event function calls failed for {event}: "
                f"{len(self.failures)} handlers failed, first was "
                f"{first.handler} (priority {first.priority}, index {first.index}): {first.error}"
            )
        kwargs.setdefault("cause", first.error)
        super().__init__(message, **kwargs)
        self.context.event = event
        self.context.handler = first.handler
        self.context.priority = first.priority
        self.context.metadata["failure_count"] = len(self.failures)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["failures"] = [f.to_dict() for f in self.failures]
        return result


# =============================================================================
# CACHE ERRORS
# =============================================================================


class CacheError(BuildSpineError):
    """Staleness cache error."""

    default_category = ErrorCategory.CACHE


class MissingPhysicalFileError(CacheError):
    """A key was checked for the first time but its backing file is absent."""

    def __init__(self, key: str, path: str, **kwargs: Any):
        self.key = key
        self.path = path
        super().__init__(
            f"No physical file found for cache key '{key}'. File is: {path}.",
            **kwargs,
        )
        self.context.key = key
        self.context.path = path


class CorruptCacheError(CacheError):
    """Persisted cache document exists but cannot be read or parsed."""


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(BuildSpineError):
    """Configuration error."""

    default_category = ErrorCategory.CONFIG


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "BuildSpineError",
    "EventError",
    "InvalidEventError",
    "InvalidHandlerError",
    "HandlerFailure",
    "HandlerFailureError",
    "CacheError",
    "MissingPhysicalFileError",
    "CorruptCacheError",
    "ConfigError",
]
