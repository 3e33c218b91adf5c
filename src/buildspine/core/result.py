"""
Result envelope for handler outcomes.

The event bus captures each handler invocation as a value, so one failing
handler never unwinds through its siblings, and ``EventBus.try_emit`` hands
the whole emission back as a Result instead of raising.

Architecture:
    ::

        ┌─────────────────┬─────────────────┬─────────────────────┐
        │     Ok[T]       │     Err[T]      │     Bridge          │
        ├─────────────────┼─────────────────┼─────────────────────┤
        │ value: T        │ error: Exception│ try_result_async()  │
        │ is_ok() → True  │ is_ok() → False │                     │
        │ unwrap() → T    │ unwrap() raises │                     │
        └─────────────────┴─────────────────┴─────────────────────┘

Usage:
    from buildspine.core.result import Ok, Err

    match await bus.try_emit("afterBuild", site):
        case Ok(_):
            log.info("build_hooks_done")
        case Err(error):
            log.warning("build_hooks_failed", **error.to_dict())

Tags:
    result-pattern, error-handling, buildspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """Failed outcome carrying the raised exception."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Re-raise the captured error."""
        raise self.error


Result = Ok[T] | Err[T]


async def try_result_async(f: Callable[[], Awaitable[T]]) -> Result[T]:
    """Await a zero-argument coroutine factory and wrap its outcome.

    Only ``Exception`` subclasses are captured; cancellation propagates.
    """
    try:
        return Ok(await f())
    except Exception as e:
        return Err(e)


__all__ = ["Result", "Ok", "Err", "try_result_async"]
