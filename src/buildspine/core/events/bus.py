"""
Priority-grouped asyncio event bus.

Manifesto:
    Plugins hooking into a build need explicit ordering and the build needs
    to hear about every failure. Handlers registered at the same priority
    form a group that runs concurrently; groups run one after another in
    ascending priority order; a failing handler never stops its siblings.

Architecture:
    ::

        emit("afterBuild", site)
            │
            ├── snapshot registrations, group by priority
            │
            ├── group 10: ──┬─ handler A ─┐
            │               └─ handler B ─┴─ barrier (all finish)
            │
            ├── group 50: ──┬─ handler C ─┐
            │               └─ handler D ─┴─ barrier
            │
            └── any failures? → HandlerFailureError(event, failures)

Failure semantics:
    - Fail-open within a group: every handler in a group runs to completion,
      each outcome captured as a Result.
    - Fail-closed at the group boundary: once a group finishes with at least
      one failure, later groups are not started and ``HandlerFailureError``
      is raised carrying every failure of that group (ordered by
      registration index). Pass ``continue_on_failure=True`` to run every
      group regardless and report all failures at the end.
    - No timeouts and no cancellation. Wrap ``emit`` in ``asyncio.wait_for``
      if a hung handler must not block the caller.

Concurrency:
    Coroutine handlers in a group are gathered on the running loop. Plain
    callables run inline on the loop thread (a plain callable returning an
    awaitable has that awaitable gathered too). Registration is expected to
    happen during setup; each emission iterates a snapshot, so handlers
    registered mid-emission are only seen by later emissions.

Tags:
    events, asyncio, priority, plugins, buildspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Iterable
from itertools import groupby
from typing import Any

from buildspine.core.errors import (
    BuildSpineError,
    HandlerFailure,
    HandlerFailureError,
    InvalidEventError,
    InvalidHandlerError,
)
from buildspine.core.events import DEFAULT_PRIORITY, EventHandler, Registration
from buildspine.core.logging import LogSink, get_null_logger
from buildspine.core.result import Err, Ok, Result, try_result_async

__all__ = ["EventBus"]


class EventBus:
    """Registry of named events dispatching to priority-grouped handlers.

    Example::

        bus = EventBus(["afterParse"])

        async def index(page):
            await search.add(page)

        bus.on("afterParse", index, priority=20)
        await bus.emit("afterParse", page)
    """

    def __init__(
        self,
        valid_events: Iterable[str] | None = None,
        *,
        default_priority: int = DEFAULT_PRIORITY,
        continue_on_failure: bool = False,
        logger: LogSink | None = None,
    ) -> None:
        self._valid_events: frozenset[str] = frozenset()
        self._events: dict[str, list[Registration]] = {}
        self._default_priority = default_priority
        self._continue_on_failure = continue_on_failure
        self._log = logger if logger is not None else get_null_logger()

        if valid_events is not None:
            self.register_valid_events(valid_events)

    # ── Valid events ─────────────────────────────────────────────

    def register_valid_events(self, names: Iterable[str]) -> EventBus:
        """Replace the set of legal event names.

        Registrations already made for names that are no longer valid are
        kept but can no longer be emitted.
        """
        if isinstance(names, str):
            raise TypeError("register_valid_events expects a collection of names, not a string")
        self._valid_events = frozenset(names)
        self._log.debug("event_bus.valid_events", count=len(self._valid_events))
        return self

    @property
    def valid_events(self) -> frozenset[str]:
        return self._valid_events

    def is_valid_event(self, name: str) -> bool:
        return name in self._valid_events

    # ── Registration ─────────────────────────────────────────────

    def on(self, name: str, handler: EventHandler, priority: int | None = None) -> None:
        """Attach ``handler`` to event ``name``.

        Raises:
            InvalidEventError: ``name`` is not a valid event.
            InvalidHandlerError: ``handler`` is not callable or ``priority``
                is not an integer.
        """
        if name not in self._valid_events:
            raise InvalidEventError(name)
        if not callable(handler):
            raise InvalidHandlerError(name).with_context(
                handler=type(handler).__name__
            )
        if priority is None:
            priority = self._default_priority
        elif isinstance(priority, bool) or not isinstance(priority, int):
            raise InvalidHandlerError(
                name, f"Priority for event '{name}' must be an integer, got {priority!r}."
            )

        registrations = self._events.setdefault(name, [])
        registration = Registration(handler=handler, priority=priority, index=len(registrations))
        registrations.append(registration)
        self._log.debug(
            "event_bus.on",
            event_name=name,
            handler=registration.name,
            priority=priority,
        )

    def handlers(self, name: str) -> list[Registration]:
        """Snapshot of the registrations for ``name`` in registration order."""
        return list(self._events.get(name, ()))

    def handler_count(self, name: str | None = None) -> int:
        if name is not None:
            return len(self._events.get(name, ()))
        return sum(len(regs) for regs in self._events.values())

    def clear(self, name: str | None = None) -> None:
        """Drop registrations for one event, or for all events."""
        if name is not None:
            self._events.pop(name, None)
        else:
            self._events.clear()

    # ── Emission ─────────────────────────────────────────────────

    async def emit(self, name: str, *args: Any, **kwargs: Any) -> None:
        """Fan ``name`` out to its handlers, one priority group at a time.

        Raises:
            InvalidEventError: ``name`` is not a valid event.
            HandlerFailureError: At least one handler failed.
        """
        self._log.debug("event_bus.emit.called", event_name=name)

        if name not in self._valid_events:
            raise InvalidEventError(name)

        registrations = self.handlers(name)
        if not registrations:
            self._log.debug("event_bus.emit.no_handlers", event_name=name)
            return

        groups = [
            (priority, list(group))
            for priority, group in groupby(
                sorted(registrations, key=lambda r: (r.priority, r.index)),
                key=lambda r: r.priority,
            )
        ]
        self._log.debug(
            "event_bus.emit.start",
            event_name=name,
            handlers=len(registrations),
            groups=len(groups),
        )

        failures: list[HandlerFailure] = []
        for position, (priority, group) in enumerate(groups):
            outcomes = await asyncio.gather(
                *(self._invoke(registration, args, kwargs) for registration in group)
            )
            for registration, outcome in zip(group, outcomes):
                if isinstance(outcome, Err):
                    failure = HandlerFailure(
                        priority=priority,
                        index=registration.index,
                        handler=registration.name,
                        error=outcome.error,
                    )
                    failures.append(failure)
                    self._log.warning(
                        "event_bus.handler.failed",
                        event_name=name,
                        handler=failure.handler,
                        priority=priority,
                        index=failure.index,
                        error=str(outcome.error),
                        error_type=type(outcome.error).__name__,
                    )

            if failures and not self._continue_on_failure:
                skipped = [p for p, _ in groups[position + 1 :]]
                error = HandlerFailureError(name, failures)
                if skipped:
                    error.with_context(skipped_priorities=skipped)
                self._log.warning(
                    "event_bus.emit.failed",
                    event_name=name,
                    failures=len(failures),
                    skipped_priorities=skipped,
                )
                raise error

        if failures:
            self._log.warning("event_bus.emit.failed", event_name=name, failures=len(failures))
            raise HandlerFailureError(name, failures)

        self._log.debug("event_bus.emit.done", event_name=name)

    async def try_emit(self, name: str, *args: Any, **kwargs: Any) -> Result[None]:
        """Like :meth:`emit`, but return ``Ok(None)`` / ``Err(error)`` instead of raising."""
        try:
            await self.emit(name, *args, **kwargs)
        except BuildSpineError as exc:
            return Err(exc)
        return Ok(None)

    async def _invoke(
        self, registration: Registration, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Result[Any]:
        async def call() -> Any:
            outcome = registration.handler(*args, **kwargs)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome

        return await try_result_async(call)

    def __repr__(self) -> str:
        return (
            f"EventBus(valid_events={len(self._valid_events)}, "
            f"handlers={self.handler_count()})"
        )
