"""Priority-ordered event dispatch for build pipelines.

Why This Package Exists
-----------------------
A site build fires lifecycle signals (``beforeParse``, ``afterParse``,
``afterBuild`` ...) that plugins hook into. Plugins need a say in *when*
they run relative to each other, and the build needs to know if any of
them failed. ``EventBus`` gives both: handlers are registered with a
numeric priority, each priority group runs concurrently, groups run in
ascending order, and failures are aggregated into one error.

Usage::

    from buildspine.core.events import EventBus

    bus = EventBus({"beforeBuild", "afterBuild"})

    async def minify(site):
        ...

    bus.on("afterBuild", minify, priority=10)
    bus.on("afterBuild", write_sitemap)          # default priority 50
    await bus.emit("afterBuild", site)

Modules
-------
bus         EventBus -- asyncio-based, priority-grouped dispatcher
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

__all__ = [
    "DEFAULT_PRIORITY",
    "EventBus",
    "EventHandler",
    "Registration",
    "describe_handler",
]

DEFAULT_PRIORITY = 50

# Handlers may be coroutine functions or plain callables.
EventHandler = Callable[..., Awaitable[Any] | Any]


def describe_handler(handler: Callable[..., Any]) -> str:
    """Human-readable identity for a handler (``module.qualname`` when available)."""
    func = getattr(handler, "func", handler)  # functools.partial
    qualname = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    if qualname is None:
        return repr(handler)
    module = getattr(func, "__module__", None)
    return f"{module}.{qualname}" if module else qualname


@dataclass(frozen=True)
class Registration:
    """A handler attached to one event.

    Attributes:
        handler: Callable invoked with the emitted arguments
        priority: Lower runs earlier
        index: Position of this registration within its event (0-based)
    """

    handler: EventHandler
    priority: int = DEFAULT_PRIORITY
    index: int = 0

    @property
    def name(self) -> str:
        return describe_handler(self.handler)


from buildspine.core.events.bus import EventBus  # noqa: E402
