"""
CLI: ``buildspine events`` — emit events through plugin handlers.

A plugin is any callable reachable as ``module:qualname`` that accepts the
bus and registers handlers on it::

    # myplugins.py
    def register(bus):
        bus.on("afterBuild", compress_assets, priority=10)
        bus.on("afterBuild", write_sitemap)

    $ buildspine events emit afterBuild --plugin myplugins:register --arg public/
"""

from __future__ import annotations

import asyncio
import importlib
from collections.abc import Callable
from typing import Any

import typer

from buildspine.cli.utils import console, err_console, fail, print_json, print_table
from buildspine.core.errors import BuildSpineError, ConfigError
from buildspine.core.events import EventBus
from buildspine.core.logging import LogContext, get_logger
from buildspine.core.settings import get_settings

app = typer.Typer(no_args_is_help=True)


def resolve_plugin(ref: str) -> Callable[..., Any]:
    """Import and return the callable identified by ``'module:qualname'``.

    Raises:
        ConfigError: The reference is malformed, cannot be imported, or is not callable.
    """
    module_path, _, attr_path = ref.partition(":")
    if not module_path or not attr_path:
        raise ConfigError(f"Invalid plugin reference (expected 'module:function'): {ref!r}")
    try:
        obj: Any = importlib.import_module(module_path)
        for part in attr_path.split("."):
            obj = getattr(obj, part)
    except (ImportError, AttributeError) as exc:
        raise ConfigError(f"Cannot load plugin {ref!r}: {exc}", cause=exc) from exc
    if not callable(obj):
        raise ConfigError(f"Plugin {ref!r} resolved to non-callable: {type(obj).__name__}")
    return obj


def build_bus(
    event: str,
    plugins: list[str],
    valid_events: list[str] | None = None,
    *,
    continue_on_failure: bool = False,
) -> EventBus:
    """Create a bus accepting ``valid_events`` (plus ``event``) and run each plugin on it.

    Raises:
        ConfigError: A plugin cannot be loaded or crashes while registering.
        InvalidEventError: A plugin registers for an event the bus does not accept.
    """
    names = set(valid_events or [])
    names.add(event)
    bus = EventBus(
        names,
        default_priority=get_settings().default_priority,
        continue_on_failure=continue_on_failure,
        logger=get_logger("buildspine.events"),
    )
    for ref in plugins:
        register = resolve_plugin(ref)
        try:
            register(bus)
        except BuildSpineError:
            raise
        except Exception as exc:
            raise ConfigError(
                f"Plugin {ref!r} failed while registering handlers: {exc}", cause=exc
            ).with_context(plugin=ref) from exc
    return bus


@app.command("emit")
def emit(
    event: str = typer.Argument(..., help="Event name to emit."),
    plugins: list[str] = typer.Option([], "--plugin", "-p", help="Plugin registration callable, module:function."),
    args: list[str] = typer.Option([], "--arg", "-a", help="Positional argument passed to every handler."),
    valid_events: list[str] = typer.Option([], "--valid", help="Additional valid event names plugins may use."),
    keep_going: bool = typer.Option(False, "--keep-going", help="Run later priority groups even after a failure."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Load plugins, emit EVENT once and report any handler failures."""
    with LogContext(command="events.emit", event_name=event):
        try:
            bus = build_bus(event, plugins, valid_events, continue_on_failure=keep_going)
            count = bus.handler_count(event)
            asyncio.run(bus.emit(event, *args))
        except BuildSpineError as exc:
            fail(exc, as_json=json_out)

    if json_out:
        print_json({"event": event, "handlers": count, "ok": True})
    else:
        console.print(f"[green]Emitted[/green] {event} to {count} handler(s)")


@app.command("handlers")
def handlers(
    event: str = typer.Argument(..., help="Event name to list handlers for."),
    plugins: list[str] = typer.Option([], "--plugin", "-p", help="Plugin registration callable, module:function."),
    valid_events: list[str] = typer.Option([], "--valid", help="Additional valid event names plugins may use."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the handlers plugins register for EVENT, in execution order."""
    with LogContext(command="events.handlers", event_name=event):
        try:
            bus = build_bus(event, plugins, valid_events)
        except BuildSpineError as exc:
            fail(exc, as_json=json_out)

    rows = [
        {"priority": reg.priority, "index": reg.index, "handler": reg.name}
        for reg in sorted(bus.handlers(event), key=lambda r: (r.priority, r.index))
    ]
    if json_out:
        print_json(rows)
    elif rows:
        print_table(rows, title=event)
    else:
        err_console.print(f"[dim]No handlers registered for {event}.[/dim]")

