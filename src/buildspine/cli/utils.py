"""
CLI utility helpers -- output formatting, settings resolution, error rendering.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from buildspine.core.cache import StaleCache
from buildspine.core.errors import BuildSpineError, HandlerFailureError
from buildspine.core.logging import get_logger
from buildspine.core.settings import get_settings

console = Console()
err_console = Console(stderr=True)


# ── Cache helper ─────────────────────────────────────────────────────────


def open_cache(cache_path: Path | None = None, base_path: Path | None = None) -> StaleCache:
    """Open the staleness cache, falling back to settings for unset paths."""
    settings = get_settings()
    path = cache_path or settings.cache_path
    base = base_path if base_path is not None else settings.base_path
    try:
        return StaleCache(path, base_path=base, logger=get_logger("buildspine.cache"))
    except BuildSpineError as exc:
        fail(exc)


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    console.print(table)


def fail(error: BuildSpineError, *, as_json: bool = False) -> NoReturn:
    """Render ``error`` on stderr and exit with status 1."""
    if as_json:
        err_console.print_json(json.dumps(error.to_dict(), default=str))
        raise typer.Exit(code=1)

    err_console.print(
        f"[bold red]Error[/bold red] ({error.__class__.__name__}): {error.message}"
    )
    if isinstance(error, HandlerFailureError):
        for failure in error.failures:
            err_console.print(
                f"  [red]✗[/red] priority={failure.priority} index={failure.index} "
                f"handler={failure.handler}: "
                f"{type(failure.error).__name__}: {failure.error}"
            )
        skipped = error.context.metadata.get("skipped_priorities")
        if skipped:
            err_console.print(f"  [dim]skipped priorities: {skipped}[/dim]")
    else:
        for key, value in error.context.to_dict().items():
            err_console.print(f"  [cyan]{key}[/cyan]: {value}")
    raise typer.Exit(code=1)
