"""
CLI: ``buildspine cache`` — staleness cache inspection and maintenance.
"""

from __future__ import annotations

from pathlib import Path

import typer

from buildspine.cli.utils import console, err_console, fail, open_cache, print_json, print_table
from buildspine.core.cache import CheckOutcome
from buildspine.core.errors import BuildSpineError, MissingPhysicalFileError
from buildspine.core.logging import LogContext

app = typer.Typer(no_args_is_help=True)

CachePathOption = typer.Option(None, "--cache-path", "-c", help="Cache document (defaults to settings).")
BasePathOption = typer.Option(None, "--base-path", "-b", help="Directory keys are resolved against.")

_STYLES = {
    CheckOutcome.NEW: "green",
    CheckOutcome.CHANGED: "yellow",
    CheckOutcome.UNCHANGED: "dim",
    CheckOutcome.REMOVED: "red",
}


@app.command("check")
def check(
    keys: list[str] = typer.Argument(..., help="Cache keys (paths relative to the base path)."),
    cache_path: Path | None = CachePathOption,
    base_path: Path | None = BasePathOption,
    save: bool = typer.Option(True, "--save/--no-save", help="Persist the cache afterwards."),
    update: bool = typer.Option(True, "--update/--no-update", help="Record new fingerprints for changed keys."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Report whether each key's file is new, changed, unchanged or removed."""
    cache = open_cache(cache_path, base_path)

    results: list[dict[str, object]] = []
    missing: list[MissingPhysicalFileError] = []
    mutated = False

    with LogContext(command="cache.check"):
        for key in keys:
            try:
                outcome = cache.inspect(key, auto_update=update)
            except MissingPhysicalFileError as exc:
                missing.append(exc)
                results.append({"key": key, "outcome": "missing", "path": exc.path})
                continue
            mutated = mutated or outcome in (CheckOutcome.NEW, CheckOutcome.REMOVED) or (
                outcome is CheckOutcome.CHANGED and update
            )
            results.append({"key": key, "outcome": outcome.value, "path": str(cache.resolve(key))})

        if save and mutated:
            try:
                cache.save_map()
            except BuildSpineError as exc:
                fail(exc, as_json=json_out)

    if json_out:
        print_json({"cache": str(cache.path), "saved": save and mutated, "results": results})
    else:
        for row in results:
            outcome = row["outcome"]
            style = "bold red" if outcome == "missing" else _STYLES[CheckOutcome(outcome)]
            console.print(f"[{style}]{outcome:>9}[/{style}]  {row['key']}")

    if missing:
        if len(missing) == 1:
            fail(missing[0], as_json=json_out)
        err_console.print(f"[bold red]{len(missing)} keys have no physical file.[/bold red]")
        raise typer.Exit(code=1)


@app.command("show")
def show(
    cache_path: Path | None = CachePathOption,
    base_path: Path | None = BasePathOption,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List every tracked key with its fingerprint."""
    cache = open_cache(cache_path, base_path)

    if json_out:
        print_json(cache.to_pairs())
        return

    rows = [
        {"key": key, "modified_ms": fp.modified, "size": fp.size}
        for key, fp in cache.items()
    ]
    print_table(rows, title=f"{cache.path} ({len(cache)} entries)")


@app.command("clear")
def clear(
    cache_path: Path | None = CachePathOption,
    write: bool = typer.Option(True, "--write/--no-write", help="Persist the emptied cache."),
) -> None:
    """Forget every tracked fingerprint."""
    cache = open_cache(cache_path)
    count = len(cache)
    try:
        cache.clear(write=write)
    except BuildSpineError as exc:
        fail(exc)
    console.print(f"Cleared {count} entries from {cache.path}" + ("" if write else " (not written)"))
