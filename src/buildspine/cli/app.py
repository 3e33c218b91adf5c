"""
Root Typer application for the buildspine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from buildspine.core.logging import configure_logging
from buildspine.core.settings import get_settings

app = Typer(
    name="buildspine",
    help="buildspine — event dispatch and staleness tracking for site builds.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from buildspine import __version__

        typer.echo(f"buildspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str | None = typer.Option(  # noqa: UP007
        None,
        "--log-level",
        "-l",
        help="Log level (defaults to BUILDSPINE_LOG_LEVEL or WARNING).",
    ),
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """buildspine CLI — inspect the staleness cache and emit build events."""
    settings = get_settings()
    level = (log_level or settings.log_level).upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise typer.BadParameter(f"unknown log level {log_level!r}", param_hint="--log-level")
    configure_logging(
        level=level,
        json_format=settings.json_logs,
    )


from buildspine.cli.cache import app as cache_app  # noqa: E402
from buildspine.cli.events import app as events_app  # noqa: E402

app.add_typer(cache_app, name="cache", help="Staleness cache inspection and maintenance.")
app.add_typer(events_app, name="events", help="Emit events through plugin handlers.")


if __name__ == "__main__":
    app()
