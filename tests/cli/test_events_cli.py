"""Tests for ``buildspine events`` CLI commands."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from buildspine.cli.app import app
from buildspine.cli.events import build_bus, resolve_plugin
from buildspine.core.errors import ConfigError

from _support import plugins

runner = CliRunner()


@pytest.fixture(autouse=True)
def _reset_calls():
    plugins.CALLS.clear()
    yield
    plugins.CALLS.clear()


class TestResolvePlugin:
    def test_resolves_function(self):
        assert resolve_plugin("_support.plugins:register_ok") is plugins.register_ok

    @pytest.mark.parametrize(
        "ref",
        [
            "no_colon",
            "_support.plugins:",
            ":register_ok",
            "_support.nope:register_ok",
            "_support.plugins:missing",
            "_support.plugins:NOT_CALLABLE",
        ],
    )
    def test_bad_references(self, ref):
        with pytest.raises(ConfigError):
            resolve_plugin(ref)


class TestBuildBus:
    def test_registration_crash_becomes_config_error(self):
        with pytest.raises(ConfigError) as exc_info:
            build_bus("afterBuild", ["_support.plugins:register_crashing"])
        assert isinstance(exc_info.value.cause, ValueError)
        assert exc_info.value.context.metadata["plugin"] == "_support.plugins:register_crashing"

    def test_event_is_always_valid(self):
        bus = build_bus("afterBuild", [], ["beforeBuild"])
        assert bus.valid_events == frozenset({"afterBuild", "beforeBuild"})

    def test_default_priority_from_settings(self, monkeypatch):
        monkeypatch.setenv("BUILDSPINE_DEFAULT_PRIORITY", "70")
        bus = build_bus("afterBuild", ["_support.plugins:register_ok"])
        assert [r.priority for r in bus.handlers("afterBuild")] == [10, 70]


class TestEventsEmit:
    def test_emit_runs_in_priority_order(self):
        result = runner.invoke(
            app,
            ["events", "emit", "afterBuild", "-p", "_support.plugins:register_ok", "-a", "public"],
        )
        assert result.exit_code == 0, result.output
        assert "Emitted afterBuild to 2 handler(s)" in result.output
        assert plugins.CALLS == ["compress:public", "sitemap:public"]

    def test_emit_json(self):
        result = runner.invoke(
            app,
            ["events", "emit", "afterBuild", "-p", "_support.plugins:register_ok", "--json"],
        )
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"event": "afterBuild", "handlers": 2, "ok": True}

    def test_emit_without_handlers(self):
        result = runner.invoke(app, ["events", "emit", "afterBuild"])
        assert result.exit_code == 0
        assert "0 handler(s)" in result.output

    def test_failure_skips_later_groups(self):
        result = runner.invoke(
            app, ["events", "emit", "afterBuild", "-p", "_support.plugins:register_failing"]
        )
        assert result.exit_code == 1
        assert "HandlerFailureError" in result.output
        assert "RuntimeError" in result.output
        assert "skipped priorities: [90]" in result.output
        assert sorted(plugins.CALLS) == ["broken", "compress:"]

    def test_keep_going_runs_later_groups(self):
        result = runner.invoke(
            app,
            [
                "events",
                "emit",
                "afterBuild",
                "-p",
                "_support.plugins:register_failing",
                "--keep-going",
            ],
        )
        assert result.exit_code == 1
        assert plugins.CALLS[-1] == "late"

    def test_plugin_using_unknown_event(self):
        result = runner.invoke(
            app, ["events", "emit", "afterBuild", "-p", "_support.plugins:register_unknown_event"]
        )
        assert result.exit_code == 1
        assert "InvalidEventError" in result.output

    def test_valid_events_extend_bus(self):
        result = runner.invoke(
            app,
            [
                "events",
                "emit",
                "afterBuild",
                "-p",
                "_support.plugins:register_unknown_event",
                "--valid",
                "notAnEvent",
            ],
        )
        assert result.exit_code == 0
        assert plugins.CALLS == []

    def test_plugin_crashing_during_registration(self):
        result = runner.invoke(
            app, ["events", "emit", "afterBuild", "-p", "_support.plugins:register_crashing"]
        )
        assert result.exit_code == 1
        assert "ConfigError" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_bad_plugin_reference(self):
        result = runner.invoke(app, ["events", "emit", "afterBuild", "-p", "nowhere"])
        assert result.exit_code == 1
        assert "ConfigError" in result.output


class TestEventsHandlers:
    def test_binds_command_log_context(self):
        result = runner.invoke(
            app,
            [
                "--log-level",
                "DEBUG",
                "events",
                "handlers",
                "afterBuild",
                "-p",
                "_support.plugins:register_ok",
            ],
        )
        assert result.exit_code == 0, result.output
        assert '"command": "events.handlers"' in result.output

    def test_lists_in_execution_order(self):
        result = runner.invoke(
            app,
            ["events", "handlers", "afterBuild", "-p", "_support.plugins:register_failing", "--json"],
        )
        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        assert [(r["priority"], r["index"]) for r in rows] == [(10, 0), (10, 1), (90, 2)]
        assert rows[0]["handler"].endswith("broken")

    def test_no_handlers(self):
        result = runner.invoke(app, ["events", "handlers", "afterBuild"])
        assert result.exit_code == 0
        assert "No handlers registered for afterBuild." in result.output
