"""Tests for ``buildspine cache`` CLI commands."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from buildspine.cli.app import app
from buildspine.core.cache import Fingerprint, StaleCache

from _support import T0_NS, ms

runner = CliRunner()


@pytest.fixture
def cli_args(cache_path, site_dir):
    return ["--cache-path", str(cache_path), "--base-path", str(site_dir)]


class TestCacheCheck:
    def test_new_then_unchanged(self, cli_args, make_asset, cache_path):
        make_asset("img/a.png", size=1000, mtime_ns=T0_NS)

        first = runner.invoke(app, ["cache", "check", "img/a.png", *cli_args])
        assert first.exit_code == 0, first.output
        assert "new" in first.output
        assert cache_path.exists()

        second = runner.invoke(app, ["cache", "check", "img/a.png", *cli_args])
        assert second.exit_code == 0
        assert "unchanged" in second.output

    def test_json_output(self, cli_args, make_asset, cache_path, site_dir):
        make_asset("a.css", size=5, mtime_ns=T0_NS)

        result = runner.invoke(app, ["cache", "check", "a.css", "--json", *cli_args])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["saved"] is True
        assert payload["cache"] == str(cache_path)
        assert payload["results"] == [
            {"key": "a.css", "outcome": "new", "path": str(site_dir / "a.css")}
        ]

    def test_no_save(self, cli_args, make_asset, cache_path):
        make_asset("a.css")
        result = runner.invoke(app, ["cache", "check", "a.css", "--no-save", *cli_args])
        assert result.exit_code == 0
        assert not cache_path.exists()

    def test_no_update_leaves_fingerprint(self, cli_args, make_asset, cache_path, site_dir):
        make_asset("a.css", size=5, mtime_ns=T0_NS)
        runner.invoke(app, ["cache", "check", "a.css", *cli_args])
        make_asset("a.css", size=6, mtime_ns=T0_NS)

        result = runner.invoke(app, ["cache", "check", "a.css", "--no-update", *cli_args])

        assert result.exit_code == 0
        assert "changed" in result.output
        stored = StaleCache(cache_path, base_path=site_dir).get("a.css")
        assert stored == Fingerprint(ms(T0_NS), 5)

    def test_missing_file_fails(self, cli_args):
        result = runner.invoke(app, ["cache", "check", "ghost.png", *cli_args])
        assert result.exit_code == 1
        assert "MissingPhysicalFileError" in result.output

    def test_several_missing_files(self, cli_args, make_asset):
        make_asset("real.png")
        result = runner.invoke(
            app, ["cache", "check", "real.png", "ghost1.png", "ghost2.png", *cli_args]
        )
        assert result.exit_code == 1
        assert "2 keys have no physical file" in result.output

    def test_removed_file(self, cli_args, make_asset):
        path = make_asset("gone.txt")
        runner.invoke(app, ["cache", "check", "gone.txt", *cli_args])
        path.unlink()

        result = runner.invoke(app, ["cache", "check", "gone.txt", *cli_args])
        assert result.exit_code == 0
        assert "removed" in result.output

    def test_settings_from_environment(self, monkeypatch, cache_path, site_dir, make_asset):
        monkeypatch.setenv("BUILDSPINE_CACHE_PATH", str(cache_path))
        monkeypatch.setenv("BUILDSPINE_BASE_PATH", str(site_dir))
        make_asset("env.txt")

        result = runner.invoke(app, ["cache", "check", "env.txt"])

        assert result.exit_code == 0, result.output
        assert StaleCache(cache_path).has("env.txt")

    def test_corrupt_cache_reported(self, cli_args, cache_path):
        cache_path.parent.mkdir(parents=True)
        cache_path.write_text("not json")

        result = runner.invoke(app, ["cache", "check", "x", *cli_args])
        assert result.exit_code == 1
        assert "CorruptCacheError" in result.output


class TestCacheShow:
    def test_show_json(self, cli_args, make_asset):
        make_asset("a.js", size=3, mtime_ns=T0_NS)
        runner.invoke(app, ["cache", "check", "a.js", *cli_args])

        result = runner.invoke(app, ["cache", "show", "--json", *cli_args])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [["a.js", {"modified": ms(T0_NS), "size": 3}]]

    def test_show_table(self, cli_args, make_asset):
        make_asset("a.js", size=3)
        runner.invoke(app, ["cache", "check", "a.js", *cli_args])

        result = runner.invoke(app, ["cache", "show", *cli_args])

        assert result.exit_code == 0
        assert "a.js" in result.output
        assert "size" in result.output

    def test_show_empty(self, cli_args):
        result = runner.invoke(app, ["cache", "show", *cli_args])
        assert result.exit_code == 0
        assert "No items" in result.output


class TestCacheClear:
    def test_clear_writes_by_default(self, cli_args, make_asset, cache_path):
        make_asset("a.js")
        runner.invoke(app, ["cache", "check", "a.js", *cli_args])

        result = runner.invoke(app, ["cache", "clear", "--cache-path", str(cache_path)])

        assert result.exit_code == 0
        assert "Cleared 1 entries" in result.output
        assert json.loads(cache_path.read_text()) == []

    def test_clear_no_write(self, cli_args, make_asset, cache_path):
        make_asset("a.js")
        runner.invoke(app, ["cache", "check", "a.js", *cli_args])

        result = runner.invoke(
            app, ["cache", "clear", "--no-write", "--cache-path", str(cache_path)]
        )

        assert result.exit_code == 0
        assert "not written" in result.output
        assert len(json.loads(cache_path.read_text())) == 1


class TestRootOptions:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "buildspine 0.1.0" in result.output

    def test_bad_log_level(self, cli_args):
        result = runner.invoke(app, ["--log-level", "loud", "cache", "show", *cli_args])
        assert result.exit_code != 0
