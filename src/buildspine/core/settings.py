"""Environment-driven settings for buildspine.

``BuildSpineSettings`` reads ``BUILDSPINE_*`` environment variables (and a
``.env`` file when present) so the CLI and embedding applications agree on
where the staleness cache lives and how verbose logging is.

Examples:
    >>> import os
    >>> os.environ["BUILDSPINE_CACHE_PATH"] = "_cache/assets.json"
    >>> reset_settings()
    >>> str(get_settings().cache_path)
    '_cache/assets.json'

Tags:
    settings, configuration, pydantic, environment, buildspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class BuildSpineSettings(BaseSettings):
    """Settings shared by the CLI and embedding applications.

    Fields
    ──────
    cache_path        : JSON document holding the staleness cache
    base_path         : Directory cache keys are resolved against (None → keys are paths)
    log_level         : Structlog log level
    json_logs         : Force JSON logs (None → auto-detect from TTY)
    default_priority  : Priority used when a handler is registered without one
    """

    model_config = SettingsConfigDict(
        env_prefix="BUILDSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Staleness cache ──────────────────────────────────────────
    cache_path: Path = Field(
        default=Path(".buildspine") / "cache.json",
        description="Persisted staleness cache document",
    )
    base_path: Path | None = None

    # ── Observability ────────────────────────────────────────────
    log_level: str = "WARNING"
    json_logs: bool | None = None

    # ── Event bus ────────────────────────────────────────────────
    default_priority: int = 50

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> BuildSpineSettings:
    """Return the process-wide settings, read once from the environment."""
    return BuildSpineSettings()


def reset_settings() -> None:
    """Forget cached settings so the next ``get_settings()`` re-reads them."""
    get_settings.cache_clear()


__all__ = ["BuildSpineSettings", "get_settings", "reset_settings"]
