"""
Test support utilities for buildspine tests.

Helpers that don't fit as pytest fixtures but are used across test files.
"""

from __future__ import annotations

import os
from pathlib import Path

T0_NS = 1_700_000_000_000_000_000


def write_asset(path: Path, *, size: int = 100, mtime_ns: int | None = None) -> Path:
    """Create ``path`` (and parents) holding ``size`` bytes, then pin its mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    if mtime_ns is not None:
        os.utime(path, ns=(mtime_ns, mtime_ns))
    return path


def ms(ns: int) -> float:
    """Nanoseconds to the millisecond float the cache stores."""
    return ns / 1_000_000
