"""
Persisted file-staleness cache.

Answers the build pipeline's recurring question, "has the file behind this
key changed since I last looked?", by remembering a cheap fingerprint
(modification time in milliseconds and size in bytes) per key and keeping
that table in a single JSON document between runs.

Manifesto:
    Rebuilding every asset on every run is wasteful; hashing every asset on
    every run is nearly as slow. A stat-based fingerprint is O(1) per key
    and good enough to decide whether to redo work.

    - **Never invent a fingerprint:** a key is only recorded after its file
      was observed on disk
    - **Self-cleaning:** a key whose file vanished is dropped on its next check
    - **Caller-chosen durability:** mutations stay in memory until
      ``save_map()`` (or ``auto_save=True``)
    - **Atomic persistence:** temp file + ``os.replace``, never a torn document

Architecture:
    ::

        StaleCache(path, base_path=...)
            │ load_map()  ← [[key, {"modified": ms, "size": bytes}], ...]
            ▼
        table: dict[str, Fingerprint]     (insertion ordered)
            │
            ├── check(key)   → bool          (True = new or changed)
            ├── inspect(key) → CheckOutcome  (NEW | CHANGED | UNCHANGED | REMOVED)
            ├── clear(write=False)
            └── save_map()   → temp file, fsync, os.replace

Staleness rule:
    ``changed = mtime_now > mtime_stored or size_now != size_stored``.
    An mtime that moved *backwards* with an unchanged size counts as
    unchanged; clock-skew correction is out of scope.

Concurrency:
    Single process, single writer. A per-instance re-entrant lock serializes
    the read-modify-write inside ``check()`` and the snapshot taken by
    ``save_map()``, so ``acheck()`` may be awaited from many tasks at once.
    Cross-process sharing of one cache file needs external locking.

Examples:
    >>> cache = StaleCache("_cache/assets.json", base_path="site")
    >>> cache.check("img/a.png")        # first observation
    True
    >>> cache.check("img/a.png")        # nothing touched the file
    False
    >>> cache.save_map()

Tags:
    cache, staleness, fingerprint, build-pipeline, buildspine

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import asyncio
import json
import math
import os
import tempfile
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from buildspine.core.errors import (
    CacheError,
    CorruptCacheError,
    ErrorCategory,
    MissingPhysicalFileError,
)
from buildspine.core.logging import LogSink, get_null_logger

__all__ = [
    "CheckOutcome",
    "FileSystem",
    "Fingerprint",
    "LocalFileSystem",
    "StaleCache",
    "table_from_pairs",
    "table_to_pairs",
]


@dataclass(frozen=True)
class Fingerprint:
    """Last observed physical state of a file.

    Attributes:
        modified: Modification time in milliseconds since the epoch
        size: Size in bytes
    """

    modified: float
    size: int

    def is_stale(self, current: Fingerprint) -> bool:
        """True when ``current`` counts as a change relative to this fingerprint."""
        return current.modified > self.modified or current.size != self.size

    def to_dict(self) -> dict[str, Any]:
        return {"modified": self.modified, "size": self.size}

    @classmethod
    def from_stat(cls, st: os.stat_result) -> Fingerprint:
        return cls(modified=st.st_mtime_ns / 1_000_000, size=st.st_size)


class CheckOutcome(str, Enum):
    """What ``StaleCache.inspect`` observed for a key."""

    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    REMOVED = "removed"

    @property
    def needs_rebuild(self) -> bool:
        return self in (CheckOutcome.NEW, CheckOutcome.CHANGED)


# ------------------------------------------------------------------ #
# Filesystem capability
# ------------------------------------------------------------------ #


class FileSystem(Protocol):
    """Filesystem operations the cache needs. Inject a fake in tests."""

    def fingerprint(self, path: Path) -> Fingerprint | None:
        """Fingerprint of ``path``, or ``None`` if it does not exist."""
        ...

    def read_text(self, path: Path) -> str | None:
        """Contents of ``path``, or ``None`` if it does not exist."""
        ...

    def write_text_atomic(self, path: Path, text: str) -> None:
        """Replace ``path`` with ``text`` so readers never see a partial file."""
        ...


class LocalFileSystem:
    """``FileSystem`` backed by the local disk."""

    def fingerprint(self, path: Path) -> Fingerprint | None:
        try:
            st = os.stat(path)
        except FileNotFoundError:
            return None
        return Fingerprint.from_stat(st)

    def read_text(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write_text_atomic(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        try:
            with tmp:
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp.name, path)
        except BaseException:
            Path(tmp.name).unlink(missing_ok=True)
            raise


# ------------------------------------------------------------------ #
# Serialized form
# ------------------------------------------------------------------ #


def table_to_pairs(table: dict[str, Fingerprint]) -> list[list[Any]]:
    """Ordered ``[key, {"modified", "size"}]`` pairs, in table order."""
    return [[key, fp.to_dict()] for key, fp in table.items()]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _is_size(value: Any) -> bool:
    """Non-negative whole number of bytes (``12.0`` is accepted, ``1.9`` is not)."""
    return _is_number(value) and value >= 0 and (isinstance(value, int) or value.is_integer())


def table_from_pairs(pairs: Any) -> dict[str, Fingerprint]:
    """Rebuild a table from its pair form.

    Raises:
        CorruptCacheError: ``pairs`` does not have the expected shape.
    """
    if not isinstance(pairs, list):
        raise CorruptCacheError(
            f"Cache document must be a JSON array, got {type(pairs).__name__}."
        )

    table: dict[str, Fingerprint] = {}
    for position, pair in enumerate(pairs):
        if not (isinstance(pair, list) and len(pair) == 2 and isinstance(pair[0], str)):
            raise CorruptCacheError(
                f"Cache entry {position} is not a [key, fingerprint] pair."
            ).with_context(position=position)
        key, value = pair
        if not (
            isinstance(value, dict)
            and _is_number(value.get("modified"))
            and _is_size(value.get("size"))
        ):
            raise CorruptCacheError(
                f"Cache entry {position} has an invalid fingerprint."
            ).with_context(key=key, position=position)
        table[key] = Fingerprint(modified=value["modified"], size=int(value["size"]))
    return table


# ------------------------------------------------------------------ #
# StaleCache
# ------------------------------------------------------------------ #


class StaleCache:
    """Durable ``key → Fingerprint`` table used to skip unchanged assets.

    Attributes:
        path: Location of the persisted JSON document.
        base_path: Directory keys are resolved against (``None`` → keys are paths).
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        base_path: str | os.PathLike[str] | None = None,
        filesystem: FileSystem | None = None,
        logger: LogSink | None = None,
    ) -> None:
        self._path = Path(path)
        self._base_path = Path(base_path) if base_path is not None else None
        self._fs: FileSystem = filesystem if filesystem is not None else LocalFileSystem()
        self._log = logger if logger is not None else get_null_logger()
        self._lock = threading.RLock()
        self._table: dict[str, Fingerprint] = {}

        self.load_map()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def base_path(self) -> Path | None:
        return self._base_path

    # ── Persistence ──────────────────────────────────────────────

    def load_map(self) -> StaleCache:
        """(Re)load the table from disk; a missing file gives an empty table.

        Raises:
            CorruptCacheError: The file exists but is unreadable or malformed.
        """
        try:
            serialised = self._fs.read_text(self._path)
        except (OSError, UnicodeDecodeError) as exc:
            raise CorruptCacheError(
                f"Cache file could not be read: {self._path}.", cause=exc
            ).with_context(path=str(self._path)) from exc

        if serialised is None:
            self._log.debug("stale_cache.load.missing", path=str(self._path))
            table: dict[str, Fingerprint] = {}
        else:
            try:
                pairs = json.loads(serialised)
            except ValueError as exc:
                raise CorruptCacheError(
                    f"Cache file is not valid JSON: {self._path}.", cause=exc
                ).with_context(path=str(self._path)) from exc
            try:
                table = table_from_pairs(pairs)
            except CorruptCacheError as exc:
                raise exc.with_context(path=str(self._path))
            self._log.debug("stale_cache.load.found", path=str(self._path), entries=len(table))

        with self._lock:
            self._table = table
        return self

    def save_map(self) -> StaleCache:
        """Persist the table atomically, creating parent directories as needed."""
        with self._lock:
            serialised = json.dumps(table_to_pairs(self._table), separators=(",", ":"))
            try:
                self._fs.write_text_atomic(self._path, serialised)
            except OSError as exc:
                raise CacheError(
                    f"Cache file could not be written: {self._path}.",
                    category=ErrorCategory.STORAGE,
                    cause=exc,
                ).with_context(path=str(self._path)) from exc
            entries = len(self._table)
        self._log.debug("stale_cache.save", path=str(self._path), entries=entries)
        return self

    def clear(self, write: bool = False) -> StaleCache:
        """Empty the table; persist the empty table only when ``write`` is true."""
        with self._lock:
            self._table.clear()
            if write:
                self.save_map()
        self._log.debug("stale_cache.clear", written=write)
        return self

    # ── Lookups ──────────────────────────────────────────────────

    def has(self, key: str) -> bool:
        return key in self._table

    def get(self, key: str) -> Fingerprint | None:
        return self._table.get(key)

    def keys(self) -> list[str]:
        return list(self._table)

    def items(self) -> list[tuple[str, Fingerprint]]:
        return list(self._table.items())

    def to_pairs(self) -> list[list[Any]]:
        with self._lock:
            return table_to_pairs(self._table)

    def __contains__(self, key: object) -> bool:
        return key in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    # ── Staleness checks ─────────────────────────────────────────

    def resolve(self, key: str) -> Path:
        """Physical path backing ``key``.

        Keys always resolve under the base path, leading separators included.
        """
        if self._base_path is not None:
            return self._base_path / key.lstrip("/\\")
        return Path(key)

    def inspect(self, key: str, auto_save: bool = False, auto_update: bool = True) -> CheckOutcome:
        """Compare ``key``'s file with its stored fingerprint.

        Returns:
            NEW when the key was unknown (its fingerprint is now recorded),
            CHANGED when the file is stale (recorded only if ``auto_update``),
            UNCHANGED when nothing moved, REMOVED when the file vanished
            (the key is dropped).

        Raises:
            MissingPhysicalFileError: The key is unknown and its file is absent.
        """
        path = self.resolve(key)

        with self._lock:
            stored = self._table.get(key)
            current = self._fs.fingerprint(path)

            if stored is None:
                if current is None:
                    raise MissingPhysicalFileError(key, str(path))
                self._table[key] = current
                outcome = CheckOutcome.NEW
                mutated = True
            elif current is None:
                del self._table[key]
                outcome = CheckOutcome.REMOVED
                mutated = True
            elif stored.is_stale(current):
                outcome = CheckOutcome.CHANGED
                mutated = auto_update
                if auto_update:
                    self._table[key] = current
            else:
                outcome = CheckOutcome.UNCHANGED
                mutated = False

            if auto_save and mutated:
                self.save_map()

        self._log.debug(
            "stale_cache.check",
            key=key,
            outcome=outcome.value,
            updated=mutated,
        )
        return outcome

    def check(self, key: str, auto_save: bool = False, auto_update: bool = True) -> bool:
        """True when ``key``'s file is new or changed since it was last recorded.

        A key whose file disappeared is removed and reported as ``False``;
        use :meth:`inspect` to tell that apart from "unchanged".
        """
        return self.inspect(key, auto_save=auto_save, auto_update=auto_update).needs_rebuild

    async def acheck(self, key: str, auto_save: bool = False, auto_update: bool = True) -> bool:
        """:meth:`check` on a worker thread, for use from asyncio pipelines."""
        return await asyncio.to_thread(self.check, key, auto_save, auto_update)

    def check_many(
        self, keys: Iterable[str], auto_save: bool = False, auto_update: bool = True
    ) -> dict[str, CheckOutcome]:
        """Inspect several keys, saving at most once at the end.

        Raises:
            MissingPhysicalFileError: An unknown key has no file. Outcomes
                recorded before it stay in memory and nothing is saved.
        """
        outcomes = {key: self.inspect(key, auto_update=auto_update) for key in keys}
        if auto_save and any(
            o is not CheckOutcome.UNCHANGED
            and (o is not CheckOutcome.CHANGED or auto_update)
            for o in outcomes.values()
        ):
            self.save_map()
        return outcomes

    def __repr__(self) -> str:
        return f"StaleCache(path={str(self._path)!r}, entries={len(self._table)})"
