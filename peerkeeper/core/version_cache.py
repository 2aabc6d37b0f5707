"""Persistent, TTL-bounded cache of registry answers for peerkeeper.

Entries are keyed by ``(package_name, target)`` and record the latest
version and full version list observed for a package, along with the
fetch time and a time-to-live.

Two concrete backends exist:

* :class:`SqliteCacheStore`: an embedded ``sqlite3`` database, preferred.
* :class:`FileCacheStore`: a single JSON document, written atomically.

:meth:`VersionCache.create` checks the SQLite backend once and falls back to
the JSON document on any failure.  The outcome is exposed as plain fields
(``backend``, ``degraded``, ``fallback_reason``) so a caller can surface it
in a health report; nothing is stored in module-level state.

Typical usage::

    cache = await VersionCache.create()
    if cache.degraded:
        print(cache.fallback_reason)

    entry = await cache.get_valid("react", "minor")
    if entry is None:
        await cache.set("react", "minor", "18.3.1", ["18.3.0", "18.3.1"], 3600)
"""

from __future__ import annotations

import os
import json
import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from peerkeeper.models.version import CachedVersion, now_ms
from peerkeeper.exceptions import CacheError, FileOperationError
from peerkeeper.utils.filesystem import atomic_write_text
from peerkeeper.utils.logger import get_logger
from peerkeeper.constants import (
    CACHE_DB_FILENAME,
    CACHE_JSON_FILENAME,
    CACHE_ROOT_PARTS,
    ENV_CACHE_BACKEND,
    ENV_CACHE_DIR,
)

logger = get_logger("version_cache")

__all__ = [
    "VersionCache",
    "CacheStore",
    "SqliteCacheStore",
    "FileCacheStore",
    "default_cache_root",
]

BACKEND_SQLITE = "sqlite"
BACKEND_FILE = "file"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS versions (
    package_name TEXT NOT NULL,
    target TEXT NOT NULL,
    latest_version TEXT NOT NULL,
    available_versions TEXT NOT NULL,
    fetched_at INTEGER NOT NULL,
    ttl_seconds INTEGER NOT NULL,
    PRIMARY KEY (package_name, target)
)
"""


def default_cache_root() -> Path:
    """Return the cache root, honouring ``PEERKEEPER_CACHE_DIR``."""
    override = os.environ.get(ENV_CACHE_DIR)
    if override:
        return Path(override).expanduser()
    return Path.home().joinpath(*CACHE_ROOT_PARTS)


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class CacheStore:
    """Interface shared by the cache backends."""

    name: str = ""

    async def get(self, package_name: str, target: str) -> Optional[CachedVersion]:
        raise NotImplementedError

    async def set(self, entry: CachedVersion) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class SqliteCacheStore(CacheStore):
    """``sqlite3`` backend; blocking calls run in a worker thread.

    Use :meth:`open` rather than the constructor so the schema is created
    (and the handle proven usable) before the store is handed out.
    """

    name = BACKEND_SQLITE

    def __init__(self, connection: sqlite3.Connection, path: Path) -> None:
        self._conn = connection
        self.path = path
        self._lock = asyncio.Lock()

    @classmethod
    def open(cls, path: Path) -> "SqliteCacheStore":
        """Open (creating if needed) the database at ``path``.

        Raises:
            sqlite3.Error, OSError: The database cannot be opened or written.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path), check_same_thread=False)
        try:
            conn.execute(_SCHEMA)
            conn.commit()
        except sqlite3.Error:
            conn.close()
            raise
        return cls(conn, path)

    async def get(self, package_name: str, target: str) -> Optional[CachedVersion]:
        async with self._lock:
            row = await asyncio.to_thread(self._select, package_name, target)
        if row is None:
            return None

        latest = row[2]
        return CachedVersion(
            package_name=row[0],
            target=row[1],
            latest_version=latest,
            available_versions=_parse_json_array(row[3], latest),
            fetched_at=int(row[4]),
            ttl_seconds=int(row[5]),
        )

    async def set(self, entry: CachedVersion) -> None:
        async with self._lock:
            await asyncio.to_thread(self._upsert, entry)

    async def close(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._conn.close)

    def _select(self, package_name: str, target: str) -> Optional[tuple]:
        cursor = self._conn.execute(
            "SELECT package_name, target, latest_version, available_versions, "
            "fetched_at, ttl_seconds FROM versions "
            "WHERE package_name = ? AND target = ?",
            (package_name, target),
        )
        return cursor.fetchone()

    def _upsert(self, entry: CachedVersion) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO versions (package_name, target, "
                "latest_version, available_versions, fetched_at, ttl_seconds) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    entry.package_name,
                    entry.target,
                    entry.latest_version,
                    json.dumps(list(entry.available_versions)),
                    entry.fetched_at,
                    entry.ttl_seconds,
                ),
            )


class FileCacheStore(CacheStore):
    """Single JSON document backend.

    Every :meth:`set` is a full read-modify-write of the document, replaced
    atomically, and serialized by an :class:`asyncio.Lock` so concurrent
    lookups never observe a partial write.
    """

    name = BACKEND_FILE

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = asyncio.Lock()

    async def get(self, package_name: str, target: str) -> Optional[CachedVersion]:
        async with self._lock:
            entries = await asyncio.to_thread(self._read_entries)
        raw = entries.get(_entry_key(package_name, target))
        if not isinstance(raw, dict):
            return None
        try:
            return CachedVersion.from_json(raw)
        except ValueError as exc:
            logger.warning(
                "Ignoring malformed cache entry %s:%s in %s: %s",
                package_name,
                target,
                self.path,
                exc,
            )
            return None

    async def set(self, entry: CachedVersion) -> None:
        async with self._lock:
            entries = await asyncio.to_thread(self._read_entries)
            entries[_entry_key(entry.package_name, entry.target)] = entry.to_json()
            payload = json.dumps(entries, sort_keys=True)
            await asyncio.to_thread(atomic_write_text, self.path, payload)

    def _read_entries(self) -> Dict[str, Any]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Cannot read cache file %s: %s", self.path, exc)
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt cache file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Cache facade
# ---------------------------------------------------------------------------


class VersionCache:
    """TTL-aware facade over a :class:`CacheStore`.

    Construct with :meth:`create`; the instance is meant to be opened once
    per run and injected into every component that needs it.

    Attributes:
        backend: ``"sqlite"`` or ``"file"``.
        degraded: True when the preferred backend could not be used.
        fallback_reason: Human-readable explanation when degraded.
        root: Directory holding the backing store.
    """

    def __init__(
        self,
        store: CacheStore,
        *,
        root: Path,
        degraded: bool = False,
        fallback_reason: Optional[str] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self.root = root
        self.degraded = degraded
        self.fallback_reason = fallback_reason
        self._clock = clock

    @property
    def backend(self) -> str:
        return self._store.name

    @classmethod
    async def create(
        cls,
        custom_path: Optional[Union[str, Path]] = None,
        *,
        backend: Optional[str] = None,
        clock: Callable[[], int] = now_ms,
    ) -> "VersionCache":
        """Open the cache, preferring SQLite and falling back to JSON.

        Args:
            custom_path: Cache root directory; defaults to
                :func:`default_cache_root`.
            backend: Force ``"file"`` (also read from
                ``PEERKEEPER_CACHE_BACKEND``).
            clock: Millisecond wall clock, injectable for tests.
        """
        root = Path(custom_path).expanduser() if custom_path else default_cache_root()
        json_path = root / CACHE_JSON_FILENAME

        forced = backend or os.environ.get(ENV_CACHE_BACKEND)
        if forced == BACKEND_FILE:
            reason = (
                f"file backend forced via {ENV_CACHE_BACKEND}=file"
                if backend is None
                else "file backend forced by caller"
            )
            logger.info("Using file cache backend: %s", reason)
            return cls(
                FileCacheStore(json_path),
                root=root,
                degraded=True,
                fallback_reason=reason,
                clock=clock,
            )

        db_path = root / CACHE_DB_FILENAME
        try:
            store: CacheStore = await asyncio.to_thread(SqliteCacheStore.open, db_path)
        except (sqlite3.Error, OSError) as exc:
            reason = f"sqlite backend unavailable at {db_path} ({exc}); using file cache backend"
            logger.warning("%s", reason)
            return cls(
                FileCacheStore(json_path),
                root=root,
                degraded=True,
                fallback_reason=reason,
                clock=clock,
            )

        logger.debug("Opened sqlite cache at %s", db_path)
        return cls(store, root=root, clock=clock)

    async def get_valid(self, package_name: str, target: str) -> Optional[CachedVersion]:
        """Return the entry only while it is within its TTL."""
        entry = await self._store.get(package_name, target)
        if entry is None or not entry.is_valid(self._clock()):
            return None
        return entry

    async def get_any(self, package_name: str, target: str) -> Optional[CachedVersion]:
        """Return the entry regardless of TTL (stale read for offline use)."""
        return await self._store.get(package_name, target)

    async def set(
        self,
        package_name: str,
        target: str,
        latest_version: str,
        available_versions: List[str],
        ttl_seconds: int,
    ) -> None:
        """Upsert the entry for ``(package_name, target)``; overwrite is total.

        A SQLite write failure switches the cache to the JSON backend for the
        rest of the run. A failure there is fatal.

        Raises:
            CacheError: The entry could not be written by any backend.
        """
        entry = CachedVersion(
            package_name=package_name,
            target=target,
            latest_version=latest_version,
            available_versions=list(available_versions),
            fetched_at=self._clock(),
            ttl_seconds=ttl_seconds,
        )

        store = self._store
        if isinstance(store, SqliteCacheStore):
            try:
                await store.set(entry)
                return
            except sqlite3.Error as exc:
                # A concurrent writer may already have switched backends
                if self._store is store:
                    self._fall_back_to_file(
                        f"sqlite write failed ({exc}); using file cache backend"
                    )
                    await store.close()

        try:
            await self._store.set(entry)
        except FileOperationError as exc:
            raise CacheError(
                f"Cannot write cache entry for {package_name}",
                path=exc.file_path,
                operation="write",
                original_error=exc,
            ) from exc

    async def close(self) -> None:
        await self._store.close()

    async def __aenter__(self) -> "VersionCache":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    def _fall_back_to_file(self, reason: str) -> None:
        logger.warning("%s", reason)
        self._store = FileCacheStore(self.root / CACHE_JSON_FILENAME)
        self.degraded = True
        self.fallback_reason = reason

    def __repr__(self) -> str:
        return (
            f"VersionCache(backend={self.backend!r}, degraded={self.degraded}, "
            f"root={str(self.root)!r})"
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _entry_key(package_name: str, target: str) -> str:
    return f"{package_name}:{target}"


def _parse_json_array(raw: Any, fallback: str) -> List[str]:
    """Decode a stored version list, falling back to ``[fallback]``."""
    if not isinstance(raw, str):
        return [fallback]
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return [fallback]
    if not isinstance(parsed, list):
        return [fallback]
    values = [value for value in parsed if isinstance(value, str)]
    return values or [fallback]
