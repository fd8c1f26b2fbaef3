"""
Lock Proxy - Pluggable Storage Backends

The proxy keeps its bindings in an external key-value store.  This module
provides the abstract ``StorageBackend`` interface (byte-string keys and
values grouped into namespaces) and two implementations: an ephemeral
in-memory store for tests and an SQLite store for operators and the CLI.

Usage::

    backend = get_storage_backend("memory")
    backend = get_storage_backend("sqlite", db_path="/data/proxy.db")

``JournaledStorage`` wraps any backend and buffers writes until
``commit()``, so an operation can abandon everything it wrote with
``rollback()``.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional, Tuple

logger = logging.getLogger("lockproxy.storage")


# ── Abstract interface ─────────────────────────────────────────────────

class StorageBackend(ABC):
    """Minimal namespaced key-value interface for proxy persistence.

    The proxy uses four namespaces:

    * ``proxy_hash``      - chain id ↦ remote proxy address
    * ``asset_hash``      - local asset ‖ chain id ↦ remote asset hash
    * ``from_asset_list`` - local asset ↦ local asset (known asset set)
    * ``upgrade``         - version ↦ implementation record
    """

    NAMESPACES = ("proxy_hash", "asset_hash", "from_asset_list", "upgrade")

    @abstractmethod
    def get(self, namespace: str, key: bytes) -> Optional[bytes]:
        """Retrieve a value by key from *namespace*, or ``None``."""

    @abstractmethod
    def put(self, namespace: str, key: bytes, value: bytes) -> None:
        """Write *value* under *key* in *namespace*."""

    @abstractmethod
    def delete(self, namespace: str, key: bytes) -> None:
        """Remove *key* from *namespace*."""

    @abstractmethod
    def iterate(self, namespace: str) -> Iterator[Tuple[bytes, bytes]]:
        """Yield all ``(key, value)`` pairs in *namespace* in key order."""

    @abstractmethod
    def commit(self) -> None:
        """Flush any buffered writes to durable storage."""

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the backend."""

    def has(self, namespace: str, key: bytes) -> bool:
        return self.get(namespace, key) is not None

    def _check_namespace(self, namespace: str) -> None:
        if namespace not in self.NAMESPACES:
            raise KeyError(f"Unknown storage namespace '{namespace}'")

    @property
    def name(self) -> str:
        return self.__class__.__name__


# ── In-memory backend (testing) ────────────────────────────────────────

class MemoryBackend(StorageBackend):
    """Ephemeral in-memory backend - useful for tests and demos."""

    def __init__(self):
        self._data: Dict[str, Dict[bytes, bytes]] = {ns: {} for ns in self.NAMESPACES}

    def get(self, namespace: str, key: bytes) -> Optional[bytes]:
        self._check_namespace(namespace)
        return self._data[namespace].get(bytes(key))

    def put(self, namespace: str, key: bytes, value: bytes) -> None:
        self._check_namespace(namespace)
        self._data[namespace][bytes(key)] = bytes(value)

    def delete(self, namespace: str, key: bytes) -> None:
        self._check_namespace(namespace)
        self._data[namespace].pop(bytes(key), None)

    def iterate(self, namespace: str) -> Iterator[Tuple[bytes, bytes]]:
        self._check_namespace(namespace)
        yield from sorted(self._data[namespace].items())

    def commit(self) -> None:
        pass

    def close(self) -> None:
        self._data = {ns: {} for ns in self.NAMESPACES}


# ── SQLite backend ─────────────────────────────────────────────────────

class SQLiteBackend(StorageBackend):
    """SQLite-based storage with BLOB keys and values.

    Best for: operator tooling and single-node deployments.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._init_tables()
        logger.info("SQLite storage backend opened: %s", db_path)

    def _init_tables(self):
        for ns in self.NAMESPACES:
            self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS [{ns}] (
                    key   BLOB PRIMARY KEY,
                    value BLOB NOT NULL
                )
            """)
        self._conn.commit()

    def get(self, namespace: str, key: bytes) -> Optional[bytes]:
        self._check_namespace(namespace)
        row = self._conn.execute(
            f"SELECT value FROM [{namespace}] WHERE key = ?", (bytes(key),)
        ).fetchone()
        return bytes(row[0]) if row else None

    def put(self, namespace: str, key: bytes, value: bytes) -> None:
        self._check_namespace(namespace)
        self._conn.execute(
            f"INSERT OR REPLACE INTO [{namespace}] (key, value) VALUES (?, ?)",
            (bytes(key), bytes(value)),
        )

    def delete(self, namespace: str, key: bytes) -> None:
        self._check_namespace(namespace)
        self._conn.execute(
            f"DELETE FROM [{namespace}] WHERE key = ?", (bytes(key),)
        )

    def iterate(self, namespace: str) -> Iterator[Tuple[bytes, bytes]]:
        self._check_namespace(namespace)
        cursor = self._conn.execute(
            f"SELECT key, value FROM [{namespace}] ORDER BY key ASC"
        )
        for key, value in cursor:
            yield bytes(key), bytes(value)

    def commit(self) -> None:
        self._conn.commit()

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None  # type: ignore[assignment]
            logger.info("SQLite storage backend closed")


# ── Write journal ──────────────────────────────────────────────────────

_DELETED = object()


class JournaledStorage(StorageBackend):
    """Buffers writes over *inner* until ``commit()``.

    Reads see the pending writes first.  ``rollback()`` discards them,
    leaving *inner* untouched.
    """

    def __init__(self, inner: StorageBackend):
        self._inner = inner
        self._pending: Dict[Tuple[str, bytes], object] = {}

    @property
    def NAMESPACES(self):  # type: ignore[override]
        return self._inner.NAMESPACES

    @property
    def dirty(self) -> bool:
        return bool(self._pending)

    def get(self, namespace: str, key: bytes) -> Optional[bytes]:
        self._check_namespace(namespace)
        pending = self._pending.get((namespace, bytes(key)))
        if pending is _DELETED:
            return None
        if pending is not None:
            return pending  # type: ignore[return-value]
        return self._inner.get(namespace, key)

    def put(self, namespace: str, key: bytes, value: bytes) -> None:
        self._check_namespace(namespace)
        self._pending[(namespace, bytes(key))] = bytes(value)

    def delete(self, namespace: str, key: bytes) -> None:
        self._check_namespace(namespace)
        self._pending[(namespace, bytes(key))] = _DELETED

    def iterate(self, namespace: str) -> Iterator[Tuple[bytes, bytes]]:
        merged = dict(self._inner.iterate(namespace))
        for (ns, key), value in self._pending.items():
            if ns != namespace:
                continue
            if value is _DELETED:
                merged.pop(key, None)
            else:
                merged[key] = value  # type: ignore[assignment]
        yield from sorted(merged.items())

    def commit(self) -> None:
        for (ns, key), value in self._pending.items():
            if value is _DELETED:
                self._inner.delete(ns, key)
            else:
                self._inner.put(ns, key, value)  # type: ignore[arg-type]
        self._pending.clear()
        self._inner.commit()

    def rollback(self) -> None:
        if self._pending:
            logger.debug("Discarding %d journaled writes", len(self._pending))
        self._pending.clear()

    def close(self) -> None:
        self._pending.clear()


# ── Backend factory ────────────────────────────────────────────────────

_BACKENDS = {
    "sqlite": SQLiteBackend,
    "memory": MemoryBackend,
}


def get_storage_backend(name: str, **kwargs) -> StorageBackend:
    """Instantiate a storage backend by name.

    Parameters
    ----------
    name : str
        One of the registered names (``"sqlite"``, ``"memory"``).
    **kwargs
        Forwarded to the backend constructor (e.g. ``db_path``).
    """
    name = name.lower().strip()
    cls = _BACKENDS.get(name)
    if cls is None:
        raise ValueError(
            f"Unknown storage backend '{name}'. "
            f"Available: {', '.join(sorted(_BACKENDS))}"
        )
    return cls(**kwargs)


def register_backend(name: str, cls: type) -> None:
    """Register a custom storage backend class."""
    if not issubclass(cls, StorageBackend):
        raise TypeError(f"{cls} is not a StorageBackend subclass")
    _BACKENDS[name.lower()] = cls
