"""
Key-value storage backends for advisorkit.

The recommendation cache only needs a small synchronous string store: get,
set, delete and key enumeration. Writes may fail (a full disk, a capacity
limit); backends report that by raising StorageError subclasses so the cache
can treat it as "proceed without cache".
"""

from __future__ import annotations

import os
import sqlite3
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional


class StorageError(Exception):
    """Base class for key-value storage failures."""


class StorageQuotaExceeded(StorageError):
    """The write would exceed the store's capacity."""


class StorageUnavailable(StorageError):
    """The store cannot be read or written at all."""


class KeyValueStore(ABC):

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())


class MemoryStore(KeyValueStore):
    """
    Dict-backed store. ``capacity_bytes`` caps the total size of keys plus
    values, mimicking a browser storage quota.
    """

    def __init__(self, capacity_bytes: Optional[int] = None):
        self.capacity_bytes = capacity_bytes
        self._data: Dict[str, str] = {}

    def _size(self) -> int:
        return sum(len(k) + len(v) for k, v in self._data.items())

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.capacity_bytes is not None:
            existing = self._data.get(key)
            freed = len(key) + len(existing) if existing is not None else 0
            if self._size() - freed + len(key) + len(value) > self.capacity_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {key!r} would exceed {self.capacity_bytes} bytes"
                )
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)


class SqliteStore(KeyValueStore):
    """Persistent store over a single ``kv_store`` table."""

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            base_dir = os.path.dirname(os.path.abspath(__file__))
            self.db_path = os.path.join(base_dir, "advisorkit.db")
        else:
            self.db_path = db_path

        if self.db_path != ":memory:":
            directory = os.path.dirname(os.path.abspath(self.db_path))
            os.makedirs(directory, exist_ok=True)

        # ":memory:" databases vanish with their connection, so hold one open.
        self._shared_conn = (
            sqlite3.connect(self.db_path, check_same_thread=False)
            if self.db_path == ":memory:" else None
        )
        self._init_tables()

    def _connect(self) -> sqlite3.Connection:
        if self._shared_conn is not None:
            return self._shared_conn
        return sqlite3.connect(self.db_path)

    def _run(self, sql: str, params: tuple = ()) -> List[tuple]:
        conn = self._connect()
        try:
            with conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.OperationalError as e:
            if "full" in str(e).lower():
                raise StorageQuotaExceeded(str(e)) from e
            raise StorageUnavailable(str(e)) from e
        except sqlite3.DatabaseError as e:
            raise StorageUnavailable(str(e)) from e
        finally:
            if conn is not self._shared_conn:
                conn.close()

    def _init_tables(self):
        self._run("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def get(self, key: str) -> Optional[str]:
        rows = self._run("SELECT value FROM kv_store WHERE key = ?", (key,))
        return rows[0][0] if rows else None

    def set(self, key: str, value: str) -> None:
        self._run("""
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
            value=excluded.value,
            updated_at=CURRENT_TIMESTAMP
        """, (key, value))

    def delete(self, key: str) -> None:
        self._run("DELETE FROM kv_store WHERE key = ?", (key,))

    def keys(self) -> List[str]:
        return [row[0] for row in self._run("SELECT key FROM kv_store ORDER BY key")]

    def close(self):
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None
