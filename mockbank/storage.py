"""
Storage Backend Module

Provides an abstract key-value storage interface with the same semantics as
browser localStorage (string keys, string values) and implementations for
in-memory (testing) and SQLite (persistence).
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union
from datetime import datetime, timezone
import sqlite3
import threading
from pathlib import Path
from contextlib import contextmanager


class StorageInterface(ABC):
    """Abstract interface for key-value storage backends"""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent"""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a string value under key"""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> bool:
        """Remove a key; returns True if it existed"""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """List all stored keys"""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every key"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a storage transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = {}
        self._snapshot: Optional[Dict[str, str]] = None
        self._lock = threading.RLock()
        for key, value in (initial or {}).items():
            self.set_item(key, value)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be strings, got {type(value).__name__}")
        with self._lock:
            self._data[key] = value

    def remove_item(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def clear(self) -> None:
        with self._lock:
            self._data = {}

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    def begin_transaction(self) -> None:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = dict(self._data)

    def commit(self) -> None:
        with self._lock:
            self._snapshot = None

    def rollback(self) -> None:
        with self._lock:
            if self._snapshot is not None:
                self._data = self._snapshot
                self._snapshot = None

    def get_all_data(self) -> Dict[str, str]:
        """Get all data for debugging/inspection"""
        with self._lock:
            return dict(self._data)


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    table = "kv_store"

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # Set isolation_level to 'DEFERRED' to enable manual transaction control
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False

        with self._lock:
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.commit()

    def _maybe_commit(self) -> None:
        # Only commit if not in transaction
        if not self._in_transaction:
            self._connection.commit()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            cursor = self._connection.execute(f"""
                SELECT value FROM {self.table} WHERE key = ?
            """, (key,))
            row = cursor.fetchone()
            return row['value'] if row else None

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be strings, got {type(value).__name__}")
        with self._lock:
            now = datetime.now(timezone.utc).isoformat()
            self._connection.execute(f"""
                INSERT OR REPLACE INTO {self.table} (key, value, updated_at)
                VALUES (?, ?, ?)
            """, (key, value, now))
            self._maybe_commit()

    def remove_item(self, key: str) -> bool:
        with self._lock:
            cursor = self._connection.execute(f"""
                DELETE FROM {self.table} WHERE key = ?
            """, (key,))
            self._maybe_commit()
            return cursor.rowcount > 0

    def keys(self) -> List[str]:
        with self._lock:
            cursor = self._connection.execute(f"""
                SELECT key FROM {self.table} ORDER BY key
            """)
            return [row['key'] for row in cursor.fetchall()]

    def clear(self) -> None:
        with self._lock:
            self._connection.execute(f"DELETE FROM {self.table}")
            self._maybe_commit()

    def begin_transaction(self) -> None:
        with self._lock:
            if not self._in_transaction:
                # SQLite with isolation_level='DEFERRED' starts transactions on first write
                self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(url: str) -> StorageInterface:
    """
    Build a storage backend from a URL.

    Supported forms: ``memory://`` and ``sqlite:///relative/or/absolute.db``
    (``sqlite://`` alone means an in-memory SQLite database).
    """
    if url.startswith("memory://"):
        return InMemoryStorage()
    if url.startswith("sqlite://"):
        path = url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteStorage(path or ":memory:")
    raise ValueError(f"Unsupported storage URL: {url}")
