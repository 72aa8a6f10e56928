"""
Persistence collaborators - write-through targets for the record store.
Any key-value store that can write, read back everything and delete fits the contract.
Transient failures are the collaborator's concern; they propagate unchanged.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

from .db import get_db, init_db


class IPersistence(ABC):
    """Abstract interface for record persistence."""

    @abstractmethod
    def write(self, key: str, encoded_record: str) -> None:
        """Insert or overwrite the encoded record stored under ``key``."""
        pass

    @abstractmethod
    def read_all(self) -> List[Tuple[str, str]]:
        """Return every stored ``(key, encoded_record)`` pair."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete ``key``; deleting an absent key is not an error."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete every stored record."""
        pass


class InMemoryPersistence(IPersistence):
    """Dict-backed persistence, mostly for tests and throwaway sessions."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def write(self, key: str, encoded_record: str) -> None:
        with self._lock:
            self._data[key] = encoded_record

    def read_all(self) -> List[Tuple[str, str]]:
        with self._lock:
            return sorted(self._data.items())

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self):
        return len(self._data)


class SqlitePersistence(IPersistence):
    """SQLite-backed persistence; one row per record key."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_db(db_path)

    def write(self, key: str, encoded_record: str) -> None:
        with get_db(self.db_path) as conn:
            conn.execute(
                "INSERT INTO records (key, payload, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
                "ON CONFLICT(key) DO UPDATE SET payload = excluded.payload, updated_at = CURRENT_TIMESTAMP",
                (key, encoded_record)
            )
            conn.commit()

    def read_all(self) -> List[Tuple[str, str]]:
        with get_db(self.db_path) as conn:
            cursor = conn.execute("SELECT key, payload FROM records ORDER BY key")
            return [(key, payload) for key, payload in cursor.fetchall()]

    def delete(self, key: str) -> None:
        with get_db(self.db_path) as conn:
            conn.execute("DELETE FROM records WHERE key = ?", (key,))
            conn.commit()

    def clear(self) -> None:
        with get_db(self.db_path) as conn:
            conn.execute("DELETE FROM records")
            conn.commit()

    def count(self) -> int:
        with get_db(self.db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM records").fetchone()[0]
