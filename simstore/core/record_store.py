"""
Record store - canonical owner of every record.
Writes go through to the persistence collaborator (when configured) and then
refresh the similarity index; the index never owns a record.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import DimensionMismatchError, InvalidArgumentError, NotFoundError
from .persistence import IPersistence
from ..vector.codec import decode_record, encode_record
from ..vector.index import SimilarityIndex
from ..vector.types import Record, freeze_vector
from util.logging import describe_vector, logger


class RecordStore:
    """Key → (name, vector, metadata) mapping with a fixed vector dimension."""

    def __init__(self, dimension: int, persistence: Optional[IPersistence] = None,
                 index: Optional[SimilarityIndex] = None, max_scan_size: Optional[int] = None):
        """
        Initialize the record store.

        Args:
            dimension: Length every stored vector must have
            persistence: Optional write-through collaborator
            index: Optional similarity index kept in step with every write
            max_scan_size: Optional cap on records yielded by a single scan
        """
        if dimension < 1:
            raise InvalidArgumentError(f"Store dimension must be >= 1, got {dimension}")
        if index is not None and index.dimension != dimension:
            raise DimensionMismatchError(dimension, index.dimension, context="index")

        self.dimension = dimension
        self.persistence = persistence
        self.index = index
        self.max_scan_size = max_scan_size

        self._records: Dict[str, Record] = {}
        # key -> [lock, holders]; entries are dropped when no writer holds them
        self._key_locks: Dict[str, list] = {}
        self._key_locks_guard = threading.Lock()

        # put/delete share the store; load/clear need it to themselves
        self._gate = threading.Condition()
        self._active_writers = 0
        self._bulk_waiting = 0
        self._bulk_active = False

    def __len__(self):
        return len(self._records)

    def __contains__(self, key):
        return key in self._records

    def keys(self) -> List[str]:
        return sorted(self._records)

    def put(self, key: str, name: str, vector: Sequence[float],
            metadata: Optional[Mapping[str, str]] = None) -> Record:
        """Insert or overwrite a record.

        Raises:
            InvalidArgumentError: empty key/name, non-numeric vector or non-string metadata
            DimensionMismatchError: vector length differs from the store dimension
        """
        if not isinstance(key, str) or not key.strip():
            raise InvalidArgumentError("key cannot be empty")
        if not isinstance(name, str) or not name.strip():
            raise InvalidArgumentError("name cannot be empty")
        metadata = self._validate_metadata(metadata)
        vector = self._validate_vector(vector, context=f"put {key!r}")

        record = Record(key=key, name=name, vector=vector, metadata=metadata)
        encoded = encode_record(name, vector, metadata)

        with self._shared_write(), self._locked(key):
            existing = key in self._records
            if self.persistence is not None:
                try:
                    self.persistence.write(key, encoded)
                except Exception as e:
                    logger.log_record_operation("put", key, {"error": str(e)}, status="failed")
                    raise

            self._records[key] = record
            if self.index is not None:
                self.index.insert(key, vector)

        logger.log_record_operation("put", key, {
            **describe_vector(vector),
            "operation": "update" if existing else "create",
        })
        return record

    def get(self, key: str) -> Record:
        """Return the record for ``key`` or raise NotFoundError."""
        record = self._records.get(key)
        if record is None:
            raise NotFoundError(key)
        return record

    def find(self, key: str) -> Optional[Record]:
        """Return the record for ``key``, or None when it does not exist."""
        return self._records.get(key)

    def delete(self, key: str) -> bool:
        """Delete a record. Returns False if the key was absent."""
        with self._shared_write(), self._locked(key):
            if key not in self._records:
                return False
            if self.persistence is not None:
                try:
                    self.persistence.delete(key)
                except Exception as e:
                    logger.log_record_operation("delete", key, {"error": str(e)}, status="failed")
                    raise

            del self._records[key]
            if self.index is not None:
                self.index.remove(key)

        logger.log_record_operation("delete", key)
        return True

    def scan_all(self, limit: Optional[int] = None) -> Iterator[Record]:
        """Lazily iterate over a point-in-time snapshot of all records, in key order.

        The snapshot is taken when ``scan_all`` is called, so writes made while
        the caller is iterating never change the result set. Every call starts
        an independent traversal.
        """
        if limit is not None and limit < 0:
            raise InvalidArgumentError(f"limit must be >= 0, got {limit}")
        caps = [cap for cap in (limit, self.max_scan_size) if cap is not None]
        cap = min(caps) if caps else None

        snapshot = sorted(self._records.values(), key=lambda record: record.key)
        if cap is not None:
            snapshot = snapshot[:cap]
        return iter(snapshot)

    def snapshot(self) -> List[Tuple[str, np.ndarray]]:
        """Current ``(key, vector)`` pairs, the input for ``SimilarityIndex.rebuild``."""
        records = sorted(self._records.values(), key=lambda record: record.key)
        return [(record.key, record.vector) for record in records]

    def load(self) -> int:
        """Replace the store contents with everything the persistence collaborator holds.

        Raises:
            MalformedEncodingError: a stored record cannot be decoded
            DimensionMismatchError: a stored vector has the wrong length
        """
        if self.persistence is None:
            return 0

        with self._exclusive_write():
            loaded = {}
            for key, encoded in self.persistence.read_all():
                name, vector, metadata = decode_record(encoded, self.dimension)
                loaded[key] = Record(key=key, name=name, vector=freeze_vector(vector), metadata=metadata)

            self._records = loaded
            if self.index is not None:
                self.index.rebuild(self.snapshot())

        logger.log_operation("store.load", "success", {"records": len(loaded)})
        return len(loaded)

    def clear(self) -> None:
        """Remove every record from the store, the persistence collaborator and the index.

        Waits for in-flight ``put``/``delete`` calls to finish and holds new
        ones back until the store is empty.
        """
        with self._exclusive_write():
            if self.persistence is not None:
                self.persistence.clear()
            self._records = {}
            if self.index is not None:
                self.index.clear()
        logger.log_operation("store.clear", "success")

    def _validate_vector(self, vector: Sequence[float], context: str) -> np.ndarray:
        try:
            array = np.asarray(vector, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"{context}: vector components must be numeric ({e})") from e
        if array.ndim != 1:
            raise InvalidArgumentError(f"{context}: vector must be one-dimensional")
        if len(array) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(array), context=context)
        if not np.all(np.isfinite(array)):
            raise InvalidArgumentError(f"{context}: vector components must be finite")
        return freeze_vector(array)

    @staticmethod
    def _validate_metadata(metadata: Optional[Mapping[str, str]]) -> Dict[str, str]:
        if metadata is None:
            return {}
        for k, v in metadata.items():
            if not isinstance(k, str) or not isinstance(v, str):
                raise InvalidArgumentError("metadata keys and values must be strings")
        return dict(metadata)

    @contextmanager
    def _locked(self, key: str):
        """Hold the per-key write lock for ``key``."""
        with self._key_locks_guard:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = [threading.Lock(), 0]
            entry[1] += 1

        try:
            with entry[0]:
                yield
        finally:
            with self._key_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]

    @contextmanager
    def _shared_write(self):
        with self._gate:
            while self._bulk_active or self._bulk_waiting:
                self._gate.wait()
            self._active_writers += 1
        try:
            yield
        finally:
            with self._gate:
                self._active_writers -= 1
                self._gate.notify_all()

    @contextmanager
    def _exclusive_write(self):
        with self._gate:
            self._bulk_waiting += 1
            try:
                while self._bulk_active or self._active_writers:
                    self._gate.wait()
            finally:
                self._bulk_waiting -= 1
                self._gate.notify_all()
            self._bulk_active = True
        try:
            yield
        finally:
            with self._gate:
                self._bulk_active = False
                self._gate.notify_all()
