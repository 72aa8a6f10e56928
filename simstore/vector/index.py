"""
Similarity index - k-nearest-neighbor lookup over the record store's vectors.
Advisory layer: the record store stays the canonical owner of every record.

Two modes:
  exact        every query scores every indexed vector
  approximate  vectors are clustered into partitions (k-means); a query
               scores only the members of the partitions whose centroids
               are closest to the query vector
"""

import heapq
import math
import threading
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

import numpy as np

from ..core.errors import DimensionMismatchError, InvalidArgumentError
from .metrics import DistanceMetric, get_metric
from .types import VectorIndexEntry, freeze_vector
from util.logging import logger

INDEX_MODES = ("exact", "approximate")

# Scores equal to this many decimal places count as ties and are ordered by key
SCORE_DECIMALS = 12


class IndexState(str, Enum):
    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"
    STALE = "stale"


def _index_vector(vector) -> np.ndarray:
    # Reuse read-only float64 vectors handed over by the record store.
    if isinstance(vector, np.ndarray) and vector.dtype == np.float64 and not vector.flags.writeable:
        return vector
    return freeze_vector(vector)


class SimilarityIndex:
    """In-memory k-NN index with an exact and an approximate (partitioned) mode."""

    def __init__(self, dimension: int, mode: str = "exact", n_partitions: Optional[int] = None,
                 rebuild_threshold: float = 0.2, min_train_size: Optional[int] = None,
                 seed: int = 0, max_iterations: int = 20):
        """
        Initialize the index.

        Args:
            dimension: Length every indexed vector must have
            mode: "exact" or "approximate"
            n_partitions: Number of partitions in approximate mode
                          (default: round(sqrt(N)) at training time)
            rebuild_threshold: Fraction of the trained size that may be inserted
                               or removed before the partitions are considered stale
            min_train_size: Entries required before partitions are trained
                            (default: max(2 * n_partitions, 8))
            seed: Seed for k-means initialization, keeps training deterministic
            max_iterations: Upper bound on k-means iterations
        """
        if dimension < 1:
            raise InvalidArgumentError(f"Index dimension must be >= 1, got {dimension}")
        if mode not in INDEX_MODES:
            raise InvalidArgumentError(f"Unknown index mode {mode!r}; must be one of {list(INDEX_MODES)}")
        if n_partitions is not None and n_partitions < 1:
            raise InvalidArgumentError(f"n_partitions must be >= 1, got {n_partitions}")
        if rebuild_threshold < 0:
            raise InvalidArgumentError(f"rebuild_threshold must be >= 0, got {rebuild_threshold}")

        self.dimension = dimension
        self.mode = mode
        self.n_partitions = n_partitions
        self.rebuild_threshold = rebuild_threshold
        self.min_train_size = min_train_size
        self.seed = seed
        self.max_iterations = max(1, max_iterations)

        self._lock = threading.RLock()
        self._entries: Dict[str, VectorIndexEntry] = {}
        self._state = IndexState.EMPTY

        # Partition structure (approximate mode only)
        self._centroids: Optional[np.ndarray] = None
        self._partitions: List[Set[str]] = []
        self._assignment: Dict[str, int] = {}
        self._trained_size = 0
        self._changes_since_training = 0

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def is_partitioned(self) -> bool:
        return self._centroids is not None

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return key in self._entries

    def insert(self, key: str, vector: Sequence[float]) -> None:
        """Add or replace the entry for ``key``."""
        vector = _index_vector(vector)
        if vector.ndim != 1 or len(vector) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(vector), context=f"index insert {key!r}")

        with self._lock:
            self._detach(key)
            self._entries[key] = VectorIndexEntry(key=key, vector=vector)

            if self._state is IndexState.EMPTY:
                self._set_state(IndexState.BUILDING)

            if self.mode == "exact":
                self._set_state(IndexState.READY)
            elif self._centroids is None:
                if len(self._entries) >= self._training_size():
                    self._train()
            else:
                self._assign(key, vector)
                self._count_change()

    def remove(self, key: str) -> bool:
        """Remove the entry for ``key``. Returns False if it was not indexed."""
        with self._lock:
            if key not in self._entries:
                return False
            self._detach(key)
            del self._entries[key]
            if not self._entries:
                self._reset_partitions()
                self._set_state(IndexState.EMPTY)
            elif self._centroids is not None:
                self._count_change()
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._reset_partitions()
            self._set_state(IndexState.EMPTY)

    def rebuild(self, snapshot: Optional[Iterable[Tuple[str, Sequence[float]]]] = None) -> None:
        """Recompute the whole structure.

        With a snapshot of ``(key, vector)`` pairs (normally from
        ``RecordStore.snapshot()``) the index contents are replaced first;
        without one the current entries are re-partitioned.
        """
        if snapshot is not None:
            entries = {}
            for key, vector in snapshot:
                vector = _index_vector(vector)
                if vector.ndim != 1 or len(vector) != self.dimension:
                    raise DimensionMismatchError(self.dimension, len(vector), context=f"index rebuild {key!r}")
                entries[key] = VectorIndexEntry(key=key, vector=vector)
        else:
            entries = None

        with self._lock:
            if entries is not None:
                self._entries = entries
            self._reset_partitions()

            if not self._entries:
                self._set_state(IndexState.EMPTY)
            else:
                self._set_state(IndexState.BUILDING)
                if self.mode == "exact":
                    self._set_state(IndexState.READY)
                elif len(self._entries) >= self._training_size():
                    self._train()

            logger.log_index_operation("rebuild", {
                "mode": self.mode,
                "entries": len(self._entries),
                "partitions": len(self._partitions),
                "state": self._state.value,
            })

    def query(self, vector: Sequence[float], k: int, metric: Union[str, DistanceMetric, None] = "euclidean",
              approximate: Optional[bool] = None, probe_count: Optional[int] = None) -> List[Tuple[str, float]]:
        """Return up to ``k`` ``(key, score)`` pairs, best first.

        Scores are distances (lower is better); scores equal to
        ``SCORE_DECIMALS`` places are ordered by key.
        An empty index yields an empty list.
        """
        metric = get_metric(metric)
        query_vector = np.asarray(vector, dtype=np.float64)
        if query_vector.ndim != 1 or len(query_vector) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(query_vector), context="index query")
        if k < 1:
            raise InvalidArgumentError(f"k must be >= 1, got {k}")
        if probe_count is not None and probe_count < 1:
            raise InvalidArgumentError(f"probe_count must be >= 1, got {probe_count}")
        if approximate is None:
            approximate = self.mode == "approximate"

        with self._lock:
            if self._state is IndexState.STALE:
                logger.log_index_operation("retrain", {
                    "entries": len(self._entries),
                    "changes_since_training": self._changes_since_training,
                })
                self._train()

            if approximate and self._centroids is not None:
                candidates = self._probe(query_vector, metric, probe_count)
            else:
                candidates = list(self._entries.values())

        if not candidates:
            return []

        # Entries hold read-only vectors, so scoring happens outside the lock.
        matrix = np.vstack([entry.vector for entry in candidates])
        scores = metric.distances(query_vector, matrix)
        ranks = np.round(scores, SCORE_DECIMALS).tolist()
        best = heapq.nsmallest(k, zip(ranks, (entry.key for entry in candidates), scores.tolist()))
        return [(key, score) for _, key, score in best]

    def default_probe_count(self) -> int:
        """Partitions probed when no probe count is given: ~10% of them, at least one."""
        return max(1, math.ceil(0.1 * len(self._partitions)))

    def stats(self) -> Dict[str, object]:
        with self._lock:
            return {
                "mode": self.mode,
                "state": self._state.value,
                "entries": len(self._entries),
                "dimension": self.dimension,
                "partitions": len(self._partitions),
                "partition_sizes": [len(members) for members in self._partitions],
                "trained_size": self._trained_size,
                "changes_since_training": self._changes_since_training,
            }

    def _probe(self, query_vector: np.ndarray, metric: DistanceMetric,
               probe_count: Optional[int]) -> List[VectorIndexEntry]:
        # Partitions emptied by removals keep their centroid until retraining
        occupied = [partition for partition, members in enumerate(self._partitions) if members]
        probes = probe_count or self.default_probe_count()
        probes = min(probes, len(occupied))
        centroid_scores = metric.distances(query_vector, self._centroids[occupied])
        nearest = [occupied[i] for i in np.argsort(centroid_scores, kind="stable")[:probes]]

        candidates = []
        for partition in nearest:
            candidates.extend(self._entries[key] for key in self._partitions[partition])
        return candidates

    def _training_size(self) -> int:
        if self.min_train_size is not None:
            return max(1, self.min_train_size)
        return max(2 * (self.n_partitions or 4), 8)

    def _train(self) -> None:
        keys = sorted(self._entries)
        matrix = np.vstack([self._entries[key].vector for key in keys])
        n_partitions = self.n_partitions or max(1, round(math.sqrt(len(keys))))
        n_partitions = min(n_partitions, len(keys))

        centroids, labels = self._kmeans(matrix, n_partitions)

        self._centroids = centroids
        self._partitions = [set() for _ in range(n_partitions)]
        self._assignment = {}
        for key, label in zip(keys, labels.tolist()):
            self._partitions[label].add(key)
            self._assignment[key] = label
        self._trained_size = len(keys)
        self._changes_since_training = 0
        self._set_state(IndexState.READY)

        logger.log_index_operation("train", {
            "entries": len(keys),
            "partitions": n_partitions,
        })

    def _kmeans(self, matrix: np.ndarray, n_partitions: int) -> Tuple[np.ndarray, np.ndarray]:
        centroids = self._seed_centroids(matrix, n_partitions)

        labels = None
        for _ in range(self.max_iterations):
            squared = ((matrix[:, None, :] - centroids[None, :, :]) ** 2).sum(axis=2)
            new_labels = np.argmin(squared, axis=1)
            if labels is not None and np.array_equal(labels, new_labels):
                break
            labels = new_labels
            for partition in range(n_partitions):
                members = matrix[labels == partition]
                # Empty partitions keep their previous centroid
                if len(members):
                    centroids[partition] = members.mean(axis=0)

        return centroids, labels

    def _seed_centroids(self, matrix: np.ndarray, n_partitions: int) -> np.ndarray:
        """k-means++ seeding: each new centroid is drawn with probability
        proportional to its squared distance from the closest chosen one."""
        rng = np.random.default_rng(self.seed)
        chosen = [int(rng.integers(len(matrix)))]
        closest = ((matrix - matrix[chosen[0]]) ** 2).sum(axis=1)

        while len(chosen) < n_partitions:
            total = closest.sum()
            if total > 0:
                candidate = int(rng.choice(len(matrix), p=closest / total))
            else:
                # Every point coincides with a chosen centroid
                candidate = int(rng.integers(len(matrix)))
            chosen.append(candidate)
            closest = np.minimum(closest, ((matrix - matrix[candidate]) ** 2).sum(axis=1))

        return matrix[chosen].copy()

    def _assign(self, key: str, vector: np.ndarray) -> None:
        squared = ((self._centroids - vector) ** 2).sum(axis=1)
        partition = int(np.argmin(squared))
        self._partitions[partition].add(key)
        self._assignment[key] = partition

    def _count_change(self) -> None:
        self._changes_since_training += 1
        if (self._state is IndexState.READY
                and self._changes_since_training > self.rebuild_threshold * self._trained_size):
            self._set_state(IndexState.STALE)

    def _detach(self, key: str) -> None:
        partition = self._assignment.pop(key, None)
        if partition is not None:
            self._partitions[partition].discard(key)

    def _reset_partitions(self) -> None:
        self._centroids = None
        self._partitions = []
        self._assignment = {}
        self._trained_size = 0
        self._changes_since_training = 0

    def _set_state(self, state: IndexState) -> None:
        if state is not self._state:
            logger.debug(f"Index state {self._state.value} -> {state.value}")
            self._state = state
