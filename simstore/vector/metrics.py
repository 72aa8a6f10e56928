"""
Distance metrics - every metric is expressed as a distance, lower is more similar.
All arithmetic is float64 regardless of the stored precision.
"""

from abc import ABC, abstractmethod
from typing import Dict, Sequence, Union

import numpy as np

from ..core.errors import DimensionMismatchError, InvalidArgumentError


def _as_float64(vector: Sequence[float]) -> np.ndarray:
    return np.asarray(vector, dtype=np.float64)


class DistanceMetric(ABC):
    """Abstract distance function over equal-length vectors."""

    name: str = ""

    def distance(self, v1: Sequence[float], v2: Sequence[float]) -> float:
        """Distance between two vectors."""
        a = _as_float64(v1)
        b = _as_float64(v2)
        if a.shape != b.shape:
            raise DimensionMismatchError(len(a), len(b), context=f"{self.name} distance")
        return float(self._pairwise(a, b))

    def distances(self, query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
        """Distances from ``query`` to every row of ``matrix``."""
        q = _as_float64(query)
        m = np.asarray(matrix, dtype=np.float64)
        if m.size == 0:
            return np.empty(0, dtype=np.float64)
        if m.ndim != 2 or m.shape[1] != len(q):
            raise DimensionMismatchError(m.shape[-1], len(q), context=f"{self.name} distances")
        return self._rowwise(q, m)

    @abstractmethod
    def _pairwise(self, a: np.ndarray, b: np.ndarray) -> float:
        pass

    @abstractmethod
    def _rowwise(self, q: np.ndarray, m: np.ndarray) -> np.ndarray:
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class EuclideanMetric(DistanceMetric):
    """Square root of the sum of squared componentwise differences."""

    name = "euclidean"

    def _pairwise(self, a, b):
        return np.sqrt(np.sum((a - b) ** 2))

    def _rowwise(self, q, m):
        return np.sqrt(np.sum((m - q) ** 2, axis=1))


class CosineMetric(DistanceMetric):
    """1 - cosine similarity. A zero vector has similarity 0 with everything."""

    name = "cosine"

    def _pairwise(self, a, b):
        denom = np.linalg.norm(a) * np.linalg.norm(b)
        if denom == 0:
            return 1.0
        return 1.0 - np.dot(a, b) / denom

    def _rowwise(self, q, m):
        denom = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
        dots = m @ q
        similarity = np.zeros(len(m), dtype=np.float64)
        nonzero = denom > 0
        similarity[nonzero] = dots[nonzero] / denom[nonzero]
        return 1.0 - similarity


class DotProductMetric(DistanceMetric):
    """Negative dot product, for maximum-inner-product retrieval."""

    name = "dot"

    def _pairwise(self, a, b):
        return -np.dot(a, b)

    def _rowwise(self, q, m):
        return -(m @ q)


METRICS: Dict[str, DistanceMetric] = {
    "euclidean": EuclideanMetric(),
    "cosine": CosineMetric(),
    "dot": DotProductMetric(),
}


def get_metric(metric: Union[str, DistanceMetric, None] = "euclidean") -> DistanceMetric:
    """Resolve a metric name (or pass through a metric instance)."""
    if isinstance(metric, DistanceMetric):
        return metric
    if metric is None:
        return METRICS["euclidean"]

    resolved = METRICS.get(str(metric).strip().lower())
    if resolved is None:
        raise InvalidArgumentError(f"Unknown metric {metric!r}; must be one of {sorted(METRICS)}")
    return resolved
