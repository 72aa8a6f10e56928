"""
Query engine - validates nearest-neighbor queries, runs them against the
similarity index and joins the hits back to the record store.
"""

from typing import Iterator, List, Literal, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import DimensionMismatchError, InvalidArgumentError
from .record_store import RecordStore
from ..vector.index import SimilarityIndex
from ..vector.metrics import DistanceMetric, get_metric
from ..vector.types import QueryResult, Record
from util.logging import logger


class QueryOptions(BaseModel):
    """Options recognized by ``QueryEngine.find_nearest``."""

    model_config = ConfigDict(extra="forbid")

    metric: Literal["euclidean", "cosine", "dot"] = "euclidean"
    k: int = Field(default=5, ge=1)
    approximate: bool = False
    probe_count: Optional[int] = Field(default=None, ge=1)


def build_options(**overrides) -> QueryOptions:
    """Build QueryOptions, turning pydantic validation errors into InvalidArgumentError."""
    try:
        return QueryOptions(**overrides)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid query options: {e}") from e


class QueryEngine:
    """Ranked k-nearest-neighbor queries over a record store."""

    def __init__(self, store: RecordStore, index: Optional[SimilarityIndex] = None,
                 default_options: Optional[QueryOptions] = None):
        self.store = store
        self.index = index if index is not None else store.index
        if self.index is None:
            raise InvalidArgumentError("QueryEngine needs a similarity index")
        self.default_options = default_options or QueryOptions()

    def find_nearest(self, query_vector: Sequence[float], k: Optional[int] = None,
                     metric: Union[str, DistanceMetric, None] = None,
                     options: Optional[QueryOptions] = None) -> List[QueryResult]:
        """
        Find the ``k`` records nearest to ``query_vector``.

        Explicit ``k`` and ``metric`` arguments override ``options``.
        Results are ordered by ascending distance, ties by key. A record
        deleted between the index lookup and the name lookup is skipped.

        Raises:
            InvalidArgumentError: k < 1, empty or non-numeric query vector, unknown metric
            DimensionMismatchError: query vector length differs from the store dimension
        """
        options = options or self.default_options
        k = options.k if k is None else k
        resolved_metric = get_metric(options.metric if metric is None else metric)
        vector = self._validate_query(query_vector, k)

        hits = self.index.query(
            vector, k, resolved_metric,
            approximate=options.approximate,
            probe_count=options.probe_count,
        )

        results = []
        skipped = 0
        for key, score in hits:
            record = self.store.find(key)
            if record is None:
                skipped += 1
                continue
            results.append(QueryResult(key=key, name=record.name, score=score, metadata=dict(record.metadata)))

        logger.log_query(
            resolved_metric.name, k, [result.key for result in results],
            approximate=options.approximate, skipped=skipped,
        )
        return results

    def distances_from(self, query_vector: Sequence[float],
                       metric: Union[str, DistanceMetric, None] = None) -> Iterator[Tuple[Record, float]]:
        """Full scan: yield ``(record, distance)`` for every record in scan order."""
        resolved_metric = get_metric(self.default_options.metric if metric is None else metric)
        vector = self._validate_query(query_vector, 1)
        return ((record, resolved_metric.distance(vector, record.vector)) for record in self.store.scan_all())

    def _validate_query(self, query_vector: Sequence[float], k: int) -> np.ndarray:
        if not isinstance(k, (int, np.integer)) or isinstance(k, bool) or k < 1:
            raise InvalidArgumentError(f"k must be an integer >= 1, got {k!r}")
        if query_vector is None:
            raise InvalidArgumentError("query vector cannot be empty")
        try:
            vector = np.asarray(query_vector, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"query vector components must be numeric ({e})") from e
        if vector.ndim != 1 or vector.size == 0:
            raise InvalidArgumentError("query vector cannot be empty")
        if len(vector) != self.store.dimension:
            raise DimensionMismatchError(self.store.dimension, len(vector), context="query")
        return vector