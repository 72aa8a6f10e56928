"""
simstore - a single-process vector similarity store with exact and approximate k-NN search.
"""

from .core.errors import (
    SimStoreError,
    InvalidArgumentError,
    DimensionMismatchError,
    NotFoundError,
    MalformedEncodingError,
)
from .core.persistence import IPersistence, InMemoryPersistence, SqlitePersistence
from .core.record_store import RecordStore
from .core.query_engine import QueryEngine, QueryOptions
from .vector import (
    SimilarityIndex,
    IndexState,
    Record,
    QueryResult,
    EuclideanMetric,
    CosineMetric,
    DotProductMetric,
    get_metric,
    TextVectorCodec,
    BinaryVectorCodec,
)

__version__ = "0.1.0"

__all__ = [
    'SimStoreError',
    'InvalidArgumentError',
    'DimensionMismatchError',
    'NotFoundError',
    'MalformedEncodingError',
    'IPersistence',
    'InMemoryPersistence',
    'SqlitePersistence',
    'RecordStore',
    'QueryEngine',
    'QueryOptions',
    'SimilarityIndex',
    'IndexState',
    'Record',
    'QueryResult',
    'EuclideanMetric',
    'CosineMetric',
    'DotProductMetric',
    'get_metric',
    'TextVectorCodec',
    'BinaryVectorCodec',
]
