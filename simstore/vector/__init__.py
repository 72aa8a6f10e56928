"""
Vector layer - codecs, distance metrics and the similarity index.
Advisory layer over the canonical record store.
"""

from .codec import IVectorCodec, TextVectorCodec, BinaryVectorCodec, encode_record, decode_record
from .index import SimilarityIndex, IndexState
from .metrics import DistanceMetric, EuclideanMetric, CosineMetric, DotProductMetric, get_metric
from .types import Record, VectorIndexEntry, QueryResult

__all__ = [
    'IVectorCodec',
    'TextVectorCodec',
    'BinaryVectorCodec',
    'encode_record',
    'decode_record',
    'SimilarityIndex',
    'IndexState',
    'DistanceMetric',
    'EuclideanMetric',
    'CosineMetric',
    'DotProductMetric',
    'get_metric',
    'Record',
    'VectorIndexEntry',
    'QueryResult',
]
