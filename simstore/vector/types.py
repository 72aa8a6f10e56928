"""
Record and result types shared by the store, the index and the query engine.
"""

from dataclasses import dataclass, field
from typing import Dict

import numpy as np


def freeze_vector(vector) -> np.ndarray:
    """Copy a vector into a read-only float64 array."""
    frozen = np.array(vector, dtype=np.float64)
    frozen.setflags(write=False)
    return frozen


@dataclass(frozen=True, eq=False)
class Record:
    """Represents a stored record. The store is its sole owner."""

    key: str
    """Unique identifier for the record"""

    name: str
    """Display name"""

    vector: np.ndarray
    """Read-only float64 vector of the store dimension"""

    metadata: Dict[str, str] = field(default_factory=dict)
    """Free-form string metadata"""


@dataclass(frozen=True, eq=False)
class VectorIndexEntry:
    """Index-side view of a record: its key and a reference to its vector."""

    key: str
    vector: np.ndarray


@dataclass(frozen=True)
class QueryResult:
    """Represents a ranked nearest-neighbor match."""

    key: str
    """Identifier for the matching record"""

    name: str
    """Display name of the matching record"""

    score: float
    """Distance to the query vector (lower is more similar)"""

    metadata: Dict[str, str] = field(default_factory=dict, compare=False)
    """Metadata associated with the matched record"""
