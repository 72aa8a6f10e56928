"""
Shared fixtures: stores wired to in-memory persistence and an exact index.
"""

import pytest

from simstore.core.persistence import InMemoryPersistence
from simstore.core.query_engine import QueryEngine
from simstore.core.record_store import RecordStore
from simstore.samples import load_sample_cats
from simstore.vector.index import SimilarityIndex


@pytest.fixture
def persistence():
    return InMemoryPersistence()


@pytest.fixture
def index():
    return SimilarityIndex(dimension=4)


@pytest.fixture
def store(persistence, index):
    """Empty 4-dimensional store with write-through persistence."""
    return RecordStore(dimension=4, persistence=persistence, index=index)


@pytest.fixture
def cat_store(store):
    """Store holding the five sample cats."""
    load_sample_cats(store)
    return store


@pytest.fixture
def engine(cat_store):
    return QueryEngine(cat_store)


@pytest.fixture
def isolated_env(monkeypatch, tmp_path):
    """Point configuration at a temporary SQLite database."""
    for name in ["VECTOR_DIMENSION", "PERSISTENCE_PROVIDER", "INDEX_MODE", "INDEX_PARTITIONS",
                 "INDEX_PROBE_COUNT", "INDEX_REBUILD_THRESHOLD", "DEFAULT_METRIC", "DEFAULT_TOP_K",
                 "MAX_SCAN_SIZE"]:
        monkeypatch.delenv(name, raising=False)
    db_path = tmp_path / "data" / "vectors.db"
    monkeypatch.setenv("DB_PATH", str(db_path))
    return db_path
