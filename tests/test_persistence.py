"""
Persistence collaborators - in-memory and SQLite implementations of the same contract.
"""

import pytest

from simstore.core.db import get_db, health_check, init_db
from simstore.core.persistence import InMemoryPersistence, IPersistence, SqlitePersistence
from simstore.core.record_store import RecordStore
from simstore.samples import load_sample_cats
from simstore.vector.index import SimilarityIndex


@pytest.fixture(params=["memory", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        return InMemoryPersistence()
    return SqlitePersistence(str(tmp_path / "nested" / "records.db"))


def test_implements_interface(backend):
    assert isinstance(backend, IPersistence)


def test_write_read_delete(backend):
    backend.write("cat:2", '{"payload": 2}')
    backend.write("cat:1", '{"payload": 1}')

    assert backend.read_all() == [("cat:1", '{"payload": 1}'), ("cat:2", '{"payload": 2}')]

    backend.delete("cat:1")
    assert backend.read_all() == [("cat:2", '{"payload": 2}')]


def test_write_overwrites(backend):
    backend.write("cat:1", "first")
    backend.write("cat:1", "second")
    assert backend.read_all() == [("cat:1", "second")]


def test_delete_absent_key_is_not_an_error(backend):
    backend.delete("cat:404")
    assert backend.read_all() == []


def test_clear(backend):
    backend.write("cat:1", "a")
    backend.write("cat:2", "b")
    backend.clear()
    assert backend.read_all() == []


def test_sqlite_survives_reopen(tmp_path):
    """Records written through one SqlitePersistence are visible to another on the same file."""
    db_path = str(tmp_path / "records.db")
    store = RecordStore(dimension=4, persistence=SqlitePersistence(db_path), index=SimilarityIndex(dimension=4))
    load_sample_cats(store)

    reopened = SqlitePersistence(db_path)
    reloaded = RecordStore(dimension=4, persistence=reopened, index=SimilarityIndex(dimension=4))

    assert reopened.count() == 5
    assert reloaded.load() == 5
    assert reloaded.get("cat:4").name == "Alpha"
    assert reloaded.get("cat:4").vector.tolist() == [0.5, 0.2, 0.3, 0.3]


def test_db_helpers(tmp_path):
    db_path = str(tmp_path / "sub" / "check.db")
    init_db(db_path)

    assert health_check(db_path) is True
    with get_db(db_path) as conn:
        tables = [row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")]
    assert "records" in tables
