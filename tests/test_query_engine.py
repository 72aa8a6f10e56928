"""
Query engine - validation, ranking, join back to the store and the cat scenario.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from simstore.core.errors import DimensionMismatchError, InvalidArgumentError
from simstore.core.query_engine import QueryEngine, QueryOptions, build_options
from simstore.core.record_store import RecordStore
from simstore.samples import SAMPLE_QUERY
from simstore.vector.index import SimilarityIndex
from simstore.vector.metrics import EuclideanMetric
from simstore.vector.types import QueryResult


def test_cat_scenario_top_two(engine):
    """The sample query finds Whiskers and Mittens, tied at distance 0.1 and ordered by key."""
    results = engine.find_nearest(SAMPLE_QUERY, k=2, metric="euclidean")

    assert [(result.key, result.name) for result in results] == [("cat:1", "Whiskers"), ("cat:2", "Mittens")]
    for result in results:
        assert result.score == pytest.approx(0.1, abs=1e-9)
        assert result.metadata == {"species": "cat"}


def test_results_are_query_result_triples(engine):
    result = engine.find_nearest(SAMPLE_QUERY, k=1)[0]
    assert isinstance(result, QueryResult)
    assert result.key == "cat:1"


def test_farthest_cat(engine):
    """Shadow is the least similar cat to the sample query."""
    results = engine.find_nearest(SAMPLE_QUERY, k=5)
    assert [result.name for result in results][-1] == "Shadow"
    assert [result.name for result in results][2] == "Alpha"


def test_exact_mode_matches_brute_force_sort():
    """find_nearest returns the same keys as sorting all N distances, for every k <= N."""
    rng = np.random.default_rng(11)
    store = RecordStore(dimension=6, index=SimilarityIndex(dimension=6))
    vectors = {}
    for i in range(40):
        vectors[f"r{i:02d}"] = rng.uniform(size=6)
        store.put(f"r{i:02d}", f"record {i}", vectors[f"r{i:02d}"])
    engine = QueryEngine(store)
    query = rng.uniform(size=6)
    metric = EuclideanMetric()
    expected = [key for _, key in sorted((metric.distance(query, v), key) for key, v in vectors.items())]

    for k in (1, 7, 40):
        assert [result.key for result in engine.find_nearest(query, k=k)] == expected[:k]


def test_identical_vectors_in_key_order(store):
    """Records with identical vectors appear in lexicographic key order."""
    for key in ["zeta", "alpha", "mid"]:
        store.put(key, key.title(), [0.5, 0.5, 0.5, 0.5])
    engine = QueryEngine(store)

    results = engine.find_nearest([0.0, 0.0, 0.0, 0.0], k=3)

    assert [result.key for result in results] == ["alpha", "mid", "zeta"]


def test_empty_store_returns_empty(store):
    """Querying with no records returns an empty sequence, not an error."""
    assert QueryEngine(store).find_nearest(SAMPLE_QUERY, k=3) == []


@pytest.mark.parametrize("k", [0, -1])
def test_k_must_be_positive(engine, k):
    with pytest.raises(InvalidArgumentError):
        engine.find_nearest(SAMPLE_QUERY, k=k)


def test_empty_query_vector(engine):
    with pytest.raises(InvalidArgumentError):
        engine.find_nearest([], k=1)


def test_query_dimension_mismatch(engine):
    """A wrong-length query is a dimension mismatch, which is also an invalid argument."""
    with pytest.raises(DimensionMismatchError):
        engine.find_nearest([0.1, 0.2, 0.3], k=1)
    with pytest.raises(InvalidArgumentError):
        engine.find_nearest([0.1, 0.2, 0.3, 0.4, 0.5], k=1)


def test_validation_happens_before_index_lookup(cat_store):
    index = MagicMock()
    engine = QueryEngine(cat_store, index=index)
    with pytest.raises(InvalidArgumentError):
        engine.find_nearest(SAMPLE_QUERY, k=0)
    index.query.assert_not_called()


def test_deleted_record_is_skipped(cat_store):
    """An index hit whose record has since been deleted is silently dropped."""
    index = MagicMock()
    index.query.return_value = [("cat:2", 0.1), ("cat:gone", 0.1), ("cat:1", 0.1)]
    engine = QueryEngine(cat_store, index=index)

    results = engine.find_nearest(SAMPLE_QUERY, k=3)

    assert [result.key for result in results] == ["cat:2", "cat:1"]


def test_deleted_record_never_returned(engine, cat_store):
    cat_store.delete("cat:2")
    results = engine.find_nearest(SAMPLE_QUERY, k=5)
    assert "cat:2" not in [result.key for result in results]
    assert len(results) == 4


def test_updated_record_uses_new_name_and_vector(engine, cat_store):
    cat_store.put("cat:3", "Shadow II", SAMPLE_QUERY)
    result = engine.find_nearest(SAMPLE_QUERY, k=1)[0]
    assert result.key == "cat:3"
    assert result.name == "Shadow II"
    assert result.score == 0.0


def test_options_drive_the_query(engine):
    results = engine.find_nearest(SAMPLE_QUERY, options=QueryOptions(k=3, metric="cosine"))
    assert len(results) == 3


def test_explicit_arguments_override_options(engine):
    options = QueryOptions(k=4, metric="dot")
    results = engine.find_nearest(SAMPLE_QUERY, k=1, metric="euclidean", options=options)
    assert len(results) == 1
    assert results[0].score == pytest.approx(0.1, abs=1e-9)


def test_dot_product_ranking(engine):
    """Dot-product distance favours the largest inner product."""
    results = engine.find_nearest([1.0, 0.0, 0.0, 0.0], k=1, metric="dot")
    assert results[0].name == "Shadow"
    assert results[0].score == pytest.approx(-0.9)


def test_unknown_metric(engine):
    with pytest.raises(InvalidArgumentError):
        engine.find_nearest(SAMPLE_QUERY, k=1, metric="manhattan")


def test_approximate_option_is_passed_to_index(cat_store):
    index = MagicMock()
    index.query.return_value = []
    engine = QueryEngine(cat_store, index=index)

    engine.find_nearest(SAMPLE_QUERY, options=QueryOptions(k=2, approximate=True, probe_count=3))

    _, kwargs = index.query.call_args
    assert kwargs == {"approximate": True, "probe_count": 3}


def test_approximate_query_on_partitioned_index():
    """Approximate queries on a trained index return the query's own cluster."""
    rng = np.random.default_rng(5)
    index = SimilarityIndex(dimension=2, mode="approximate", n_partitions=2)
    store = RecordStore(dimension=2, index=index)
    for i in range(20):
        store.put(f"left{i:02d}", "left", rng.normal(loc=-10.0, scale=0.3, size=2))
        store.put(f"right{i:02d}", "right", rng.normal(loc=10.0, scale=0.3, size=2))
    engine = QueryEngine(store)

    results = engine.find_nearest([10.0, 10.0], options=QueryOptions(k=25, approximate=True, probe_count=1))

    assert index.is_partitioned
    assert len(results) == 20
    assert {result.name for result in results} == {"right"}


def test_build_options_rejects_bad_values():
    with pytest.raises(InvalidArgumentError):
        build_options(k=0)
    with pytest.raises(InvalidArgumentError):
        build_options(probe_count=0)
    with pytest.raises(InvalidArgumentError):
        build_options(metric="hamming")
    with pytest.raises(InvalidArgumentError):
        build_options(limit=3)


def test_distances_from_scans_every_record(engine):
    """The full scan scores every record in scan order."""
    scanned = list(engine.distances_from(SAMPLE_QUERY))

    assert [record.name for record, _ in scanned] == ["Whiskers", "Mittens", "Shadow", "Alpha", "Yoda"]
    assert scanned[0][1] == pytest.approx(0.1)
    assert scanned[2][1] == pytest.approx(np.linalg.norm(np.array([0.9, 0.2, 0.1, 0.3]) - SAMPLE_QUERY))


def test_distances_from_validates_eagerly(engine):
    with pytest.raises(DimensionMismatchError):
        engine.distances_from([0.1, 0.2])


def test_engine_requires_index():
    with pytest.raises(InvalidArgumentError):
        QueryEngine(RecordStore(dimension=2))
