"""
Configuration - environment variables with defaults.
Factory functions read the environment at call time so tests can override it.

  VECTOR_DIMENSION         vector length fixed at store creation (4)
  DB_PATH                  SQLite file for sqlite persistence (./data/vectors.db)
  PERSISTENCE_PROVIDER     sqlite|memory|none (sqlite)
  INDEX_MODE               exact|approximate (exact)
  INDEX_PARTITIONS         partitions in approximate mode (unset: sqrt(N) at training time)
  INDEX_PROBE_COUNT        partitions probed per query (unset: ~10% of partitions)
  INDEX_REBUILD_THRESHOLD  fraction of inserts since training before retraining (0.2)
  DEFAULT_METRIC           euclidean|cosine|dot (euclidean)
  DEFAULT_TOP_K            results per query (5)
  MAX_SCAN_SIZE            cap on records per full scan (unset: unbounded)
  DEBUG                    true enables debug logging (false)
"""

import os
from typing import List, Optional


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return int(value)


def debug_enabled() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_dimension() -> int:
    return int(os.getenv("VECTOR_DIMENSION", "4"))


def get_db_path() -> str:
    return os.getenv("DB_PATH", "./data/vectors.db")


def get_persistence():
    """Get configured persistence collaborator. Returns None when persistence is disabled."""
    provider = os.getenv("PERSISTENCE_PROVIDER", "sqlite")

    if provider == "sqlite":
        from .persistence import SqlitePersistence
        return SqlitePersistence(get_db_path())
    elif provider == "memory":
        from .persistence import InMemoryPersistence
        return InMemoryPersistence()
    elif provider == "none":
        return None
    else:
        from .errors import InvalidArgumentError
        raise InvalidArgumentError(f"Invalid PERSISTENCE_PROVIDER: {provider}")


def get_similarity_index():
    """Get a similarity index configured from the environment."""
    from ..vector.index import SimilarityIndex
    return SimilarityIndex(
        dimension=get_dimension(),
        mode=os.getenv("INDEX_MODE", "exact"),
        n_partitions=_optional_int("INDEX_PARTITIONS"),
        rebuild_threshold=float(os.getenv("INDEX_REBUILD_THRESHOLD", "0.2")),
    )


def get_record_store(load: bool = True):
    """Get a record store wired to the configured persistence and index.

    With ``load`` the store is populated from persistence before it is returned.
    """
    from .record_store import RecordStore
    store = RecordStore(
        dimension=get_dimension(),
        persistence=get_persistence(),
        index=get_similarity_index(),
        max_scan_size=_optional_int("MAX_SCAN_SIZE"),
    )
    if load:
        store.load()
    return store


def get_query_options(**overrides):
    """Default query options from the environment, with explicit overrides applied."""
    from .query_engine import build_options
    values = {
        "metric": os.getenv("DEFAULT_METRIC", "euclidean"),
        "k": int(os.getenv("DEFAULT_TOP_K", "5")),
        "approximate": os.getenv("INDEX_MODE", "exact") == "approximate",
        "probe_count": _optional_int("INDEX_PROBE_COUNT"),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return build_options(**values)


def get_query_engine(store=None):
    """Get a query engine over ``store`` (or a freshly configured store)."""
    from .query_engine import QueryEngine
    if store is None:
        store = get_record_store()
    return QueryEngine(store, default_options=get_query_options())


def validate_index_config() -> List[str]:
    """Validate store/index configuration and return any issues."""
    issues = []

    try:
        if get_dimension() < 1:
            issues.append("VECTOR_DIMENSION must be >= 1")
    except ValueError:
        issues.append(f"Invalid VECTOR_DIMENSION: {os.getenv('VECTOR_DIMENSION')}")

    provider = os.getenv("PERSISTENCE_PROVIDER", "sqlite")
    if provider not in ["sqlite", "memory", "none"]:
        issues.append(f"Invalid PERSISTENCE_PROVIDER: {provider}")
    if provider == "sqlite" and get_db_path() == ":memory:":
        issues.append("DB_PATH=:memory: does not persist across connections; use PERSISTENCE_PROVIDER=memory")

    mode = os.getenv("INDEX_MODE", "exact")
    if mode not in ["exact", "approximate"]:
        issues.append(f"Invalid INDEX_MODE: {mode}")

    metric = os.getenv("DEFAULT_METRIC", "euclidean")
    if metric not in ["euclidean", "cosine", "dot"]:
        issues.append(f"Invalid DEFAULT_METRIC: {metric}")

    for name in ["INDEX_PARTITIONS", "INDEX_PROBE_COUNT", "MAX_SCAN_SIZE", "DEFAULT_TOP_K"]:
        try:
            value = _optional_int(name)
        except ValueError:
            issues.append(f"Invalid {name}: {os.getenv(name)}")
            continue
        if value is not None and value < 1:
            issues.append(f"{name} must be >= 1")

    try:
        if float(os.getenv("INDEX_REBUILD_THRESHOLD", "0.2")) < 0:
            issues.append("INDEX_REBUILD_THRESHOLD must be >= 0")
    except ValueError:
        issues.append(f"Invalid INDEX_REBUILD_THRESHOLD: {os.getenv('INDEX_REBUILD_THRESHOLD')}")

    return issues
