"""Database package for PDP Latency Lab."""

from persistence.models import Base, BenchmarkResult
from persistence.session import (
    default_database_url,
    init_db,
    make_engine,
    make_session_factory,
    open_session,
)
from persistence.crud import delete_run, get_results, get_run_ids, save_aggregates

__all__ = [
    "Base",
    "BenchmarkResult",
    "default_database_url",
    "init_db",
    "make_engine",
    "make_session_factory",
    "open_session",
    "delete_run",
    "get_results",
    "get_run_ids",
    "save_aggregates",
]
