"""
Snapshot providers for the report engine.

- SnapshotRepository: Read interface every provider implements
- InMemorySnapshotRepository: Plain-list provider for embedding and tests
- DuckDBSnapshotRepository: Provider over a DuckDB file, with a bulk loader
"""
from core.repositories.base import SnapshotRepository
from core.repositories.memory import InMemorySnapshotRepository
from core.repositories.duckdb_repo import DuckDBSnapshotRepository

__all__ = [
    "SnapshotRepository",
    "InMemorySnapshotRepository",
    "DuckDBSnapshotRepository",
]
