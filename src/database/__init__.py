"""
Persistence layer for the incident desk.

This module provides:
- The DataStore contract and retrying read helpers
- An in-memory store for tests and local development
- An async SQLAlchemy store (SQLite / PostgreSQL)
- Startup seeding and legacy role backfill
"""

from .store import (
    DataStore,
    Query,
    query_with_retry,
    get_with_retry,
)
from .memory_store import InMemoryDataStore
from .sql_store import SQLAlchemyDataStore
from .seed import bootstrap_admin, backfill_role_assignments

__all__ = [
    "DataStore",
    "Query",
    "query_with_retry",
    "get_with_retry",
    "InMemoryDataStore",
    "SQLAlchemyDataStore",
    "bootstrap_admin",
    "backfill_role_assignments",
]
