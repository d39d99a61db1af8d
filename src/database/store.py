"""
Data Store Interface

The narrow contract the application uses to reach persistence. Rows are
plain dictionaries keyed by column name. Implementations:

    InMemoryDataStore    - tests and local development
    SQLAlchemyDataStore  - SQLite (aiosqlite) or PostgreSQL (asyncpg)

The store does not evaluate the access policy. Callers authorize first and
push row-level filters down through Query.filters.

Reads may be retried on transient StoreError (query_with_retry,
get_with_retry). Writes are never retried.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from audit.entry import AuditEntry
from domain.errors import StoreError
from domain.resources import ResourceType
from resilience.retry import RetryConfig, RetryExhausted, async_retry


@dataclass
class Query:
    """
    Filter and ordering for query_resource.

    Attributes:
        filters: Column equality predicates, AND-ed together.
        order_by: Column to sort on.
        descending: Sort direction.
        limit: Maximum rows returned.
    """
    filters: Dict[str, Any] = field(default_factory=dict)
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None


class DataStore(ABC):
    """Abstract base class for store backends."""

    @abstractmethod
    async def query_resource(
        self,
        resource_type: ResourceType,
        query: Optional[Query] = None,
    ) -> List[Dict[str, Any]]:
        """Return rows matching query."""
        pass

    @abstractmethod
    async def get_resource(self, resource_type: ResourceType, resource_id: str) -> Optional[Dict[str, Any]]:
        """Return one row by id, or None."""
        pass

    @abstractmethod
    async def insert_resource(self, resource_type: ResourceType, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Insert a row and return it as stored.

        Raises:
            ValidationError: unique or required-column violation
            StoreError: store unavailable
        """
        pass

    @abstractmethod
    async def update_resource(
        self,
        resource_type: ResourceType,
        resource_id: str,
        patch: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """
        Apply patch to a row and return the updated row.

        Raises:
            NotFoundError: no row with that id
        """
        pass

    @abstractmethod
    async def delete_resource(self, resource_type: ResourceType, resource_id: str) -> None:
        """
        Delete a row by id.

        Raises:
            NotFoundError: no row with that id
        """
        pass

    @abstractmethod
    async def delete_where(self, resource_type: ResourceType, filters: Mapping[str, Any]) -> int:
        """Delete every row matching filters. Returns the number removed."""
        pass

    @abstractmethod
    async def append_audit_entry(self, entry: AuditEntry) -> None:
        """
        Append an audit entry.

        Raises:
            AuditAppendError: the entry could not be written
        """
        pass


# =============================================================================
# RETRYING READS
# =============================================================================

def read_retry_config(base: Optional[RetryConfig] = None) -> RetryConfig:
    """Retry config restricted to transient store failures."""
    base = base or RetryConfig()
    return RetryConfig(
        max_attempts=base.max_attempts,
        base_delay=base.base_delay,
        max_delay=base.max_delay,
        backoff_multiplier=base.backoff_multiplier,
        jitter=base.jitter,
        retryable_exceptions=(StoreError,),
        on_retry=base.on_retry,
    )


async def query_with_retry(
    store: DataStore,
    resource_type: ResourceType,
    query: Optional[Query] = None,
    retry_config: Optional[RetryConfig] = None,
) -> List[Dict[str, Any]]:
    """
    query_resource with bounded exponential backoff on StoreError.

    Raises:
        StoreError: still failing after the last attempt
    """
    reader = async_retry(config=read_retry_config(retry_config))(store.query_resource)
    try:
        return await reader(resource_type, query)
    except RetryExhausted as exc:
        raise StoreError(
            f"Reading {resource_type.value} failed after {exc.attempts} attempts",
            {"attempts": exc.attempts},
        ) from exc.last_exception


async def get_with_retry(
    store: DataStore,
    resource_type: ResourceType,
    resource_id: str,
    retry_config: Optional[RetryConfig] = None,
) -> Optional[Dict[str, Any]]:
    """get_resource with bounded exponential backoff on StoreError."""
    reader = async_retry(config=read_retry_config(retry_config))(store.get_resource)
    try:
        return await reader(resource_type, resource_id)
    except RetryExhausted as exc:
        raise StoreError(
            f"Reading {resource_type.value} {resource_id} failed after {exc.attempts} attempts",
            {"attempts": exc.attempts},
        ) from exc.last_exception
