"""
SQLAlchemy data store.

Async implementation of DataStore over the ORM models in database.models.
Runs on SQLite (aiosqlite) for development and PostgreSQL (asyncpg) in
production.

Error mapping:
    IntegrityError             -> ValidationError (unique / not-null / FK)
    other SQLAlchemy failures  -> StoreError (transient, reads are retried)
    any audit append failure   -> AuditAppendError
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from audit.entry import AuditEntry
from config.database import DatabaseSettings
from domain.errors import (
    AuditAppendError,
    IncidentDeskError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from domain.resources import ResourceType

from .async_engine import check_database_connection, create_engine, get_session_factory, init_database
from .models import MODELS
from .store import DataStore, Query

logger = logging.getLogger(__name__)


def _as_utc(value: Any) -> Any:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyDataStore(DataStore):
    """DataStore backed by an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._session_factory = get_session_factory(engine)

    @classmethod
    def from_settings(cls, settings: Optional[DatabaseSettings] = None) -> "SQLAlchemyDataStore":
        return cls(create_engine(settings))

    async def initialize(self) -> None:
        """Create missing tables."""
        await init_database(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()

    async def ping(self) -> bool:
        return await check_database_connection(self._engine)

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            raise ValidationError(f"Constraint violation: {e.orig}") from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database error: {e}")
            raise StoreError(f"Database unavailable: {e.__class__.__name__}") from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # =========================================================================
    # ROW HELPERS
    # =========================================================================

    @staticmethod
    def _to_row(obj) -> Dict[str, Any]:
        return {c.name: _as_utc(getattr(obj, c.name)) for c in obj.__table__.columns}

    @staticmethod
    def _column(model, name: str):
        if name not in model.__table__.columns:
            raise ValidationError(f"Unknown column {name!r} for {model.__tablename__}", field=name)
        return getattr(model, name)

    def _values(self, model, payload: Mapping[str, Any]) -> Dict[str, Any]:
        for name in payload:
            self._column(model, name)
        return dict(payload)

    # =========================================================================
    # READS
    # =========================================================================

    async def query_resource(
        self,
        resource_type: ResourceType,
        query: Optional[Query] = None,
    ) -> List[Dict[str, Any]]:
        query = query or Query()
        model = MODELS[resource_type]

        stmt = select(model)
        for name, value in query.filters.items():
            stmt = stmt.where(self._column(model, name) == value)
        if query.order_by:
            column = self._column(model, query.order_by)
            stmt = stmt.order_by(column.desc() if query.descending else column.asc())
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        async with self._session() as session:
            result = await session.execute(stmt)
            return [self._to_row(obj) for obj in result.scalars().all()]

    async def get_resource(self, resource_type: ResourceType, resource_id: str) -> Optional[Dict[str, Any]]:
        async with self._session() as session:
            obj = await session.get(MODELS[resource_type], str(resource_id))
            return self._to_row(obj) if obj is not None else None

    # =========================================================================
    # WRITES
    # =========================================================================

    async def insert_resource(self, resource_type: ResourceType, payload: Mapping[str, Any]) -> Dict[str, Any]:
        model = MODELS[resource_type]
        values = self._values(model, payload)
        if values.get("id") is None:
            values.pop("id", None)

        async with self._session() as session:
            obj = model(**values)
            session.add(obj)
            await session.flush()
            return self._to_row(obj)

    async def update_resource(
        self,
        resource_type: ResourceType,
        resource_id: str,
        patch: Mapping[str, Any],
    ) -> Dict[str, Any]:
        if "id" in patch:
            raise ValidationError("id cannot be changed", field="id")
        model = MODELS[resource_type]
        values = self._values(model, patch)

        async with self._session() as session:
            obj = await session.get(model, str(resource_id))
            if obj is None:
                raise NotFoundError(resource_type.value, str(resource_id))
            for name, value in values.items():
                setattr(obj, name, value)
            await session.flush()
            return self._to_row(obj)

    async def delete_resource(self, resource_type: ResourceType, resource_id: str) -> None:
        async with self._session() as session:
            obj = await session.get(MODELS[resource_type], str(resource_id))
            if obj is None:
                raise NotFoundError(resource_type.value, str(resource_id))
            await session.delete(obj)

    async def delete_where(self, resource_type: ResourceType, filters: Mapping[str, Any]) -> int:
        model = MODELS[resource_type]
        stmt = delete(model)
        for name, value in filters.items():
            stmt = stmt.where(self._column(model, name) == value)

        async with self._session() as session:
            result = await session.execute(stmt)
            return result.rowcount or 0

    async def append_audit_entry(self, entry: AuditEntry) -> None:
        try:
            await self.insert_resource(ResourceType.AUDIT_ENTRY, entry.to_row())
        except IncidentDeskError as e:
            raise AuditAppendError(f"Could not append audit entry {entry.action}: {e.message}") from e
