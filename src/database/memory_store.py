"""
In-memory data store.

Thread-safe but not persistent. Mirrors the constraints of the SQL schema
(required columns, unique email, unique (user_id, role), role rows removed
with their profile) so tests exercise the same failure modes.
"""

import threading
import uuid
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from audit.entry import AuditEntry
from domain.errors import NotFoundError, ValidationError
from domain.resources import ResourceType

from .store import DataStore, Query


REQUIRED_COLUMNS: Dict[ResourceType, tuple] = {
    ResourceType.PROFILE: ("email", "role"),
    ResourceType.USER_ROLE: ("user_id", "role"),
    ResourceType.INCIDENT: ("title", "description", "category", "status", "incident_date", "created_by"),
    ResourceType.AUDIT_ENTRY: ("action", "target_type"),
}

UNIQUE_COLUMNS: Dict[ResourceType, List[tuple]] = {
    ResourceType.PROFILE: [("email",)],
    ResourceType.USER_ROLE: [("user_id", "role")],
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(column: str):
    def key(row: Dict[str, Any]):
        value = row.get(column)
        return (value is None, value)
    return key


class InMemoryDataStore(DataStore):
    """Dictionary-backed store for testing."""

    def __init__(self):
        self._tables: Dict[ResourceType, Dict[str, Dict[str, Any]]] = {rt: {} for rt in ResourceType}
        self._lock = threading.Lock()

    # =========================================================================
    # READS
    # =========================================================================

    async def query_resource(
        self,
        resource_type: ResourceType,
        query: Optional[Query] = None,
    ) -> List[Dict[str, Any]]:
        query = query or Query()
        with self._lock:
            rows = [deepcopy(r) for r in self._tables[resource_type].values()]

        for column, value in query.filters.items():
            rows = [r for r in rows if r.get(column) == value]

        if query.order_by:
            rows.sort(key=_sort_key(query.order_by), reverse=query.descending)

        if query.limit is not None:
            rows = rows[:query.limit]
        return rows

    async def get_resource(self, resource_type: ResourceType, resource_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._tables[resource_type].get(str(resource_id))
            return deepcopy(row) if row is not None else None

    # =========================================================================
    # WRITES
    # =========================================================================

    async def insert_resource(self, resource_type: ResourceType, payload: Mapping[str, Any]) -> Dict[str, Any]:
        row = dict(payload)
        row["id"] = str(row.get("id") or uuid.uuid4())
        row.setdefault("created_at", _now())
        if resource_type in (ResourceType.PROFILE, ResourceType.INCIDENT):
            row.setdefault("updated_at", row["created_at"])

        for column in REQUIRED_COLUMNS[resource_type]:
            if row.get(column) in (None, ""):
                raise ValidationError(f"{column} is required", field=column)

        with self._lock:
            table = self._tables[resource_type]
            if row["id"] in table:
                raise ValidationError(f"{resource_type.value} {row['id']} already exists", field="id")
            self._check_unique(resource_type, row)
            if resource_type == ResourceType.USER_ROLE and str(row["user_id"]) not in self._tables[ResourceType.PROFILE]:
                raise ValidationError(f"Unknown profile {row['user_id']}", field="user_id")
            table[row["id"]] = row
            return deepcopy(row)

    async def update_resource(
        self,
        resource_type: ResourceType,
        resource_id: str,
        patch: Mapping[str, Any],
    ) -> Dict[str, Any]:
        if "id" in patch:
            raise ValidationError("id cannot be changed", field="id")

        with self._lock:
            table = self._tables[resource_type]
            row = table.get(str(resource_id))
            if row is None:
                raise NotFoundError(resource_type.value, str(resource_id))
            updated = {**row, **patch}
            self._check_unique(resource_type, updated, exclude_id=row["id"])
            table[row["id"]] = updated
            return deepcopy(updated)

    async def delete_resource(self, resource_type: ResourceType, resource_id: str) -> None:
        with self._lock:
            table = self._tables[resource_type]
            if str(resource_id) not in table:
                raise NotFoundError(resource_type.value, str(resource_id))
            del table[str(resource_id)]
            if resource_type == ResourceType.PROFILE:
                # ON DELETE CASCADE
                roles = self._tables[ResourceType.USER_ROLE]
                for role_id in [k for k, r in roles.items() if r.get("user_id") == str(resource_id)]:
                    del roles[role_id]

    async def delete_where(self, resource_type: ResourceType, filters: Mapping[str, Any]) -> int:
        with self._lock:
            table = self._tables[resource_type]
            doomed = [
                key for key, row in table.items()
                if all(row.get(column) == value for column, value in filters.items())
            ]
            for key in doomed:
                del table[key]
            return len(doomed)

    async def append_audit_entry(self, entry: AuditEntry) -> None:
        with self._lock:
            self._tables[ResourceType.AUDIT_ENTRY][entry.id] = entry.to_row()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _check_unique(self, resource_type: ResourceType, row: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
        for columns in UNIQUE_COLUMNS.get(resource_type, []):
            key = tuple(row.get(c) for c in columns)
            for other_id, other in self._tables[resource_type].items():
                if other_id == exclude_id or other_id == row["id"]:
                    continue
                if tuple(other.get(c) for c in columns) == key:
                    raise ValidationError(
                        f"Duplicate {resource_type.value}: {', '.join(columns)} must be unique",
                        field=columns[-1],
                    )

    def clear(self) -> None:
        """Clear all tables (for testing)."""
        with self._lock:
            for table in self._tables.values():
                table.clear()

    def count(self, resource_type: ResourceType) -> int:
        """Get row count for a table."""
        with self._lock:
            return len(self._tables[resource_type])
