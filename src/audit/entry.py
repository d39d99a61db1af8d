"""
Audit Entry Model

One append-only record of a permission-relevant action: who did it, what
they did, to which resource, plus optional structured details and client
metadata. Entries are never updated or deleted by the application.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
import uuid


@dataclass
class AuditEntry:
    """A single audit log record."""

    # Core identification
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Who (None for system actions)
    user_id: Optional[str] = None

    # What
    action: str = ""
    target_type: str = ""
    target_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    # Request context
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage/serialization."""
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "user_id": self.user_id,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "details": self.details,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }

    def to_row(self) -> Dict[str, Any]:
        """Column values for the audit_logs table."""
        row = self.to_dict()
        row["created_at"] = self.created_at
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AuditEntry":
        """Create from a stored row or a serialized dictionary."""
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            id=str(row.get("id") or uuid.uuid4()),
            created_at=created_at or datetime.now(timezone.utc),
            user_id=row.get("user_id"),
            action=row.get("action", ""),
            target_type=row.get("target_type", ""),
            target_id=row.get("target_id"),
            details=row.get("details"),
            ip_address=row.get("ip_address"),
            user_agent=row.get("user_agent"),
        )

    def get_summary(self) -> str:
        """Generate human-readable summary of the entry."""
        parts = [
            f"[{self.created_at.strftime('%Y-%m-%d %H:%M:%S')}]",
            self.action,
            self.target_type,
        ]
        if self.target_id:
            parts.append(self.target_id)
        parts.append(f"by user:{self.user_id}" if self.user_id else "by system")
        return " ".join(parts)
