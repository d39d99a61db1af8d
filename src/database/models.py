"""
SQLAlchemy ORM Models for the incident desk.

Tables:
- profiles:    one row per principal; `role` is the legacy primary role
- user_roles:  explicit role assignments, UNIQUE(user_id, role),
               removed with their profile (ON DELETE CASCADE)
- incidents:   reported security events
- audit_logs:  append-only action log

Primary keys are UUID strings so the same schema runs on SQLite and
PostgreSQL. Incidents and audit entries hold profile ids as plain
references; audit history survives the deletion of the actor.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column, String, Text, DateTime, ForeignKey, Index, UniqueConstraint, JSON
)
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from domain.resources import ResourceType


# Cross-database compatible JSON type
# Uses JSONB on PostgreSQL, JSON on SQLite/others
class JSONB(TypeDecorator):
    """A portable JSONB type that works with both PostgreSQL and SQLite."""
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_JSONB())
        else:
            return dialect.type_descriptor(JSON())


def _uuid() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


Base = declarative_base()


class ProfileRecord(Base):
    """A principal's profile."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    # Legacy primary role; kept in sync with the highest assigned role
    role = Column(String(20), nullable=False, default="employee")

    password_hash = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class UserRoleRecord(Base):
    """One role assignment."""
    __tablename__ = "user_roles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )


class IncidentRecord(Base):
    """A reported security incident."""
    __tablename__ = "incidents"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(40), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="new", index=True)
    incident_date = Column(DateTime(timezone=True), nullable=False)
    attachment_url = Column(Text, nullable=True)

    created_by = Column(String(36), nullable=False, index=True)
    assigned_to = Column(String(36), nullable=True)
    resolution_comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_incidents_created_at", "created_at"),
    )


class AuditLogRecord(Base):
    """One audit log entry. Never updated."""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    target_type = Column(String(40), nullable=False)
    target_id = Column(String(36), nullable=True)
    details = Column(JSONB, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)


MODELS = {
    ResourceType.PROFILE: ProfileRecord,
    ResourceType.USER_ROLE: UserRoleRecord,
    ResourceType.INCIDENT: IncidentRecord,
    ResourceType.AUDIT_ENTRY: AuditLogRecord,
}
