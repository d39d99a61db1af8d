"""
Incident domain model.

An incident is a security event reported by any principal. Its creator
(created_by) is fixed at creation time; status, resolution comment and
assignment are changed later during triage.

Lifecycle:
    new -> in_progress -> resolved
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .errors import ValidationError


class IncidentStatus(str, Enum):
    """Triage status of an incident."""
    NEW = "new"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class IncidentCategory(str, Enum):
    """Kind of security event being reported."""
    PHISHING = "phishing"
    MALWARE = "malware"
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    DATA_LOSS = "data_loss"
    OTHER = "other"


# Fields a triage update may touch. Everything else is fixed after creation.
MUTABLE_FIELDS = frozenset({"status", "resolution_comment", "assigned_to", "updated_at"})
IMMUTABLE_FIELDS = frozenset({"id", "created_by", "created_at"})

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 10000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_status(value: Any) -> IncidentStatus:
    """Parse an incident status, rejecting unknown values."""
    if isinstance(value, IncidentStatus):
        return value
    try:
        return IncidentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in IncidentStatus)
        raise ValidationError(f"Invalid status {value!r}; expected one of: {allowed}", field="status", value=value)


def parse_category(value: Any) -> IncidentCategory:
    """Parse an incident category, rejecting unknown values."""
    if isinstance(value, IncidentCategory):
        return value
    try:
        return IncidentCategory(value)
    except ValueError:
        allowed = ", ".join(c.value for c in IncidentCategory)
        raise ValidationError(f"Invalid category {value!r}; expected one of: {allowed}", field="category", value=value)


def _parse_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"{field_name} must be an ISO-8601 timestamp", field=field_name, value=value)
    else:
        raise ValidationError(f"{field_name} is required", field=field_name, value=value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _required_text(payload: Mapping[str, Any], field_name: str, max_length: int) -> str:
    value = payload.get(field_name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name, value=value)
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(
            f"{field_name} exceeds maximum length of {max_length}",
            field=field_name,
        )
    return value


def build_incident_payload(payload: Mapping[str, Any], created_by: str) -> Dict[str, Any]:
    """
    Validate a submission and build the row to insert.

    created_by always comes from the acting principal; any client-supplied
    value in the payload is ignored.
    """
    title = _required_text(payload, "title", TITLE_MAX_LENGTH)
    description = _required_text(payload, "description", DESCRIPTION_MAX_LENGTH)
    category = parse_category(payload.get("category"))
    incident_date = _parse_datetime(payload.get("incident_date"), "incident_date")

    attachment_url = payload.get("attachment_url")
    if attachment_url is not None and not isinstance(attachment_url, str):
        raise ValidationError("attachment_url must be a string", field="attachment_url", value=attachment_url)

    now = utcnow()
    return {
        "title": title,
        "description": description,
        "category": category.value,
        "status": IncidentStatus.NEW.value,
        "incident_date": incident_date,
        "created_by": created_by,
        "assigned_to": None,
        "resolution_comment": None,
        "attachment_url": attachment_url or None,
        "created_at": now,
        "updated_at": now,
    }


@dataclass
class Incident:
    """A stored incident."""
    id: str
    title: str
    description: str
    category: IncidentCategory
    status: IncidentStatus
    incident_date: datetime
    created_by: str
    assigned_to: Optional[str] = None
    resolution_comment: Optional[str] = None
    attachment_url: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Incident":
        return cls(
            id=str(row["id"]),
            title=row["title"],
            description=row["description"],
            category=IncidentCategory(row["category"]),
            status=IncidentStatus(row["status"]),
            incident_date=row["incident_date"],
            created_by=str(row["created_by"]),
            assigned_to=row.get("assigned_to"),
            resolution_comment=row.get("resolution_comment"),
            attachment_url=row.get("attachment_url"),
            created_at=row.get("created_at") or utcnow(),
            updated_at=row.get("updated_at") or utcnow(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "status": self.status.value,
            "incident_date": self.incident_date.isoformat(),
            "created_by": self.created_by,
            "assigned_to": self.assigned_to,
            "resolution_comment": self.resolution_comment,
            "attachment_url": self.attachment_url,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
