"""
Data models for the Task Manager service.

Stored documents use snake_case keys; the HTTP contract uses camelCase
aliases. Update payloads distinguish "absent" from "present but empty" through
pydantic's ``model_fields_set`` (``model_dump(exclude_unset=True)``).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Return an aware timestamp in UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Interpret naive timestamps as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Role(str, Enum):
    """User roles."""
    ADMIN = "Admin"
    MANAGER = "Manager"
    MEMBER = "Member"


class ProjectStatus(str, Enum):
    """Project lifecycle states."""
    ACTIVE = "Active"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"


class TaskStatus(str, Enum):
    """Task workflow states."""
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class TaskPriority(str, Enum):
    """Task priority levels."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Identity(BaseModel):
    """Verified requester identity produced by the identity context."""
    user_id: str
    role: Role = Role.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


# ---------------------------------------------------------------------------
# Stored entities
# ---------------------------------------------------------------------------

class User(CamelModel):
    """User record. ``password_hash`` never leaves the service."""
    id: str = Field(default_factory=new_id)
    name: str
    email: str
    password_hash: str = ""
    role: Role = Role.MEMBER
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class Project(CamelModel):
    """Project record."""
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    owner: str
    members: List[str] = Field(default_factory=list)
    status: ProjectStatus = ProjectStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("members")
    @classmethod
    def dedupe_members(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class Task(CamelModel):
    """Task record. Times are in minutes."""
    id: str = Field(default_factory=new_id)
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: Optional[str] = None
    project: str
    created_by: str
    time_spent: int = Field(default=0, ge=0)
    estimated_time: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


def to_document(entity: BaseModel) -> Dict[str, Any]:
    """Serialize an entity for the document store."""
    return entity.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------

class ProjectCreate(CamelModel):
    """Create payload. ``name`` is checked by the service."""
    name: Optional[str] = None
    description: Optional[str] = None
    members: Optional[List[str]] = None


class ProjectUpdate(CamelModel):
    """Partial update. Only fields present in the payload are applied."""
    name: Optional[str] = None
    description: Optional[str] = None
    members: Optional[List[str]] = None
    status: Optional[ProjectStatus] = None


class TaskCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[str] = None
    project: str
    time_spent: Optional[int] = Field(default=None, ge=0)
    estimated_time: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None


class TaskUpdate(CamelModel):
    """Partial update. Explicit ``0`` and ``null`` are honoured."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[str] = None
    time_spent: Optional[int] = Field(default=None, ge=0)
    estimated_time: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None


class UserUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class UserSummary(CamelModel):
    """Reference to a user expanded to its public fields."""
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class ProjectSummary(CamelModel):
    id: str
    name: Optional[str] = None


class UserOut(CamelModel):
    """User without credentials."""
    id: str
    name: str
    email: str
    role: Role
    created_at: datetime


class UserProfileOut(CamelModel):
    id: str
    name: str
    email: str
    role: Role


class ProjectOut(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    owner: Optional[UserSummary] = None
    members: List[UserSummary] = Field(default_factory=list)
    status: ProjectStatus
    created_at: datetime


class TaskOut(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assigned_to: Optional[UserSummary] = None
    project: ProjectSummary
    created_by: Optional[UserSummary] = None
    time_spent: int
    estimated_time: Optional[int] = None
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class MessageResponse(BaseModel):
    message: str
