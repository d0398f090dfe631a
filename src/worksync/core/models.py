# src/worksync/core/models.py

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeVar

_E = TypeVar("_E", bound=StrEnum)


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds (the remote store keeps longs)."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


def _parse_enum(cls: type[_E], raw: object, default: _E) -> _E:
    """
    Accept either the enum name ("IN_PROGRESS") or its value ("in_progress").
    Anything else falls back to `default`.
    """
    if not isinstance(raw, str) or not raw.strip():
        return default
    s = raw.strip()
    try:
        return cls(s.lower())
    except ValueError:
        pass
    try:
        return cls[s.upper()]
    except KeyError:
        return default


class UserRole(StrEnum):
    ADMIN = "admin"
    EMPLOYEE = "employee"

    @classmethod
    def parse(cls, raw: object) -> UserRole:
        return _parse_enum(cls, raw, cls.EMPLOYEE)


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def parse(cls, raw: object) -> TaskPriority:
        return _parse_enum(cls, raw, cls.MEDIUM)


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - pending / in_progress / completed are derived from completion percentage.
    - review / cancelled are only ever set by an explicit admin action.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, raw: object) -> TaskStatus:
        return _parse_enum(cls, raw, cls.PENDING)


@dataclass(frozen=True, slots=True)
class User:
    id: str = ""
    email: str = ""
    name: str = ""
    role: UserRole = UserRole.EMPLOYEE
    profile_image_url: str | None = None
    created_at: int = field(default_factory=now_ms)
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True, slots=True)
class TaskPhase:
    id: str = ""
    task_id: str = ""
    title: str = ""
    description: str = ""
    is_completed: bool = False
    completed_at: int | None = None
    order: int = 0
    is_custom: bool = False
    created_by: str = ""
    created_at: int = field(default_factory=now_ms)


@dataclass(frozen=True, slots=True)
class Task:
    id: str = ""
    title: str = ""
    description: str = ""
    assigned_to: str = ""  # employee id
    assigned_by: str = ""  # admin id
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    # Joined from task_phases at read time; never stored on the task row/document.
    phases: list[TaskPhase] = field(default_factory=list)
    completion_percentage: int = 0
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    deadline: int | None = None
    estimated_hours: int | None = None
    tags: list[str] = field(default_factory=list)
    assigned_to_name: str = ""
    assigned_by_name: str = ""

    def is_overdue(self, now: int | None = None) -> bool:
        if self.deadline is None or self.status == TaskStatus.COMPLETED:
            return False
        return self.deadline < (now_ms() if now is None else now)
