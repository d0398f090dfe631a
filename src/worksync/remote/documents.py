# src/worksync/remote/documents.py

from __future__ import annotations

"""
Remote document layout and field-map codecs.

Layout:
- users/{uid}
- tasks/{task_id}
- tasks/{task_id}/phases/{phase_id}

Enums are written by name ("IN_PROGRESS"), timestamps as epoch-ms ints.
Decoding never trusts the remote: wrong types fall back to defaults.
"""

from typing import Any

from ..core.models import Task, TaskPhase, TaskPriority, TaskStatus, User, UserRole
from ..core.ports import Document

USERS = "users"
TASKS = "tasks"
PHASES = "phases"


def phases_path(task_id: str) -> str:
    return f"{TASKS}/{task_id}/{PHASES}"


def _str(v: Any, default: str = "") -> str:
    return v if isinstance(v, str) else default


def _opt_str(v: Any) -> str | None:
    return v if isinstance(v, str) and v else None


def _int(v: Any, default: int = 0) -> int:
    # bool is an int subclass; a boolean in a numeric field is garbage.
    if isinstance(v, bool):
        return default
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v)
    return default


def _opt_int(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return int(v)
    return None


def _bool(v: Any, default: bool = False) -> bool:
    return v if isinstance(v, bool) else default


def _str_list(v: Any) -> list[str]:
    if not isinstance(v, list):
        return []
    return [x for x in v if isinstance(x, str)]


# ---- tasks ----


def task_to_document(task: Task) -> Document:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "assignedTo": task.assigned_to,
        "assignedBy": task.assigned_by,
        "priority": task.priority.name,
        "status": task.status.name,
        "completionPercentage": int(task.completion_percentage),
        "createdAt": int(task.created_at),
        "updatedAt": int(task.updated_at),
        "deadline": task.deadline,
        "estimatedHours": task.estimated_hours,
        "tags": list(task.tags),
        "assignedToName": task.assigned_to_name,
        "assignedByName": task.assigned_by_name,
    }


def task_from_document(doc_id: str, data: Document) -> Task:
    """Build a Task from a remote document; the document id wins over any 'id' field."""
    return Task(
        id=doc_id,
        title=_str(data.get("title")),
        description=_str(data.get("description")),
        assigned_to=_str(data.get("assignedTo")),
        assigned_by=_str(data.get("assignedBy")),
        priority=TaskPriority.parse(data.get("priority")),
        status=TaskStatus.parse(data.get("status")),
        completion_percentage=max(0, min(100, _int(data.get("completionPercentage")))),
        created_at=_int(data.get("createdAt")),
        updated_at=_int(data.get("updatedAt")),
        deadline=_opt_int(data.get("deadline")),
        estimated_hours=_opt_int(data.get("estimatedHours")),
        tags=_str_list(data.get("tags")),
        assigned_to_name=_str(data.get("assignedToName")),
        assigned_by_name=_str(data.get("assignedByName")),
    )


# ---- phases ----


def phase_to_document(phase: TaskPhase) -> Document:
    return {
        "id": phase.id,
        "taskId": phase.task_id,
        "title": phase.title,
        "description": phase.description,
        "isCompleted": bool(phase.is_completed),
        "completedAt": phase.completed_at,
        "order": int(phase.order),
        "isCustom": bool(phase.is_custom),
        "createdBy": phase.created_by,
        "createdAt": int(phase.created_at),
    }


def phase_from_document(task_id: str, doc_id: str, data: Document) -> TaskPhase:
    return TaskPhase(
        id=doc_id,
        task_id=task_id,
        title=_str(data.get("title")),
        description=_str(data.get("description")),
        is_completed=_bool(data.get("isCompleted")),
        completed_at=_opt_int(data.get("completedAt")),
        order=_int(data.get("order")),
        is_custom=_bool(data.get("isCustom")),
        created_by=_str(data.get("createdBy")),
        created_at=_int(data.get("createdAt")),
    )


# ---- users ----


def user_to_document(user: User) -> Document:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.name,
        "profileImageUrl": user.profile_image_url,
        "createdAt": int(user.created_at),
        "isActive": bool(user.is_active),
    }


def user_from_document(doc_id: str, data: Document) -> User:
    return User(
        id=_str(data.get("id")) or doc_id,
        email=_str(data.get("email")),
        name=_str(data.get("name")),
        role=UserRole.parse(data.get("role")),
        profile_image_url=_opt_str(data.get("profileImageUrl")),
        created_at=_int(data.get("createdAt")),
        is_active=_bool(data.get("isActive"), default=True),
    )
