# src/worksync/usecases/tasks.py

from __future__ import annotations

from ..cache.live import LiveQuery
from ..core.errors import ValidationError
from ..core.models import Task, TaskStatus
from ..core.result import Result
from ..repositories.task_repository import TaskRepository


def _require(value: str, message: str) -> None:
    if not value.strip():
        raise ValidationError(message)


def validate_new_task(task: Task) -> None:
    """Raise ValidationError for the first blank required field."""
    _require(task.title, "Task title cannot be empty")
    _require(task.description, "Task description cannot be empty")
    _require(task.assigned_to, "Task must be assigned to someone")
    _require(task.assigned_by, "Task creator must be specified")


class CreateTaskUseCase:
    def __init__(self, task_repository: TaskRepository) -> None:
        self._repo = task_repository

    async def __call__(self, task: Task) -> Result[Task]:
        try:
            validate_new_task(task)
        except ValidationError as e:
            return Result.from_exception(e, "Invalid task")
        return await self._repo.create_task(task)


class UpdateTaskUseCase:
    def __init__(self, task_repository: TaskRepository) -> None:
        self._repo = task_repository

    async def update_task(self, task: Task) -> Result[Task]:
        try:
            _require(task.title, "Task title cannot be empty")
        except ValidationError as e:
            return Result.from_exception(e, "Invalid task")
        return await self._repo.update_task(task)

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Result[None]:
        if not task_id.strip():
            return Result.failure("Task ID cannot be empty")
        return await self._repo.update_task_status(task_id, status)

    async def update_task_progress(self, task_id: str, percentage: int) -> Result[None]:
        if not task_id.strip():
            return Result.failure("Task ID cannot be empty")
        if not 0 <= percentage <= 100:
            return Result.failure("Progress percentage must be between 0 and 100")
        return await self._repo.update_task_progress(task_id, percentage)


class DeleteTaskUseCase:
    def __init__(self, task_repository: TaskRepository) -> None:
        self._repo = task_repository

    async def __call__(self, task_id: str) -> Result[None]:
        if not task_id.strip():
            return Result.failure("Task ID cannot be empty")
        return await self._repo.delete_task(task_id)


class GetTasksUseCase:
    """Read-side passthroughs; every list is a live query over the cache."""

    def __init__(self, task_repository: TaskRepository) -> None:
        self._repo = task_repository

    def all_tasks(self) -> LiveQuery[list[Task]]:
        return self._repo.get_all_tasks()

    def tasks_for_user(self, user_id: str) -> LiveQuery[list[Task]]:
        return self._repo.get_tasks_assigned_to_user(user_id)

    def tasks_created_by_user(self, user_id: str) -> LiveQuery[list[Task]]:
        return self._repo.get_tasks_created_by_user(user_id)

    def tasks_by_status(self, status: TaskStatus) -> LiveQuery[list[Task]]:
        return self._repo.get_tasks_by_status(status)

    def user_tasks_by_status(self, user_id: str, status: TaskStatus) -> LiveQuery[list[Task]]:
        return self._repo.get_user_tasks_by_status(user_id, status)

    def overdue_tasks(self) -> LiveQuery[list[Task]]:
        return self._repo.get_overdue_tasks()

    def task_with_phases(self, task_id: str) -> LiveQuery[Task | None]:
        return self._repo.get_task_with_phases(task_id)
