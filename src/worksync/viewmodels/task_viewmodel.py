# src/worksync/viewmodels/task_viewmodel.py

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ..cache.live import LiveQuery
from ..core.errors import AuthError
from ..core.models import Task, TaskPhase, TaskPriority, TaskStatus, now_ms
from ..core.progress import next_phase_order
from ..core.result import Result
from ..core.session import Session
from ..repositories.task_repository import TaskRepository
from ..usecases.tasks import CreateTaskUseCase, DeleteTaskUseCase, GetTasksUseCase, UpdateTaskUseCase
from .base import StateFlow, ViewModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TaskUiState:
    tasks: list[Task] = field(default_factory=list)
    selected_task: Task | None = None
    is_loading: bool = False
    error_message: str | None = None
    success_message: str | None = None
    filter_status: TaskStatus | None = None


class TaskViewModel(ViewModel):
    def __init__(
        self,
        create_task_use_case: CreateTaskUseCase,
        update_task_use_case: UpdateTaskUseCase,
        delete_task_use_case: DeleteTaskUseCase,
        get_tasks_use_case: GetTasksUseCase,
        task_repository: TaskRepository,
        session: Session,
    ) -> None:
        super().__init__()
        self._create = create_task_use_case
        self._update = update_task_use_case
        self._delete = delete_task_use_case
        self._get = get_tasks_use_case
        self._repo = task_repository
        self._session = session
        self.state: StateFlow[TaskUiState] = StateFlow(TaskUiState())

    def _set(self, **changes) -> None:
        self.state.update(lambda s: dataclasses.replace(s, **changes))

    def _finish(self, res: Result, success: str, failure: str) -> bool:
        if res.ok:
            self._set(is_loading=False, success_message=success)
            return True
        self._set(is_loading=False, error_message=res.error or failure)
        return False

    # ---- task lists (live) ----

    def _collect_tasks(self, query: LiveQuery[list[Task]]) -> None:
        async def _run() -> None:
            self._set(is_loading=True)
            try:
                async for tasks in query:
                    self._set(tasks=tasks, is_loading=False)
            except Exception:
                logger.exception("Task list observer failed")
                self._set(is_loading=False, error_message="Failed to load tasks")

        self._launch("tasks", _run)

    def load_all_tasks(self) -> None:
        self._collect_tasks(self._get.all_tasks())

    def load_tasks_for_user(self, user_id: str) -> None:
        self._collect_tasks(self._get.tasks_for_user(user_id))

    def load_tasks_created_by_user(self, user_id: str) -> None:
        self._collect_tasks(self._get.tasks_created_by_user(user_id))

    def filter_tasks_by_status(self, status: TaskStatus | None) -> None:
        self._set(filter_status=status)

    def filtered_tasks(self) -> list[Task]:
        s = self.state.value
        if s.filter_status is None:
            return list(s.tasks)
        return [t for t in s.tasks if t.status == s.filter_status]

    def select_task(self, task_id: str | None) -> None:
        if task_id is None:
            self._cancel("selected")
            self._set(selected_task=None)
            return

        query = self._get.task_with_phases(task_id)

        async def _run() -> None:
            self._set(is_loading=True)
            try:
                async for task in query:
                    self._set(selected_task=task, is_loading=False)
            except Exception:
                logger.exception("Task observer failed task_id=%s", task_id)
                self._set(is_loading=False, error_message="Failed to load task")

        self._launch("selected", _run)

    # ---- task writes ----

    async def create_task(
        self,
        *,
        title: str,
        description: str,
        assigned_to: str,
        assigned_to_name: str = "",
        priority: TaskPriority = TaskPriority.MEDIUM,
        deadline: int | None = None,
        estimated_hours: int | None = None,
        tags: list[str] | None = None,
    ) -> Task | None:
        """The signed-in user is recorded as the creator."""
        self._set(is_loading=True, error_message=None)
        try:
            creator = self._session.require_user()
        except AuthError as e:
            self._set(is_loading=False, error_message=str(e))
            return None
        task = Task(
            title=title,
            description=description,
            assigned_to=assigned_to,
            assigned_by=creator.id,
            assigned_to_name=assigned_to_name,
            assigned_by_name=creator.name,
            priority=priority,
            status=TaskStatus.PENDING,
            deadline=deadline,
            estimated_hours=estimated_hours,
            tags=list(tags or []),
        )
        res = await self._create(task)
        self._finish(res, "Task created successfully!", "Failed to create task")
        return res.value if res.ok else None

    async def update_task_status(self, task_id: str, status: TaskStatus, *, refresh_selected: bool = False) -> None:
        """
        Explicit status change.

        The edit flavour (refresh_selected=True) names the new status in its
        message and re-observes the task.
        """
        self._set(is_loading=True)
        res = await self._update.update_task_status(task_id, status)
        if not refresh_selected:
            self._finish(res, "Status updated successfully!", "Failed to update status")
            return
        if self._finish(res, f"Status updated to {status.name}", "Failed to update status"):
            self.select_task(task_id)

    async def update_task_progress(self, task_id: str, percentage: int) -> None:
        self._set(is_loading=True)
        res = await self._update.update_task_progress(task_id, percentage)
        self._finish(res, "Progress updated!", "Failed to update progress")

    async def add_phase_to_task(self, task_id: str, title: str, description: str = "") -> None:
        """Append a custom phase after the current last phase."""
        self._set(is_loading=True)
        selected = self.state.value.selected_task
        if selected is not None and selected.id == task_id:
            current = selected.phases
        else:
            task = self._repo.get_task_by_id(task_id)
            current = task.phases if task else []

        creator = self._session.user
        phase = TaskPhase(
            task_id=task_id,
            title=title,
            description=description,
            order=next_phase_order(current),
            is_custom=True,
            created_by=creator.id if creator else "",
        )
        res = await self._repo.add_phase_to_task(task_id, phase)
        self._finish(res, "Phase added successfully!", "Failed to add phase")

    async def mark_phase_completed(self, phase_id: str) -> None:
        self._set(is_loading=True)
        res = await self._repo.mark_phase_completed(phase_id)
        self._finish(res, "Phase marked as completed!", "Failed to update phase")

    async def delete_task(self, task_id: str) -> None:
        self._set(is_loading=True)
        res = await self._delete(task_id)
        if self._finish(res, "Task deleted successfully!", "Failed to delete task"):
            selected = self.state.value.selected_task
            if selected is not None and selected.id == task_id:
                self.select_task(None)

    # ---- edits of the selected task ----

    def _editable(self, task_id: str) -> Task | None:
        selected = self.state.value.selected_task
        if selected is not None and selected.id == task_id:
            return selected
        return self._repo.get_task_by_id(task_id)

    async def _edit(
        self,
        task_id: str,
        change: Callable[[Task], Task],
        success: str,
        failure: str,
    ) -> None:
        self._set(is_loading=True)
        task = self._editable(task_id)
        if task is None:
            self._set(is_loading=False, error_message="Task not found")
            return
        res = await self._update.update_task(dataclasses.replace(change(task), updated_at=now_ms()))
        if self._finish(res, success, failure):
            self.select_task(task_id)

    async def update_task_priority(self, task_id: str, priority: TaskPriority) -> None:
        await self._edit(
            task_id,
            lambda t: dataclasses.replace(t, priority=priority),
            f"Priority updated to {priority.name}",
            "Failed to update priority",
        )

    async def update_task_title(self, task_id: str, title: str) -> None:
        if not title.strip():
            self._set(error_message="Title cannot be empty")
            return
        await self._edit(
            task_id,
            lambda t: dataclasses.replace(t, title=title),
            "Title updated",
            "Failed to update title",
        )

    async def update_task_description(self, task_id: str, description: str) -> None:
        if not description.strip():
            self._set(error_message="Description cannot be empty")
            return
        await self._edit(
            task_id,
            lambda t: dataclasses.replace(t, description=description),
            "Description updated",
            "Failed to update description",
        )

    async def update_task_deadline(self, task_id: str, deadline: int | None) -> None:
        await self._edit(
            task_id,
            lambda t: dataclasses.replace(t, deadline=deadline),
            "Deadline updated",
            "Failed to update deadline",
        )

    async def update_task_assignee(self, task_id: str, assignee_id: str, assignee_name: str) -> None:
        await self._edit(
            task_id,
            lambda t: dataclasses.replace(t, assigned_to=assignee_id, assigned_to_name=assignee_name),
            f"Task reassigned to {assignee_name}",
            "Failed to reassign task",
        )

    # ---- misc ----

    async def sync_tasks(self) -> Result[int]:
        """Admins pull every task; everyone else pulls their own."""
        user = self._session.user
        if user is not None and not user.is_admin:
            res = await self._repo.sync_tasks_for_user(user.id)
        else:
            res = await self._repo.sync_tasks()
        if not res.ok:
            self._set(error_message=res.error or "Failed to sync tasks")
        return res

    def clear_messages(self) -> None:
        self._set(error_message=None, success_message=None)
