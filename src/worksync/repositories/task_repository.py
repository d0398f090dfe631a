# src/worksync/repositories/task_repository.py

from __future__ import annotations

"""
Task repository: the only place that knows about both stores.

Reads come from the local cache (live queries re-emit on every cache write).
Writes go to both stores, in the per-operation order below, without rollback:
a failure part-way leaves the stores diverged until the next sync.

    create_task          remote -> cache, then each phase cache -> remote
    update_task          remote -> cache
    delete_task          remote (task + phases) -> cache
    update_task_status   cache -> remote
    update_task_progress cache -> remote, then status
    phase edits          cache -> remote, then completion recompute
"""

import dataclasses
import logging
from collections.abc import Iterable

from ..cache.live import LiveQuery
from ..cache.store import TABLE_PHASES, TABLE_TASKS, CacheStore
from ..core.models import Task, TaskPhase, TaskPriority, TaskStatus, new_id, now_ms
from ..core.ports import DocumentStore
from ..core.progress import clamp_percentage, completion_percentage, default_phases, derive_status
from ..core.result import Result
from ..remote.documents import (
    TASKS,
    phase_from_document,
    phase_to_document,
    phases_path,
    task_from_document,
    task_to_document,
)

logger = logging.getLogger(__name__)

_TASK_TABLES = (TABLE_TASKS, TABLE_PHASES)


class TaskRepository:
    def __init__(self, cache: CacheStore, remote: DocumentStore) -> None:
        self._cache = cache
        self._remote = remote

    # ---- read side ----

    def _with_phases(self, tasks: Iterable[Task]) -> list[Task]:
        items = list(tasks)
        if not items:
            return []
        by_task = self._cache.phases_by_task(t.id for t in items)
        return [dataclasses.replace(t, phases=by_task.get(t.id, [])) for t in items]

    def _load_task(self, task_id: str) -> Task | None:
        task = self._cache.get_task(task_id)
        if task is None:
            return None
        return dataclasses.replace(task, phases=self._cache.list_phases(task_id))

    def _live_tasks(self, **filters) -> LiveQuery[list[Task]]:
        return LiveQuery(self._cache, _TASK_TABLES, lambda: self._with_phases(self._cache.list_tasks(**filters)))

    def get_task_by_id(self, task_id: str) -> Task | None:
        try:
            return self._load_task(task_id)
        except Exception:
            logger.exception("get_task_by_id failed task_id=%s", task_id)
            return None

    def get_all_tasks(self) -> LiveQuery[list[Task]]:
        return self._live_tasks()

    def get_tasks_assigned_to_user(self, user_id: str) -> LiveQuery[list[Task]]:
        return self._live_tasks(assigned_to=user_id)

    def get_tasks_created_by_user(self, user_id: str) -> LiveQuery[list[Task]]:
        return self._live_tasks(assigned_by=user_id)

    def get_tasks_by_status(self, status: TaskStatus) -> LiveQuery[list[Task]]:
        return self._live_tasks(status=status)

    def get_tasks_by_priority(self, priority: TaskPriority) -> LiveQuery[list[Task]]:
        return self._live_tasks(priority=priority)

    def get_user_tasks_by_status(self, user_id: str, status: TaskStatus) -> LiveQuery[list[Task]]:
        return self._live_tasks(assigned_to=user_id, status=status)

    def get_overdue_tasks(self) -> LiveQuery[list[Task]]:
        # "now" is taken at each evaluation, not when the query is built.
        return LiveQuery(
            self._cache,
            _TASK_TABLES,
            lambda: self._with_phases(self._cache.list_overdue_tasks(now_ms())),
        )

    def get_tasks_due_in_range(self, start_ts: int, end_ts: int) -> LiveQuery[list[Task]]:
        return LiveQuery(
            self._cache,
            _TASK_TABLES,
            lambda: self._with_phases(self._cache.list_tasks_due_between(start_ts, end_ts)),
        )

    def get_task_with_phases(self, task_id: str) -> LiveQuery[Task | None]:
        return LiveQuery(self._cache, _TASK_TABLES, lambda: self._load_task(task_id))

    def get_task_phases(self, task_id: str) -> LiveQuery[list[TaskPhase]]:
        return LiveQuery(self._cache, (TABLE_PHASES,), lambda: self._cache.list_phases(task_id))

    # ---- task writes ----

    async def create_task(self, task: Task) -> Result[Task]:
        """
        Persist a new task and its phases.

        Tasks without phases get the four default phases. The stored
        percentage is not recomputed here: a fresh task reads 0% / pending.
        """
        try:
            task_id = task.id or new_id()
            phases = list(task.phases) or default_phases(task_id)
            task = dataclasses.replace(task, id=task_id, phases=[])

            await self._remote.set(TASKS, task_id, task_to_document(task))
            self._cache.upsert_task(task)

            bound: list[TaskPhase] = []
            for phase in phases:
                phase = dataclasses.replace(phase, id=phase.id or new_id(), task_id=task_id)
                self._cache.upsert_phase(phase)
                await self._remote.set(phases_path(task_id), phase.id, phase_to_document(phase))
                bound.append(phase)

            logger.info("Task created id=%s phases=%d assigned_to=%s", task_id, len(bound), task.assigned_to)
            return Result.success(dataclasses.replace(task, phases=bound))
        except Exception as e:
            logger.exception("create_task failed task_id=%s", task.id)
            return Result.from_exception(e, "Failed to create task")

    async def update_task(self, task: Task) -> Result[Task]:
        """Full overwrite, last writer wins. Phases are not touched."""
        try:
            updated = dataclasses.replace(task, updated_at=now_ms())
            await self._remote.set(TASKS, updated.id, task_to_document(updated))
            self._cache.upsert_task(updated)
            return Result.success(updated)
        except Exception as e:
            logger.exception("update_task failed task_id=%s", task.id)
            return Result.from_exception(e, "Failed to update task")

    async def delete_task(self, task_id: str) -> Result[None]:
        try:
            await self._remote.delete(TASKS, task_id)
            phase_docs = await self._remote.query(phases_path(task_id))
            for phase_id, _doc in phase_docs:
                await self._remote.delete(phases_path(task_id), phase_id)

            self._cache.delete_task(task_id)
            self._cache.delete_phases_for_task(task_id)
            logger.info("Task deleted id=%s remote_phases=%d", task_id, len(phase_docs))
            return Result.success()
        except Exception as e:
            logger.exception("delete_task failed task_id=%s", task_id)
            return Result.from_exception(e, "Failed to delete task")

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Result[None]:
        try:
            ts = now_ms()
            self._cache.update_task_status(task_id, status, ts)
            await self._remote.update(TASKS, task_id, {"status": status.name, "updatedAt": ts})
            return Result.success()
        except Exception as e:
            logger.exception("update_task_status failed task_id=%s status=%s", task_id, status.value)
            return Result.from_exception(e, "Failed to update task status")

    async def update_task_progress(self, task_id: str, percentage: int) -> Result[None]:
        try:
            pct = clamp_percentage(percentage)
            ts = now_ms()
            self._cache.update_task_progress(task_id, pct, ts)
            await self._remote.update(TASKS, task_id, {"completionPercentage": pct, "updatedAt": ts})

            current = self._cache.get_task(task_id)
            status = derive_status(current.status if current else None, pct)
            return await self.update_task_status(task_id, status)
        except Exception as e:
            logger.exception("update_task_progress failed task_id=%s", task_id)
            return Result.from_exception(e, "Failed to update task progress")

    # ---- phase writes ----

    async def add_phase_to_task(self, task_id: str, phase: TaskPhase) -> Result[TaskPhase]:
        try:
            phase = dataclasses.replace(phase, id=phase.id or new_id(), task_id=task_id)
            self._cache.upsert_phase(phase)
            await self._remote.set(phases_path(task_id), phase.id, phase_to_document(phase))
        except Exception as e:
            logger.exception("add_phase_to_task failed task_id=%s", task_id)
            return Result.from_exception(e, "Failed to add phase")

        await self._recompute_completion(task_id)
        return Result.success(phase)

    async def update_phase(self, phase: TaskPhase) -> Result[TaskPhase]:
        try:
            self._cache.upsert_phase(phase)
            await self._remote.set(phases_path(phase.task_id), phase.id, phase_to_document(phase))
        except Exception as e:
            logger.exception("update_phase failed phase_id=%s", phase.id)
            return Result.from_exception(e, "Failed to update phase")

        await self._recompute_completion(phase.task_id)
        return Result.success(phase)

    async def delete_phase(self, phase_id: str) -> Result[None]:
        """Missing phases are a successful no-op."""
        try:
            phase = self._cache.get_phase(phase_id)
            if phase is None:
                return Result.success()
            await self._remote.delete(phases_path(phase.task_id), phase_id)
            self._cache.delete_phase(phase_id)
        except Exception as e:
            logger.exception("delete_phase failed phase_id=%s", phase_id)
            return Result.from_exception(e, "Failed to delete phase")

        await self._recompute_completion(phase.task_id)
        return Result.success()

    async def set_phase_completed(self, phase_id: str, completed: bool) -> Result[TaskPhase]:
        try:
            completed_at = now_ms() if completed else None
            if not self._cache.update_phase_completion(phase_id, completed, completed_at):
                return Result.failure("Phase not found")
            phase = self._cache.get_phase(phase_id)
            if phase is None:
                return Result.failure("Phase not found")
            await self._remote.set(phases_path(phase.task_id), phase.id, phase_to_document(phase))
        except Exception as e:
            logger.exception("set_phase_completed failed phase_id=%s completed=%s", phase_id, completed)
            return Result.from_exception(e, "Failed to update phase")

        await self._recompute_completion(phase.task_id)
        return Result.success(phase)

    async def mark_phase_completed(self, phase_id: str) -> Result[TaskPhase]:
        return await self.set_phase_completed(phase_id, True)

    async def _recompute_completion(self, task_id: str) -> None:
        """
        Re-derive percentage and status from the cached phases.

        Fire-and-forget: the phase edit that triggered it has already
        succeeded, so failures here are logged and dropped.
        """
        try:
            total = self._cache.count_phases(task_id)
            done = self._cache.count_completed_phases(task_id)
            pct = completion_percentage(done, total)
            res = await self.update_task_progress(task_id, pct)
            if not res.ok:
                logger.warning("Completion recompute failed task_id=%s: %s", task_id, res.error)
        except Exception:
            logger.exception("Completion recompute crashed task_id=%s", task_id)

    # ---- sync ----

    async def sync_tasks(self) -> Result[int]:
        """Pull every remote task (and its phases) into the cache."""
        return await self._sync(None)

    async def sync_tasks_for_user(self, user_id: str) -> Result[int]:
        """Pull the tasks assigned to one user (and their phases) into the cache."""
        return await self._sync(user_id)

    async def _sync(self, user_id: str | None) -> Result[int]:
        try:
            where = [("assignedTo", user_id)] if user_id is not None else []
            docs = await self._remote.query(TASKS, where=where, order_by="updatedAt", descending=True)

            tasks: list[Task] = []
            for doc_id, data in docs:
                try:
                    tasks.append(task_from_document(doc_id, data))
                except Exception:
                    logger.warning("Skipping unparseable task document id=%s", doc_id, exc_info=True)

            self._cache.upsert_tasks(tasks)
        except Exception as e:
            logger.exception("sync failed user_id=%s", user_id)
            return Result.from_exception(e, "Failed to sync tasks")

        phase_count = 0
        for task in tasks:
            try:
                phase_docs = await self._remote.query(phases_path(task.id), order_by="order")
                phases = [phase_from_document(task.id, pid, pdata) for pid, pdata in phase_docs]
                phase_count += self._cache.upsert_phases(phases)
            except Exception:
                logger.warning("Phase sync failed task_id=%s", task.id, exc_info=True)

        logger.info("Synced tasks=%d phases=%d user_id=%s", len(tasks), phase_count, user_id)
        return Result.success(len(tasks))
