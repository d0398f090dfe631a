# tests/test_task_repository.py

from __future__ import annotations

import asyncio
import dataclasses

import pytest

from worksync.cache.store import CacheStore
from worksync.core.errors import RemoteStoreError
from worksync.core.models import TaskPhase, TaskPriority, TaskStatus
from worksync.remote.documents import TASKS, phases_path, task_to_document
from worksync.repositories.task_repository import TaskRepository
from worksync.usecases.tasks import CreateTaskUseCase, GetTasksUseCase

from .fakes import FlakyDocumentStore, make_task


@pytest.mark.asyncio
async def test_create_task_seeds_default_phases_everywhere(
    task_repo: TaskRepository, cache: CacheStore, remote: FlakyDocumentStore
) -> None:
    res = await task_repo.create_task(make_task())
    assert res.ok
    task = res.value
    assert task.id

    stored = task_repo.get_task_by_id(task.id)
    assert [p.title for p in stored.phases] == ["Task Created", "In Progress", "Under Review", "Completed"]
    assert stored.phases[0].is_completed
    # Creation does not recompute: first phase is done, but the task reads 0% / pending.
    assert stored.completion_percentage == 0
    assert stored.status == TaskStatus.PENDING

    assert await remote.get(TASKS, task.id) is not None
    assert remote.document_count(phases_path(task.id)) == 4
    # Task document first, then phases.
    assert remote.ops("set")[0] == (TASKS, task.id)


@pytest.mark.asyncio
async def test_create_task_keeps_supplied_id_and_phases(task_repo: TaskRepository) -> None:
    phases = [TaskPhase(title="Only", order=0)]
    res = await task_repo.create_task(make_task(id="fixed", phases=phases))

    assert res.ok
    stored = task_repo.get_task_by_id("fixed")
    assert [p.title for p in stored.phases] == ["Only"]
    assert stored.phases[0].task_id == "fixed"
    assert stored.phases[0].id


@pytest.mark.asyncio
async def test_completion_scenario_reaches_completed(task_repo: TaskRepository) -> None:
    task = (await task_repo.create_task(make_task())).value
    phases = task_repo.get_task_by_id(task.id).phases

    await task_repo.mark_phase_completed(phases[1].id)
    t = task_repo.get_task_by_id(task.id)
    assert (t.completion_percentage, t.status) == (50, TaskStatus.IN_PROGRESS)

    res = await task_repo.add_phase_to_task(task.id, TaskPhase(title="Extra", order=4, is_custom=True))
    assert res.ok
    t = task_repo.get_task_by_id(task.id)
    assert (t.completion_percentage, t.status) == (40, TaskStatus.IN_PROGRESS)

    for phase in t.phases:
        if not phase.is_completed:
            assert (await task_repo.mark_phase_completed(phase.id)).ok

    t = task_repo.get_task_by_id(task.id)
    assert (t.completion_percentage, t.status) == (100, TaskStatus.COMPLETED)
    assert all(p.completed_at is not None for p in t.phases)


@pytest.mark.asyncio
async def test_progress_is_clamped_and_drives_status(
    task_repo: TaskRepository, remote: FlakyDocumentStore
) -> None:
    task = (await task_repo.create_task(make_task())).value

    assert (await task_repo.update_task_progress(task.id, 150)).ok
    t = task_repo.get_task_by_id(task.id)
    assert (t.completion_percentage, t.status) == (100, TaskStatus.COMPLETED)

    doc = await remote.get(TASKS, task.id)
    assert doc["completionPercentage"] == 100
    assert doc["status"] == "COMPLETED"

    assert (await task_repo.update_task_progress(task.id, -3)).ok
    t = task_repo.get_task_by_id(task.id)
    assert (t.completion_percentage, t.status) == (0, TaskStatus.PENDING)


@pytest.mark.asyncio
async def test_cancelled_status_survives_progress(task_repo: TaskRepository) -> None:
    task = (await task_repo.create_task(make_task())).value
    assert (await task_repo.update_task_status(task.id, TaskStatus.CANCELLED)).ok

    await task_repo.update_task_progress(task.id, 100)

    t = task_repo.get_task_by_id(task.id)
    assert t.completion_percentage == 100
    assert t.status == TaskStatus.CANCELLED


@pytest.mark.asyncio
async def test_update_task_status_leaves_percentage(task_repo: TaskRepository, remote: FlakyDocumentStore) -> None:
    task = (await task_repo.create_task(make_task())).value
    await task_repo.update_task_progress(task.id, 40)

    assert (await task_repo.update_task_status(task.id, TaskStatus.REVIEW)).ok

    t = task_repo.get_task_by_id(task.id)
    assert t.status == TaskStatus.REVIEW
    assert t.completion_percentage == 40
    assert (await remote.get(TASKS, task.id))["status"] == "REVIEW"


@pytest.mark.asyncio
async def test_update_task_stamps_updated_at(task_repo: TaskRepository, remote: FlakyDocumentStore) -> None:
    task = (await task_repo.create_task(make_task(updated_at=1))).value

    res = await task_repo.update_task(make_task(id=task.id, title="New title", updated_at=1))

    assert res.ok
    assert res.value.updated_at > 1
    assert task_repo.get_task_by_id(task.id).title == "New title"
    assert (await remote.get(TASKS, task.id))["title"] == "New title"
    assert len(task_repo.get_task_by_id(task.id).phases) == 4


@pytest.mark.asyncio
async def test_delete_task_removes_task_and_phases_everywhere(
    task_repo: TaskRepository, cache: CacheStore, remote: FlakyDocumentStore
) -> None:
    task = (await task_repo.create_task(make_task())).value

    assert (await task_repo.delete_task(task.id)).ok

    assert task_repo.get_task_by_id(task.id) is None
    assert cache.list_phases(task.id) == []
    assert await remote.get(TASKS, task.id) is None
    assert remote.document_count(phases_path(task.id)) == 0


@pytest.mark.asyncio
async def test_delete_phase_missing_is_noop_and_existing_recomputes(task_repo: TaskRepository) -> None:
    task = (await task_repo.create_task(make_task())).value
    assert (await task_repo.delete_phase("does-not-exist")).ok

    phases = task_repo.get_task_by_id(task.id).phases
    for phase in phases[2:]:
        assert (await task_repo.delete_phase(phase.id)).ok

    t = task_repo.get_task_by_id(task.id)
    assert len(t.phases) == 2
    assert t.completion_percentage == 50


@pytest.mark.asyncio
async def test_update_phase_recomputes(task_repo: TaskRepository) -> None:
    task = (await task_repo.create_task(make_task())).value
    phases = task_repo.get_task_by_id(task.id).phases

    res = await task_repo.update_phase(dataclasses.replace(phases[3], is_completed=True, completed_at=5))
    assert res.ok
    assert task_repo.get_task_by_id(task.id).completion_percentage == 50


@pytest.mark.asyncio
async def test_remote_failure_returns_readable_failure(
    task_repo: TaskRepository, remote: FlakyDocumentStore
) -> None:
    remote.fail_ops = {"set"}

    res = await task_repo.create_task(make_task())
    assert not res.ok
    assert res.error == "Failed to create task"

    remote.error = RemoteStoreError("Remote store is read-only")
    res = await task_repo.create_task(make_task())
    assert res.error == "Remote store is read-only"


@pytest.mark.asyncio
async def test_create_task_failure_midway_is_not_rolled_back(
    task_repo: TaskRepository, remote: FlakyDocumentStore
) -> None:
    remote.fail_ops = {"set"}
    remote.fail_collections = (f"{TASKS}/fixed/",)

    res = await task_repo.create_task(make_task(id="fixed"))

    assert not res.ok
    # Task document and cache row exist; the first phase reached the cache only.
    assert await remote.get(TASKS, "fixed") is not None
    stored = task_repo.get_task_by_id("fixed")
    assert stored is not None
    assert len(stored.phases) == 1


@pytest.mark.asyncio
async def test_recompute_failure_is_swallowed(task_repo: TaskRepository, remote: FlakyDocumentStore) -> None:
    task = (await task_repo.create_task(make_task())).value
    phases = task_repo.get_task_by_id(task.id).phases
    remote.fail_ops = {"update"}

    res = await task_repo.mark_phase_completed(phases[1].id)

    assert res.ok
    t = task_repo.get_task_by_id(task.id)
    assert t.phases[1].is_completed
    # The cache-side progress write happened before the remote call failed.
    assert t.completion_percentage == 50


@pytest.mark.asyncio
async def test_update_progress_of_missing_task_fails(task_repo: TaskRepository) -> None:
    res = await task_repo.update_task_progress("ghost", 10)
    assert not res.ok
    assert "ghost" in res.error


@pytest.mark.asyncio
async def test_sync_pulls_tasks_and_phases_without_deleting(
    task_repo: TaskRepository, cache: CacheStore, remote: FlakyDocumentStore
) -> None:
    cache.upsert_task(make_task(id="local-only"))

    await remote.set(TASKS, "r1", {**task_to_document(make_task(id="r1", assigned_to="e1")), "updatedAt": 10})
    await remote.set(TASKS, "r2", {**task_to_document(make_task(id="r2", assigned_to="e2")), "updatedAt": 20})
    await remote.set(phases_path("r1"), "p1", {"title": "Remote phase", "order": 0, "isCompleted": True})

    res = await task_repo.sync_tasks()

    assert res.ok and res.value == 2
    assert {t.id for t in cache.list_tasks()} == {"local-only", "r1", "r2"}
    assert [p.title for p in task_repo.get_task_by_id("r1").phases] == ["Remote phase"]


@pytest.mark.asyncio
async def test_sync_for_user_filters_and_tolerates_bad_fields(
    task_repo: TaskRepository, cache: CacheStore, remote: FlakyDocumentStore
) -> None:
    await remote.set(TASKS, "mine", {"title": "Mine", "assignedTo": "e1", "status": "NOT_A_STATUS", "priority": 7})
    await remote.set(TASKS, "theirs", {"title": "Theirs", "assignedTo": "e2"})

    res = await task_repo.sync_tasks_for_user("e1")

    assert res.ok and res.value == 1
    mine = cache.get_task("mine")
    assert mine.status == TaskStatus.PENDING
    assert mine.priority.value == "medium"
    assert cache.get_task("theirs") is None


@pytest.mark.asyncio
async def test_sync_failure_is_a_failure_result(task_repo: TaskRepository, remote: FlakyDocumentStore) -> None:
    remote.fail_ops = {"query"}
    res = await task_repo.sync_tasks()
    assert not res.ok
    assert res.error == "Failed to sync tasks"


@pytest.mark.asyncio
async def test_task_with_phases_is_live(task_repo: TaskRepository) -> None:
    task = (await task_repo.create_task(make_task())).value
    stream = task_repo.get_task_with_phases(task.id).__aiter__()

    first = await stream.__anext__()
    assert first.completion_percentage == 0

    await task_repo.mark_phase_completed(first.phases[1].id)

    latest = None
    for _ in range(5):
        latest = await asyncio.wait_for(stream.__anext__(), timeout=1.0)
        if latest.completion_percentage == 50:
            break
    assert latest is not None and latest.completion_percentage == 50
    assert latest.phases[1].is_completed

    await stream.aclose()


@pytest.mark.asyncio
async def test_live_lists_filter_by_assignee(task_repo: TaskRepository) -> None:
    await task_repo.create_task(make_task(assigned_to="e1"))
    await task_repo.create_task(make_task(assigned_to="e2"))

    mine = task_repo.get_tasks_assigned_to_user("e1").snapshot()
    assert [t.assigned_to for t in mine] == ["e1"]
    assert len(mine[0].phases) == 4
    assert len(task_repo.get_all_tasks().snapshot()) == 2
    assert len(task_repo.get_tasks_created_by_user("adm-1").snapshot()) == 2


@pytest.mark.asyncio
async def test_uncompleting_a_phase_lowers_progress(task_repo: TaskRepository, remote: FlakyDocumentStore) -> None:
    task = (await task_repo.create_task(make_task())).value
    phases = task.phases
    await task_repo.mark_phase_completed(phases[1].id)
    assert task_repo.get_task_by_id(task.id).completion_percentage == 50

    res = await task_repo.set_phase_completed(phases[1].id, False)

    assert res.ok
    assert res.value.completed_at is None
    t = task_repo.get_task_by_id(task.id)
    assert (t.completion_percentage, t.status) == (25, TaskStatus.IN_PROGRESS)
    assert (await remote.get(phases_path(task.id), phases[1].id))["isCompleted"] is False

    assert (await task_repo.set_phase_completed("ghost", True)).error == "Phase not found"


@pytest.mark.asyncio
async def test_priority_due_range_and_phase_queries(task_repo: TaskRepository) -> None:
    urgent = (await task_repo.create_task(make_task(priority=TaskPriority.URGENT, deadline=500))).value
    await task_repo.create_task(make_task(priority=TaskPriority.LOW, deadline=5_000))

    assert [t.id for t in task_repo.get_tasks_by_priority(TaskPriority.URGENT).snapshot()] == [urgent.id]
    due = task_repo.get_tasks_due_in_range(0, 1_000).snapshot()
    assert [t.id for t in due] == [urgent.id]
    assert len(due[0].phases) == 4

    stream = task_repo.get_task_phases(urgent.id).__aiter__()
    assert [p.order for p in await stream.__anext__()] == [0, 1, 2, 3]
    await task_repo.add_phase_to_task(urgent.id, TaskPhase(title="Extra", order=4, is_custom=True))
    latest = await asyncio.wait_for(stream.__anext__(), timeout=1.0)
    assert latest[-1].title == "Extra"
    await stream.aclose()


@pytest.mark.asyncio
async def test_get_tasks_use_case_filters(task_repo: TaskRepository) -> None:
    get = GetTasksUseCase(task_repo)
    late = (await task_repo.create_task(make_task(assigned_to="e1", deadline=1))).value
    review = (await task_repo.create_task(make_task(assigned_to="e1"))).value
    other = (await task_repo.create_task(make_task(assigned_to="e2"))).value
    await task_repo.update_task_status(review.id, TaskStatus.REVIEW)
    await task_repo.update_task_status(other.id, TaskStatus.REVIEW)

    assert {t.id for t in get.tasks_by_status(TaskStatus.REVIEW).snapshot()} == {review.id, other.id}
    assert [t.id for t in get.user_tasks_by_status("e1", TaskStatus.REVIEW).snapshot()] == [review.id]
    assert [t.id for t in get.overdue_tasks().snapshot()] == [late.id]
    assert [t.id for t in get.tasks_for_user("e2").snapshot()] == [other.id]


@pytest.mark.asyncio
async def test_create_use_case_reports_first_blank_field(task_repo: TaskRepository, remote: FlakyDocumentStore) -> None:
    create = CreateTaskUseCase(task_repo)

    assert (await create(make_task(description=" "))).error == "Task description cannot be empty"
    assert (await create(make_task(assigned_to=""))).error == "Task must be assigned to someone"
    assert (await create(make_task(assigned_by=""))).error == "Task creator must be specified"
    assert remote.calls == []
