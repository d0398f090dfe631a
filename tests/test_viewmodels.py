# tests/test_viewmodels.py

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from worksync.cli.bootstrap import AppState, shutdown_state
from worksync.core.models import TaskPriority, TaskStatus, UserRole
from worksync.remote.documents import USERS, user_to_document
from worksync.viewmodels.base import StateFlow

from .fakes import make_user


async def _eventually(check: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll until a background collector has caught up."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not check():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def _sign_in_admin(state: AppState) -> None:
    state.session.user = make_user("adm-1", UserRole.ADMIN, name="Ada")


@pytest.mark.asyncio
async def test_state_flow_ignores_equal_values_and_streams() -> None:
    flow: StateFlow[int] = StateFlow(0)
    seen: list[int] = []
    unsubscribe = flow.subscribe(seen.append)

    flow.set(0)
    flow.set(1)
    assert flow.update(lambda v: v + 1) == 2
    unsubscribe()
    flow.set(3)
    assert seen == [1, 2]

    stream = flow.stream().__aiter__()
    assert await stream.__anext__() == 3
    flow.set(4)
    flow.set(5)
    assert await asyncio.wait_for(stream.__anext__(), timeout=1.0) == 5
    await stream.aclose()


@pytest.mark.asyncio
async def test_create_task_records_creator_and_feeds_live_list(state: AppState) -> None:
    _sign_in_admin(state)
    vm = state.task_vm
    vm.load_all_tasks()

    task = await vm.create_task(
        title="Write docs",
        description="User guide",
        assigned_to="emp-1",
        assigned_to_name="Erin",
        priority=TaskPriority.URGENT,
    )

    assert task is not None
    assert (task.assigned_by, task.assigned_by_name) == ("adm-1", "Ada")
    assert vm.state.value.success_message == "Task created successfully!"
    await _eventually(lambda: len(vm.state.value.tasks) == 1)
    assert vm.active_jobs == ["tasks"]

    await shutdown_state(state)


@pytest.mark.asyncio
async def test_create_task_validation_message(state: AppState) -> None:
    _sign_in_admin(state)
    vm = state.task_vm

    assert await vm.create_task(title=" ", description="x", assigned_to="emp-1") is None
    assert vm.state.value.error_message == "Task title cannot be empty"
    assert vm.state.value.is_loading is False

    vm.clear_messages()
    assert vm.state.value.error_message is None
    await shutdown_state(state)


@pytest.mark.asyncio
async def test_selected_task_follows_phase_completion(state: AppState) -> None:
    _sign_in_admin(state)
    vm = state.task_vm
    task = await vm.create_task(title="Write docs", description="User guide", assigned_to="emp-1")

    vm.select_task(task.id)
    await _eventually(lambda: vm.state.value.selected_task is not None)
    phases = vm.state.value.selected_task.phases

    await vm.mark_phase_completed(phases[1].id)
    assert vm.state.value.success_message == "Phase marked as completed!"
    await _eventually(lambda: vm.state.value.selected_task.completion_percentage == 50)

    await vm.add_phase_to_task(task.id, "Translate", "German edition")
    await _eventually(lambda: len(vm.state.value.selected_task.phases) == 5)
    extra = vm.state.value.selected_task.phases[-1]
    assert (extra.order, extra.is_custom, extra.created_by) == (4, True, "adm-1")
    await _eventually(lambda: vm.state.value.selected_task.completion_percentage == 40)

    await shutdown_state(state)


@pytest.mark.asyncio
async def test_status_messages_and_edits(state: AppState) -> None:
    _sign_in_admin(state)
    vm = state.task_vm
    task = await vm.create_task(title="Write docs", description="User guide", assigned_to="emp-1")

    await vm.update_task_status(task.id, TaskStatus.REVIEW)
    assert vm.state.value.success_message == "Status updated successfully!"

    await vm.update_task_status(task.id, TaskStatus.CANCELLED, refresh_selected=True)
    assert vm.state.value.success_message == "Status updated to CANCELLED"
    assert "selected" in vm.active_jobs

    await vm.update_task_priority(task.id, TaskPriority.LOW)
    assert vm.state.value.success_message == "Priority updated to LOW"
    assert state.task_repository.get_task_by_id(task.id).priority == TaskPriority.LOW

    await vm.update_task_title(task.id, "   ")
    assert vm.state.value.error_message == "Title cannot be empty"

    await vm.update_task_assignee(task.id, "emp-2", "Finn")
    assert vm.state.value.success_message == "Task reassigned to Finn"
    assert state.task_repository.get_task_by_id(task.id).assigned_to == "emp-2"

    await vm.update_task_progress(task.id, 101)
    assert vm.state.value.error_message == "Progress percentage must be between 0 and 100"

    await shutdown_state(state)


@pytest.mark.asyncio
async def test_filter_and_delete(state: AppState) -> None:
    _sign_in_admin(state)
    vm = state.task_vm
    vm.load_tasks_created_by_user("adm-1")
    keep = await vm.create_task(title="Keep", description="k", assigned_to="emp-1")
    drop = await vm.create_task(title="Drop", description="d", assigned_to="emp-1")
    await vm.update_task_status(keep.id, TaskStatus.REVIEW)
    await _eventually(lambda: {t.status for t in vm.state.value.tasks} == {TaskStatus.REVIEW, TaskStatus.PENDING})

    vm.filter_tasks_by_status(TaskStatus.REVIEW)
    assert [t.id for t in vm.filtered_tasks()] == [keep.id]
    vm.filter_tasks_by_status(None)
    assert len(vm.filtered_tasks()) == 2

    vm.select_task(drop.id)
    await _eventually(lambda: vm.state.value.selected_task is not None)
    await vm.delete_task(drop.id)
    assert vm.state.value.success_message == "Task deleted successfully!"
    assert vm.state.value.selected_task is None
    assert "selected" not in vm.active_jobs
    await _eventually(lambda: [t.id for t in vm.state.value.tasks] == [keep.id])

    await shutdown_state(state)


@pytest.mark.asyncio
async def test_sync_tasks_reports_failure(state: AppState) -> None:
    state.session.user = make_user("emp-1")
    state.remote.fail_ops = {"query"}

    res = await state.task_vm.sync_tasks()

    assert not res.ok
    assert state.task_vm.state.value.error_message == "Failed to sync tasks"
    await shutdown_state(state)


@pytest.mark.asyncio
async def test_close_cancels_collectors(state: AppState) -> None:
    vm = state.task_vm
    vm.load_all_tasks()
    vm.select_task("anything")
    assert vm.active_jobs == ["selected", "tasks"]

    await vm.close()

    assert vm.active_jobs == []
    with pytest.raises(RuntimeError):
        vm.load_all_tasks()


@pytest.mark.asyncio
async def test_auth_viewmodel_login_logout_and_observer(state: AppState) -> None:
    vm = state.auth_vm
    await vm.start()
    assert vm.state.value.is_logged_in is False

    await vm.register("ada@example.com", "secret1", "secret1", "Ada", UserRole.ADMIN)
    assert vm.state.value.success_message == "Registration successful!"
    assert state.session.is_admin

    await vm.logout()
    assert vm.state.value.success_message == "Logged out successfully"
    assert state.session.user is None

    await vm.login("ada@example.com", "wrong-password")
    assert vm.state.value.error_message == "The password is invalid."
    assert vm.state.value.is_logged_in is False

    # Sign-in through the provider alone is picked up by the background observer.
    await state.identity.sign_in("ada@example.com", "secret1")
    await _eventually(lambda: vm.state.value.is_logged_in)
    assert state.session.user.name == "Ada"

    await shutdown_state(state)


@pytest.mark.asyncio
async def test_user_viewmodel_lists(state: AppState) -> None:
    vm = state.user_vm
    assert await vm.load_employees() == []
    assert vm.state.value.error_message == "No employees found"

    for user in (make_user("e1", name="Erin"), make_user("a1", UserRole.ADMIN, name="Ada")):
        await state.remote.set(USERS, user.id, user_to_document(user))

    assert [u.id for u in await vm.refresh_employees_once()] == ["e1"]
    assert vm.state.value.error_message is None
    assert [u.id for u in await vm.load_all_users()] == ["a1", "e1"]

    state.remote.fail_ops = {"query"}
    assert await vm.load_all_users() == []
    assert vm.state.value.error_message == "Failed to load users"


@pytest.mark.asyncio
async def test_description_and_deadline_edits(state: AppState) -> None:
    _sign_in_admin(state)
    vm = state.task_vm
    task = await vm.create_task(title="Write docs", description="User guide", assigned_to="emp-1")

    await vm.update_task_description(task.id, "Admin guide")
    assert vm.state.value.success_message == "Description updated"
    await vm.update_task_deadline(task.id, 86_400_000)
    assert vm.state.value.success_message == "Deadline updated"

    stored = state.task_repository.get_task_by_id(task.id)
    assert (stored.description, stored.deadline) == ("Admin guide", 86_400_000)

    await vm.update_task_description(task.id, "")
    assert vm.state.value.error_message == "Description cannot be empty"

    await shutdown_state(state)


@pytest.mark.asyncio
async def test_editing_a_missing_task_reports_it(state: AppState) -> None:
    _sign_in_admin(state)
    vm = state.task_vm

    await vm.update_task_deadline("ghost", None)

    assert vm.state.value.error_message == "Task not found"
    assert vm.state.value.is_loading is False
    assert vm.active_jobs == []


@pytest.mark.asyncio
async def test_create_task_requires_signed_in_user(state: AppState, remote) -> None:
    vm = state.task_vm

    assert await vm.create_task(title="Write docs", description="User guide", assigned_to="emp-1") is None

    assert vm.state.value.error_message == "You are not logged in."
    assert remote.calls == []
