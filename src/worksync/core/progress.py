# src/worksync/core/progress.py

from __future__ import annotations

"""
Completion derivation rules.

Pure functions shared by the repository (after phase edits / progress updates)
and by callers that want to preview the effect of a change:
- completion percentage from phase state,
- status from percentage,
- the default phase set seeded into new tasks.
"""

from collections.abc import Callable, Iterable

from .models import TaskPhase, TaskStatus, new_id, now_ms

SYSTEM_CREATOR = "system"

# (title, description) in progression order; the first one starts completed.
DEFAULT_PHASES: tuple[tuple[str, str], ...] = (
    ("Task Created", "Task has been created and assigned"),
    ("In Progress", "Work has started on this task"),
    ("Under Review", "Task is being reviewed"),
    ("Completed", "Task has been completed successfully"),
)


def clamp_percentage(percentage: int) -> int:
    return int(max(0, min(100, int(percentage))))


def completion_percentage(completed: int, total: int) -> int:
    """floor(100 * completed / total); 0 when the task has no phases."""
    if total <= 0:
        return 0
    return clamp_percentage((max(0, completed) * 100) // total)


def phases_completion(phases: Iterable[TaskPhase]) -> int:
    items = list(phases)
    return completion_percentage(sum(1 for p in items if p.is_completed), len(items))


def status_for_percentage(percentage: int) -> TaskStatus:
    p = clamp_percentage(percentage)
    if p == 0:
        return TaskStatus.PENDING
    if p == 100:
        return TaskStatus.COMPLETED
    return TaskStatus.IN_PROGRESS


def derive_status(current: TaskStatus | None, percentage: int) -> TaskStatus:
    """
    Status a task takes after its percentage changes.

    - cancelled is terminal for derivation: only an admin can lift it.
    - review holds until every phase is done, then the task completes.
    - everything else follows status_for_percentage().
    """
    target = status_for_percentage(percentage)
    if current == TaskStatus.CANCELLED:
        return current
    if current == TaskStatus.REVIEW and target != TaskStatus.COMPLETED:
        return current
    return target


def default_phases(
    task_id: str,
    *,
    now: int | None = None,
    id_factory: Callable[[], str] = new_id,
) -> list[TaskPhase]:
    ts = now_ms() if now is None else now
    out: list[TaskPhase] = []
    for order, (title, description) in enumerate(DEFAULT_PHASES):
        first = order == 0
        out.append(
            TaskPhase(
                id=id_factory(),
                task_id=task_id,
                title=title,
                description=description,
                is_completed=first,
                completed_at=ts if first else None,
                order=order,
                is_custom=False,
                created_by=SYSTEM_CREATOR,
                created_at=ts,
            )
        )
    return out


def next_phase_order(phases: Iterable[TaskPhase]) -> int:
    orders = [p.order for p in phases]
    return max(orders) + 1 if orders else 0
