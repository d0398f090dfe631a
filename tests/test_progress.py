# tests/test_progress.py

from __future__ import annotations

import pytest

from worksync.core.models import TaskPhase, TaskStatus
from worksync.core.progress import (
    DEFAULT_PHASES,
    SYSTEM_CREATOR,
    clamp_percentage,
    completion_percentage,
    default_phases,
    derive_status,
    next_phase_order,
    phases_completion,
    status_for_percentage,
)


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [(0, 0, 0), (0, 4, 0), (1, 4, 25), (1, 3, 33), (2, 3, 66), (3, 3, 100), (5, 4, 100)],
)
def test_completion_percentage_is_floored(completed: int, total: int, expected: int) -> None:
    assert completion_percentage(completed, total) == expected


def test_clamp_percentage() -> None:
    assert clamp_percentage(-5) == 0
    assert clamp_percentage(150) == 100
    assert clamp_percentage(42) == 42


@pytest.mark.parametrize(
    ("pct", "status"),
    [(0, TaskStatus.PENDING), (1, TaskStatus.IN_PROGRESS), (99, TaskStatus.IN_PROGRESS), (100, TaskStatus.COMPLETED)],
)
def test_status_for_percentage(pct: int, status: TaskStatus) -> None:
    assert status_for_percentage(pct) == status


def test_derive_status_keeps_cancelled_and_review() -> None:
    assert derive_status(TaskStatus.CANCELLED, 100) == TaskStatus.CANCELLED
    assert derive_status(TaskStatus.CANCELLED, 0) == TaskStatus.CANCELLED
    assert derive_status(TaskStatus.REVIEW, 50) == TaskStatus.REVIEW
    assert derive_status(TaskStatus.REVIEW, 100) == TaskStatus.COMPLETED
    assert derive_status(TaskStatus.COMPLETED, 75) == TaskStatus.IN_PROGRESS
    assert derive_status(None, 0) == TaskStatus.PENDING


def test_default_phases_shape() -> None:
    ids = iter(["p0", "p1", "p2", "p3"])
    phases = default_phases("t1", now=1_000, id_factory=lambda: next(ids))

    assert [p.title for p in phases] == [title for title, _ in DEFAULT_PHASES]
    assert [p.title for p in phases] == ["Task Created", "In Progress", "Under Review", "Completed"]
    assert [p.order for p in phases] == [0, 1, 2, 3]
    assert [p.id for p in phases] == ["p0", "p1", "p2", "p3"]
    assert all(p.task_id == "t1" and not p.is_custom and p.created_by == SYSTEM_CREATOR for p in phases)

    first, *rest = phases
    assert first.is_completed and first.completed_at == 1_000
    assert not any(p.is_completed for p in rest)
    assert all(p.completed_at is None for p in rest)

    assert phases_completion(phases) == 25


def test_next_phase_order() -> None:
    assert next_phase_order([]) == 0
    assert next_phase_order([TaskPhase(order=0), TaskPhase(order=7), TaskPhase(order=3)]) == 8
