# src/worksync/sync/poller.py

from __future__ import annotations

"""
Background sync.

A small polling loop that keeps the local cache close to the remote store:
- admins pull every task, employees pull the tasks assigned to them,
- active user profiles are pulled for everyone,
- nothing happens while nobody is signed in.

Sync is additive (upserts only); see TaskRepository.sync_tasks.
"""

import asyncio
import logging

from ..core.session import Session
from ..repositories.task_repository import TaskRepository
from ..repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


async def sync_once(task_repo: TaskRepository, user_repo: UserRepository, session: Session) -> bool:
    """One pass. Returns True when every pull succeeded; never raises."""
    user = session.user
    if user is None:
        return False

    ok = True
    try:
        if user.is_admin:
            res = await task_repo.sync_tasks()
        else:
            res = await task_repo.sync_tasks_for_user(user.id)
        if not res.ok:
            logger.warning("Task sync failed: %s", res.error)
            ok = False
    except Exception:
        logger.exception("Task sync crashed")
        ok = False

    try:
        ures = await user_repo.sync_users()
        if not ures.ok:
            logger.warning("User sync failed: %s", ures.error)
            ok = False
    except Exception:
        logger.exception("User sync crashed")
        ok = False

    return ok


async def run_sync_loop(
        task_repo: TaskRepository,
        user_repo: UserRepository,
        session: Session,
        *,
        interval_seconds: float = 60.0,
) -> None:
    """
    Simple polling sync.

    Every interval_seconds run sync_once(). An interval <= 0 disables the
    loop (returns immediately). To stop the loop, cancel the coroutine/task.
    """
    if interval_seconds <= 0:
        logger.info("Background sync disabled")
        return

    sleep_s = max(0.5, float(interval_seconds))
    logger.info("Background sync started interval=%.1fs", sleep_s)

    while True:
        await sync_once(task_repo, user_repo, session)
        await asyncio.sleep(sleep_s)
