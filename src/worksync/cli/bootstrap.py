# src/worksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the remote backend and identity provider,
- wires cache, repositories, use cases and view models into AppState.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass

from ..cache.store import CacheStore
from ..config import get_settings
from ..core.ports import DocumentStore, IdentityProvider
from ..core.session import Session
from ..remote.memory import InMemoryDocumentStore, InMemoryIdentityProvider
from ..repositories.auth_repository import AuthRepository
from ..repositories.task_repository import TaskRepository
from ..repositories.user_repository import UserRepository
from ..usecases.auth import LoginUseCase, LogoutUseCase, RegisterUseCase
from ..usecases.tasks import CreateTaskUseCase, DeleteTaskUseCase, GetTasksUseCase, UpdateTaskUseCase
from ..viewmodels.auth_viewmodel import AuthViewModel
from ..viewmodels.task_viewmodel import TaskViewModel
from ..viewmodels.user_viewmodel import UserViewModel

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    settings: object

    cache: CacheStore
    remote: DocumentStore
    identity: IdentityProvider
    session: Session

    task_repository: TaskRepository
    user_repository: UserRepository
    auth_repository: AuthRepository

    auth_vm: AuthViewModel
    task_vm: TaskViewModel
    user_vm: UserViewModel

    sync_task: asyncio.Task[None] | None = None


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.cache_db_path.parent.mkdir(parents=True, exist_ok=True)


def _build_remote(settings) -> DocumentStore:
    backend = str(getattr(settings, "remote_backend", "memory") or "memory")
    if backend == "firestore":
        from ..remote.firestore import FirestoreDocumentStore

        try:
            return FirestoreDocumentStore(settings)
        except Exception:
            # Fallback for demos / local runs without credentials.
            logger.exception("Firestore unavailable; using the in-memory remote store")
    return InMemoryDocumentStore()


def _build_identity(settings) -> IdentityProvider:
    backend = str(getattr(settings, "auth_backend", "memory") or "memory")
    if backend == "firebase":
        from ..remote.firebase_auth import FirebaseIdentityProvider

        try:
            return FirebaseIdentityProvider(settings)
        except Exception:
            logger.exception("Firebase Auth unavailable; using the in-memory identity provider")
    return InMemoryIdentityProvider()


def create_initial_state(
    *,
    settings=None,
    remote: DocumentStore | None = None,
    identity: IdentityProvider | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the remote ports) injectable makes the app easier to
    test and avoids hidden global config reads. If settings is None, falls
    back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    cache = CacheStore(settings.cache_db_path)
    remote = remote if remote is not None else _build_remote(settings)
    identity = identity if identity is not None else _build_identity(settings)
    session = Session()

    task_repo = TaskRepository(cache, remote)
    user_repo = UserRepository(cache, remote)
    auth_repo = AuthRepository(cache, remote, identity)

    auth_vm = AuthViewModel(
        LoginUseCase(auth_repo),
        RegisterUseCase(auth_repo),
        LogoutUseCase(auth_repo),
        auth_repo,
        session,
    )
    task_vm = TaskViewModel(
        CreateTaskUseCase(task_repo),
        UpdateTaskUseCase(task_repo),
        DeleteTaskUseCase(task_repo),
        GetTasksUseCase(task_repo),
        task_repo,
        session,
    )
    user_vm = UserViewModel(user_repo)

    logger.info(
        "State ready remote=%s identity=%s cache=%s",
        type(remote).__name__,
        type(identity).__name__,
        settings.cache_db_path,
    )

    return AppState(
        settings=settings,
        cache=cache,
        remote=remote,
        identity=identity,
        session=session,
        task_repository=task_repo,
        user_repository=user_repo,
        auth_repository=auth_repo,
        auth_vm=auth_vm,
        task_vm=task_vm,
        user_vm=user_vm,
    )


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if state.sync_task is not None:
        state.sync_task.cancel()
        try:
            await state.sync_task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Sync loop ended with an error")
        state.sync_task = None

    for vm in (state.task_vm, state.user_vm, state.auth_vm):
        try:
            await vm.close()
        except Exception:
            logger.debug("View model close failed.", exc_info=True)

    for component in (state.identity, state.remote):
        closer = getattr(component, "aclose", None) or getattr(component, "close", None)
        if closer is None:
            continue
        try:
            res = closer()
            if inspect.isawaitable(res):
                await res
        except Exception:
            logger.debug("%s close failed.", type(component).__name__, exc_info=True)

    state.cache.close()
