# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from worksync.cache.store import CacheStore
from worksync.cli.bootstrap import AppState, create_initial_state
from worksync.repositories.auth_repository import AuthRepository
from worksync.repositories.task_repository import TaskRepository
from worksync.repositories.user_repository import UserRepository

from .fakes import CountingIdentityProvider, FlakyDocumentStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="worksync-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        cache_db_path=tmp_path / "cache.sqlite3",
        remote_backend="memory",
        auth_backend="memory",
        firebase_project_id="",
        firebase_api_key=None,
        firestore_database="(default)",
        auth_timeout_seconds=5.0,
        sync_interval_seconds=0.0,
        console_enabled=False,
    )


@pytest.fixture()
def cache(settings: SimpleNamespace) -> CacheStore:
    return CacheStore(settings.cache_db_path)


@pytest.fixture()
def remote() -> FlakyDocumentStore:
    return FlakyDocumentStore()


@pytest.fixture()
def identity() -> CountingIdentityProvider:
    return CountingIdentityProvider()


@pytest.fixture()
def task_repo(cache: CacheStore, remote: FlakyDocumentStore) -> TaskRepository:
    return TaskRepository(cache, remote)


@pytest.fixture()
def user_repo(cache: CacheStore, remote: FlakyDocumentStore) -> UserRepository:
    return UserRepository(cache, remote)


@pytest.fixture()
def auth_repo(cache: CacheStore, remote: FlakyDocumentStore, identity: CountingIdentityProvider) -> AuthRepository:
    return AuthRepository(cache, remote, identity)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    remote: FlakyDocumentStore,
    identity: CountingIdentityProvider,
) -> AppState:
    """
    AppState wired with the in-memory remote fakes.

    NOTE: the SQLite cache is real (tmp_path) because its correctness is
    part of what we want to test.
    """
    return create_initial_state(settings=settings, remote=remote, identity=identity)
