# tests/test_bootstrap.py

from __future__ import annotations

import asyncio
import logging

import pytest

from worksync.cli.bootstrap import create_initial_state, shutdown_state
from worksync.connectors.console_connector import run_console_loop
from worksync.logging_setup import LOG_FILE_NAME, _ConsoleNoiseFilter, setup_logging
from worksync.remote.memory import InMemoryDocumentStore, InMemoryIdentityProvider


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_quiets_sync_and_third_party() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("worksync.repositories.task_repository", logging.INFO))
    assert not f.filter(_record("worksync.sync.poller", logging.INFO))
    assert f.filter(_record("worksync.sync.poller", logging.WARNING))
    assert not f.filter(_record("httpx", logging.WARNING))
    assert f.filter(_record("google.api_core", logging.ERROR))
    assert not f.filter(_record("worksync.cache.live", logging.INFO))


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


def test_setup_logging_reads_settings(settings, restore_root_logger) -> None:
    settings.log_level = "warning"

    log_file = setup_logging(settings)

    assert log_file == settings.data_dir / LOG_FILE_NAME
    console, file_handler = restore_root_logger.handlers
    assert console.level == logging.WARNING
    assert file_handler.level == logging.DEBUG

    logging.getLogger("worksync.sync.poller").debug("pulled 3 tasks")
    file_handler.flush()
    assert "pulled 3 tasks" in log_file.read_text(encoding="utf-8")


def test_setup_logging_unknown_level_defaults_to_info(settings, restore_root_logger, tmp_path) -> None:
    settings.log_level = "chatty"
    setup_logging(settings, log_dir=tmp_path / "logs")
    assert restore_root_logger.handlers[0].level == logging.INFO
    assert (tmp_path / "logs" / LOG_FILE_NAME).exists()


def test_unconfigured_cloud_backends_fall_back_to_memory(settings) -> None:
    settings.remote_backend = "firestore"
    settings.auth_backend = "firebase"

    state = create_initial_state(settings=settings)

    assert isinstance(state.remote, InMemoryDocumentStore)
    assert isinstance(state.identity, InMemoryIdentityProvider)
    assert settings.cache_db_path.exists()


@pytest.mark.asyncio
async def test_shutdown_cancels_sync_task(state) -> None:
    state.sync_task = asyncio.create_task(asyncio.sleep(60))
    state.task_vm.load_all_tasks()

    await shutdown_state(state)

    assert state.sync_task is None
    assert state.task_vm.active_jobs == []


@pytest.mark.asyncio
async def test_console_loop_runs_commands_until_exit(state, monkeypatch, capsys) -> None:
    lines = iter(["", "hello", "/status", "/exit", "/help"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(lines))

    await run_console_loop(state)

    out = capsys.readouterr().out
    assert "Commands start with '/'" in out
    assert "not logged in" in out
    assert "Available commands" not in out
