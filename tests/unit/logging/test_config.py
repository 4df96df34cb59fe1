"""Unit tests for logging configuration."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
import structlog

from linkerd_adapter.logging.config import (
    CONSOLE_HANDLER,
    FILE_HANDLER,
    NOISY_LOGGERS,
    RETENTION_DAYS,
    _cleanup_old_logs,
    _setup_file_logging,
    configure_logging,
    get_logger,
    operation_context,
)


@pytest.fixture(autouse=True)
def _reset_root_logger() -> Any:
    """Remove handlers added by configure_logging after each test."""
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    yield
    root.handlers = original_handlers


def _age(path: Path, days: int) -> None:
    stamp = (datetime.now() - timedelta(days=days)).timestamp()
    os.utime(path, (stamp, stamp))


def console_handler() -> logging.Handler:
    return next(h for h in logging.getLogger().handlers if h.get_name() == CONSOLE_HANDLER)


@pytest.mark.unit
class TestCleanupOldLogs:
    """Tests for _cleanup_old_logs function."""

    def test_missing_log_dir_is_ignored(self, tmp_path: Path) -> None:
        with patch("linkerd_adapter.logging.config.LOG_DIR", tmp_path / "missing"):
            _cleanup_old_logs()

    def test_expired_rotations_are_removed(self, tmp_path: Path) -> None:
        expired = tmp_path / "adapter.log.3"
        expired.write_text("{}")
        _age(expired, RETENTION_DAYS + 1)
        recent = tmp_path / "adapter.log"
        recent.write_text("{}")

        with patch("linkerd_adapter.logging.config.LOG_DIR", tmp_path):
            _cleanup_old_logs()

        assert not expired.exists()
        assert recent.exists()

    def test_unrelated_files_are_kept(self, tmp_path: Path) -> None:
        other = tmp_path / "notes.txt"
        other.write_text("keep me")
        _age(other, RETENTION_DAYS + 10)

        with patch("linkerd_adapter.logging.config.LOG_DIR", tmp_path):
            _cleanup_old_logs()

        assert other.exists()

    def test_unlink_failure_does_not_raise(self, tmp_path: Path) -> None:
        expired = tmp_path / "adapter.log.1"
        expired.write_text("{}")
        _age(expired, RETENTION_DAYS + 5)

        with (
            patch("linkerd_adapter.logging.config.LOG_DIR", tmp_path),
            patch.object(Path, "unlink", side_effect=OSError("read-only")),
        ):
            _cleanup_old_logs()


@pytest.mark.unit
class TestSetupFileLogging:
    """Tests for _setup_file_logging function."""

    def test_adds_rotating_handler(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "state"

        with (
            patch("linkerd_adapter.logging.config.LOG_DIR", log_dir),
            patch("linkerd_adapter.logging.config.LOG_FILE", log_dir / "adapter.log"),
            patch("linkerd_adapter.logging.config._cleanup_old_logs") as cleanup,
        ):
            _setup_file_logging()
            _setup_file_logging()

            names = [h.get_name() for h in logging.getLogger().handlers]
            assert names.count(FILE_HANDLER) == 1
            assert log_dir.is_dir()
            assert cleanup.call_count == 2


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_file_logging_enabled_by_default(self) -> None:
        with patch("linkerd_adapter.logging.config._setup_file_logging") as setup:
            configure_logging()
        setup.assert_called_once()

    def test_file_logging_can_be_disabled(self) -> None:
        with patch("linkerd_adapter.logging.config._setup_file_logging") as setup:
            configure_logging(log_to_file=False)
        setup.assert_not_called()

    @pytest.mark.parametrize(
        ("kwargs", "level"),
        [
            ({}, logging.WARNING),
            ({"verbose": True}, logging.INFO),
            ({"debug": True}, logging.DEBUG),
        ],
    )
    def test_console_handler_level(self, kwargs: dict[str, bool], level: int) -> None:
        configure_logging(log_to_file=False, **kwargs)
        assert console_handler().level == level

    def test_repeated_calls_replace_console_handler(self) -> None:
        configure_logging(log_to_file=False)
        configure_logging(verbose=True, log_to_file=False)

        names = [h.get_name() for h in logging.getLogger().handlers]
        assert names.count(CONSOLE_HANDLER) == 1
        assert console_handler().level == logging.INFO

    @pytest.mark.parametrize("name", NOISY_LOGGERS)
    def test_client_libraries_never_below_info(self, name: str) -> None:
        configure_logging(debug=True, log_to_file=False)
        assert logging.getLogger(name).level == logging.INFO

    def test_json_output(self) -> None:
        configure_logging(json_output=True, log_to_file=False)


@pytest.mark.unit
class TestGetLogger:
    """Tests for get_logger function."""

    def test_returns_logger(self) -> None:
        assert get_logger("adapter") is not None

    def test_binds_initial_context(self) -> None:
        assert get_logger("adapter", entity="events") is not None


@pytest.mark.unit
class TestOperationContext:
    """Tests for operation_context."""

    def test_binds_and_restores(self) -> None:
        structlog.contextvars.clear_contextvars()

        with operation_context("op-1", op_name="linkerd_install"):
            bound = structlog.contextvars.get_contextvars()
            assert bound == {"operation_id": "op-1", "op_name": "linkerd_install"}

        assert structlog.contextvars.get_contextvars() == {}

    @pytest.mark.asyncio
    async def test_visible_in_worker_threads(self) -> None:
        structlog.contextvars.clear_contextvars()
        with operation_context("op-2"):
            seen = await asyncio.to_thread(structlog.contextvars.get_contextvars)

        assert seen == {"operation_id": "op-2"}
