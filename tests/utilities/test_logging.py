"""Tests for logger construction."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from sensorlink.utilities.logging import LOG_FORMAT, get_logger


class TestGetLogger:
    """Verify that loggers are configured once with the shared format. This keeps console output uniform across modules."""

    def test_console_only_by_default(self) -> None:
        logger = get_logger("sensorlink.tests.console_only")

        assert logger.propagate is False
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)
        assert logger.handlers[0].formatter._fmt == LOG_FORMAT

    def test_repeated_calls_do_not_stack_handlers(self) -> None:
        get_logger("sensorlink.tests.repeat")
        logger = get_logger("sensorlink.tests.repeat")

        assert len(logger.handlers) == 1

    def test_level_comes_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "warning")

        logger = get_logger("sensorlink.tests.level")

        assert logger.level == logging.WARNING

    def test_log_dir_adds_rotating_file(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("SENSORLINK_LOG_DIR", str(tmp_path / "logs"))

        logger = get_logger("sensorlink.tests.file")
        file_handlers = [
            handler for handler in logger.handlers if isinstance(handler, RotatingFileHandler)
        ]

        assert len(file_handlers) == 1
        assert Path(file_handlers[0].baseFilename) == (
            tmp_path / "logs" / "sensorlink_tests_file.log"
        )
        for handler in file_handlers:
            logger.removeHandler(handler)
            handler.close()
