"""
Unit tests for wenoext.utils.weno_logging.

Tests include:
- Thread safety of logger creation
- Handler deduplication and caching
- Reconfiguration of existing loggers
- Timed operations
"""

from __future__ import annotations

import concurrent.futures
import logging

import pytest

from wenoext.utils.weno_logging import (
    LoggedOperation,
    configure_logging,
    get_logger,
    log_performance_metric,
    log_reconstruction_completion,
    log_reconstruction_start,
)
from wenoext.utils.weno_logging.logger import WENOLogger


@pytest.fixture(autouse=True)
def clean_test_loggers():
    """Drop loggers created by these tests and restore the default configuration."""
    yield
    for name in [k for k in WENOLogger._loggers if k.startswith("test.")]:
        del WENOLogger._loggers[name]
        logging.getLogger(name).handlers.clear()
    configure_logging(level="INFO", use_colors=True)


class TestLoggerCreation:
    def test_logger_is_cached(self):
        assert get_logger("test.cached") is get_logger("test.cached")

    def test_single_console_handler(self):
        logger = get_logger("test.handlers")
        assert len(logger.handlers) == 1
        assert not logger.propagate

    def test_concurrent_creation_no_duplicate_handlers(self):
        def create(i: int) -> int:
            return len(get_logger(f"test.thread_{i % 5}").handlers)

        with concurrent.futures.ThreadPoolExecutor(max_workers=10) as executor:
            counts = list(executor.map(create, range(50)))

        assert set(counts) == {1}

    def test_default_name_is_calling_module(self):
        assert get_logger().name == __name__


class TestConfiguration:
    def test_level_applies_to_existing_loggers(self):
        logger = get_logger("test.levels")
        configure_logging(level="DEBUG")
        assert logger.level == logging.DEBUG
        configure_logging(level="WARNING")
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1

    def test_log_to_file(self, tmp_path):
        log_file = tmp_path / "logs" / "weno.log"
        configure_logging(level="INFO", log_to_file=True, log_file_path=log_file, use_colors=False)
        logger = get_logger("test.file")
        logger.info("written to file")
        for handler in logger.handlers:
            handler.flush()

        assert len(logger.handlers) == 2
        assert "written to file" in log_file.read_text()

        configure_logging(level="INFO")
        for handler in logger.handlers:
            handler.close()


class TestMessages:
    def test_reconstruction_start(self, capsys):
        configure_logging(level="INFO", use_colors=False)
        logger = get_logger("test.start")
        log_reconstruction_start(logger, 2, 3, {"dm": 1000.0})
        assert "Reconstruction using WENO2 (3D version)" in capsys.readouterr().out

    def test_completion_is_debug(self, capsys):
        configure_logging(level="INFO", use_colors=False)
        logger = get_logger("test.completion")
        log_reconstruction_completion(logger, 10, 40, 1, 0.01)
        assert capsys.readouterr().out == ""

        configure_logging(level="DEBUG", use_colors=False)
        log_reconstruction_completion(logger, 10, 40, 1, 0.01)
        out = capsys.readouterr().out
        assert "stencil solves: 40" in out
        assert "halo rounds: 1" in out

    def test_performance_metric(self, capsys):
        configure_logging(level="INFO", use_colors=False)
        log_performance_metric(get_logger("test.perf"), "pass", 0.5, {"cells": 36})
        assert "Performance - pass: 0.500s (cells: 36)" in capsys.readouterr().out


class TestLoggedOperation:
    def test_duration_is_recorded(self, capsys):
        configure_logging(level="INFO", use_colors=False)
        with LoggedOperation(get_logger("test.op"), "setup") as op:
            pass
        assert op.duration is not None
        assert op.duration >= 0.0
        out = capsys.readouterr().out
        assert "Starting setup" in out
        assert "Completed setup" in out

    def test_exception_is_not_suppressed(self, capsys):
        configure_logging(level="INFO", use_colors=False)
        with pytest.raises(RuntimeError):
            with LoggedOperation(get_logger("test.op_fail"), "setup"):
                raise RuntimeError("boom")
        assert "Failed setup" in capsys.readouterr().out


class TestReconstructorLogging:
    def test_reconstructor_keeps_caller_configuration(self, tmp_path, small_grid):
        from wenoext.reconstruction import WENOReconstructor
        from wenoext.reconstruction import reconstructor as reconstructor_module

        log_file = tmp_path / "weno.log"
        configure_logging(level="DEBUG", log_to_file=True, log_file_path=log_file, use_colors=False)
        logger = reconstructor_module.logger

        WENOReconstructor(small_grid.catalog)

        assert logger.level == logging.DEBUG
        assert sorted(type(h).__name__ for h in logger.handlers) == ["FileHandler", "StreamHandler"]
        for handler in logger.handlers:
            handler.flush()
        assert "Reconstruction using WENO2 (2D version)" in log_file.read_text()

    def test_logging_config_apply(self, tmp_path):
        from wenoext.config import LoggingConfig

        log_file = tmp_path / "applied.log"
        LoggingConfig(level="WARNING", use_colors=False, log_to_file=True, log_file_path=str(log_file)).apply()
        logger = get_logger("test.applied")
        logger.info("dropped")
        logger.warning("kept")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.WARNING
        text = log_file.read_text()
        assert "kept" in text
        assert "dropped" not in text
