"""
Logging infrastructure for wenoext.

Provides structured logging with configurable levels, formatting, and colored
console output for reconstruction setup and per-pass monitoring.
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar

import colorlog


class WENOFormatter(logging.Formatter):
    """Formatter for wenoext log records with optional colors and source location."""

    def __init__(self, use_colors: bool = False, include_location: bool = False):
        self.use_colors = use_colors
        self.include_location = include_location

        format_str = "%(asctime)s - %(name)-20s - %(levelname)-8s - %(message)s"
        if self.include_location:
            format_str += " [%(filename)s:%(lineno)d]"

        # colorlog handles the console colors
        if self.use_colors:
            self.colored_formatter = colorlog.ColoredFormatter(
                "%(log_color)s" + format_str,
                datefmt="%Y-%m-%d %H:%M:%S",
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "red,bg_white",
                },
            )

        super().__init__(format_str, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record):
        if self.use_colors:
            return self.colored_formatter.format(record)
        else:
            return super().format(record)


class WENOLogger:
    """
    Central logging manager for wenoext.

    Thread Safety:
        Logger creation uses double-check locking, so worker threads of a
        parallel reconstruction pass can call get_logger() concurrently
        without duplicating handlers.
    """

    _instance = None
    _lock: ClassVar[threading.Lock] = threading.Lock()
    _loggers: ClassVar[dict[str, logging.Logger]] = {}
    _log_level = logging.INFO
    _log_to_file = False
    _log_file_path: Path | None = None
    _use_colors = True
    _include_location = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def configure(
        cls,
        level: str | int = "INFO",
        log_to_file: bool = False,
        log_file_path: str | Path | None = None,
        use_colors: bool = True,
        include_location: bool = False,
    ):
        """
        Configure global logging settings for wenoext.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_to_file: Whether to log to file
            log_file_path: Path to log file (optional)
            use_colors: Use colored terminal output
            include_location: Include file location in log messages
        """
        with cls._lock:
            # Set log level
            if isinstance(level, str):
                cls._log_level = getattr(logging, level.upper())
            else:
                cls._log_level = level

            cls._log_to_file = log_to_file
            cls._use_colors = use_colors
            cls._include_location = include_location

            # Set up log file path
            if log_to_file:
                if log_file_path is None:
                    # Default to a timestamped file under ./logs
                    log_dir = Path.cwd() / "logs"
                    log_dir.mkdir(exist_ok=True)
                    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                    cls._log_file_path = log_dir / f"wenoext_{timestamp}.log"
                else:
                    cls._log_file_path = Path(log_file_path)
                    cls._log_file_path.parent.mkdir(parents=True, exist_ok=True)
            else:
                cls._log_file_path = None

            # Update existing loggers
            for logger in cls._loggers.values():
                cls._setup_logger(logger)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get or create a logger for the specified module.

        Args:
            name: Logger name (typically __name__ from calling module)

        Returns:
            Configured logger instance
        """
        # Fast path without the lock
        if name in cls._loggers:
            return cls._loggers[name]

        # Slow path: double-check under the lock, another worker may have created it
        with cls._lock:
            if name not in cls._loggers:
                logger = logging.getLogger(name)

                # Loggers configured externally keep their handlers
                if not logger.handlers:
                    cls._setup_logger(logger)

                cls._loggers[name] = logger

        return cls._loggers[name]

    @classmethod
    def _setup_logger(cls, logger: logging.Logger):
        """Configure individual logger with current settings."""
        # Clear existing handlers
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
        logger.setLevel(cls._log_level)

        formatter = WENOFormatter(use_colors=cls._use_colors, include_location=cls._include_location)

        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(cls._log_level)
        logger.addHandler(console_handler)

        # File handler (if enabled)
        if cls._log_to_file and cls._log_file_path:
            file_handler = logging.FileHandler(cls._log_file_path)
            # File logs are never colored
            file_handler.setFormatter(WENOFormatter(use_colors=False, include_location=cls._include_location))
            file_handler.setLevel(cls._log_level)
            logger.addHandler(file_handler)

        # Keep records away from the root logger
        logger.propagate = False


# Convenience functions


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a logger for the current module.

    Args:
        name: Logger name (if None, uses calling module name)

    Returns:
        Configured logger instance
    """
    if name is None:
        import inspect

        # Caller's module name
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", "wenoext")
        else:
            name = "wenoext"

    return WENOLogger.get_logger(name)


def configure_logging(**kwargs):
    """
    Configure global logging settings.

    Keyword Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to file
        log_file_path: Path to log file
        use_colors: Use colored terminal output
        include_location: Include file location in messages
    """
    WENOLogger.configure(**kwargs)


def log_reconstruction_start(logger: logging.Logger, pol_order: int, n_geometric_dims: int, config: dict[str, Any]):
    """Log reconstruction setup with configuration."""
    logger.info(f"Reconstruction using WENO{pol_order} ({n_geometric_dims}D version)")
    logger.debug(f"Reconstruction configuration: {config}")


def log_reconstruction_completion(
    logger: logging.Logger,
    n_cells: int,
    n_stencils: int,
    halo_rounds: int,
    execution_time: float,
):
    """Log the summary of one reconstruction pass."""
    logger.debug(
        f"Reconstruction pass completed - cells: {n_cells}, stencil solves: {n_stencils}, "
        f"halo rounds: {halo_rounds}, time: {execution_time:.3f}s"
    )


def log_performance_metric(
    logger: logging.Logger,
    operation: str,
    duration: float,
    additional_metrics: dict[str, Any] | None = None,
):
    """Log performance metrics with optional details."""
    msg = f"Performance - {operation}: {duration:.3f}s"
    if additional_metrics:
        metrics_str = ", ".join(f"{k}: {v}" for k, v in additional_metrics.items())
        msg += f" ({metrics_str})"
    logger.info(msg)


# Context manager for timed setup steps


class LoggedOperation:
    """Context manager for logging timed operations."""

    def __init__(self, logger: logging.Logger, operation_name: str, log_level: int = logging.INFO):
        self.logger = logger
        self.operation_name = operation_name
        self.log_level = log_level
        self.start_time: float | None = None
        self.duration: float | None = None

    def __enter__(self):
        self.logger.log(self.log_level, f"Starting {self.operation_name}")
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - (self.start_time or 0.0)

        if exc_type is None:
            self.logger.log(self.log_level, f"Completed {self.operation_name} in {self.duration:.3f}s")
        else:
            self.logger.error(f"Failed {self.operation_name} after {self.duration:.3f}s: {exc_val}")

        return False  # Don't suppress exceptions
