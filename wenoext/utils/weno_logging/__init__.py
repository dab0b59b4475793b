"""
Logging utilities for wenoext.

Usage:
    >>> from wenoext.utils.weno_logging import get_logger, configure_logging
    >>> logger = get_logger(__name__)
    >>> configure_logging(level="DEBUG")
    >>> logger.info("Starting reconstruction...")
"""

from __future__ import annotations

from .logger import (
    LoggedOperation,
    WENOLogger,
    configure_logging,
    get_logger,
    log_performance_metric,
    log_reconstruction_completion,
    log_reconstruction_start,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "log_performance_metric",
    "log_reconstruction_completion",
    "log_reconstruction_start",
    "LoggedOperation",
    "WENOLogger",
]
