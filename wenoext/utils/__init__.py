"""Shared utilities: structured exceptions and logging."""

from __future__ import annotations

from .exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    HaloResolutionError,
    InsufficientStencilError,
    StencilSetupError,
    WENOError,
    validate_array_dimensions,
    validate_parameter_value,
)
from .weno_logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DimensionMismatchError",
    "HaloResolutionError",
    "InsufficientStencilError",
    "StencilSetupError",
    "WENOError",
    "configure_logging",
    "get_logger",
    "validate_array_dimensions",
    "validate_parameter_value",
]
