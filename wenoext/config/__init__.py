"""
Configuration for WENO reconstruction.

Usage:
    >>> from wenoext.config import WENOConfig, load_weno_config
    >>> config = WENOConfig(pol_order=3, dm=500.0)
    >>> config = load_weno_config("system/weno.yaml")
"""

from __future__ import annotations

from .io import load_weno_config, save_weno_config, validate_yaml_config
from .weno_config import LoggingConfig, WENOConfig

__all__ = [
    "LoggingConfig",
    "WENOConfig",
    "load_weno_config",
    "save_weno_config",
    "validate_yaml_config",
]
