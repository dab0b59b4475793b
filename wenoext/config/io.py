"""
YAML I/O for reconstruction configurations.

Keys missing from the file keep their defaults, so a file containing only
``pol_order: 3`` is a complete configuration.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from .weno_config import WENOConfig


def load_weno_config(path: str | Path) -> WENOConfig:
    """
    Load a reconstruction configuration from a YAML file.

    Parameters
    ----------
    path : str | Path
        Path to YAML configuration file

    Returns
    -------
    WENOConfig
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If configuration file doesn't exist
    ValueError
        If the YAML is malformed or the configuration is invalid

    YAML Format
    -----------
    pol_order: 3
    p: 4.0
    dm: 1000.0
    epsilon: 1.0e-5
    num_workers: 4
    logging:
      level: DEBUG
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in {path}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ValueError(f"Invalid configuration in {path}: expected a mapping, got {type(data).__name__}")

    try:
        return WENOConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}:\n{e}") from e


def save_weno_config(config: WENOConfig, path: str | Path) -> None:
    """
    Save a reconstruction configuration to a YAML file.

    Parameters
    ----------
    config : WENOConfig
        Configuration to save
    path : str | Path
        Output file path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(exclude_none=True, mode="json")

    with open(path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False, indent=2)


def validate_yaml_config(path: str | Path) -> tuple[bool, str]:
    """
    Validate a YAML configuration file without keeping the result.

    Returns
    -------
    tuple[bool, str]
        (is_valid, message)
    """
    try:
        load_weno_config(path)
        return True, "Configuration is valid"
    except (FileNotFoundError, ValueError) as e:
        return False, str(e)
