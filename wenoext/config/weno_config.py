"""
Reconstruction configuration classes.

The configuration is read once at setup and never per pass. It fixes the
polynomial order and the three constants of the nonlinear weighting:

    gamma_0 = dm / (epsilon + s_0)**p      (central stencil)
    gamma_i = 1  / (epsilon + s_i)**p      (sectorial stencils)
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from wenoext.utils.weno_logging import configure_logging


class LoggingConfig(BaseModel):
    """
    Logging section of a reconstruction configuration.

    Reconstructors never touch the global logging setup; call ``apply()``
    once at program start to install these settings.

    Attributes
    ----------
    level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
        Logging level (default: INFO)
    use_colors : bool
        Colored console output (default: True)
    log_to_file : bool
        Also write records to a log file (default: False)
    log_file_path : str | None
        Log file; a timestamped file under ./logs when omitted

    Examples
    --------
    >>> config = load_weno_config("weno.yaml")
    >>> config.logging.apply()
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    use_colors: bool = True
    log_to_file: bool = False
    log_file_path: str | None = None

    def apply(self) -> None:
        """Configure the wenoext loggers with these settings."""
        configure_logging(**self.model_dump())


class WENOConfig(BaseModel):
    """
    WENO reconstruction configuration.

    Attributes
    ----------
    pol_order : int
        Order of the Taylor polynomials (default: 2)
    p : float
        Sharpening exponent of the nonlinear weights (default: 4)
    dm : float
        Bias of the central stencil (default: 1000)
    epsilon : float
        Smoothness regularizer preventing division by zero (default: 1e-5)
    num_workers : int
        Worker threads for the per-cell phase; 1 runs sequentially (default: 1)
    chunk_size : int | None
        Cells per work item; None splits the mesh evenly across workers
    store_diagnostics : bool
        Keep per-cell weights and smoothness indicators in the result
        (default: False)
    logging : LoggingConfig
        Logging configuration

    Examples
    --------
    >>> config = WENOConfig(pol_order=3)
    >>> config = WENOConfig(pol_order=2, p=2.0, dm=100.0, num_workers=4)
    """

    pol_order: int = Field(default=2, ge=1)
    p: float = Field(default=4.0, gt=0)
    dm: float = Field(default=1000.0, gt=0)
    epsilon: float = Field(default=1e-5, gt=0)
    num_workers: int = Field(default=1, ge=1)
    chunk_size: int | None = Field(default=None, ge=1)
    store_diagnostics: bool = False
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def weighting_parameters(self) -> dict[str, float]:
        """Return the constants of the nonlinear weighting."""
        return {"p": self.p, "dm": self.dm, "epsilon": self.epsilon}
