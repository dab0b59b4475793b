from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("wenoext")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0-dev"

from .config import WENOConfig, load_weno_config, save_weno_config  # noqa: E402
from .core import (  # noqa: E402
    LOCAL,
    FieldKind,
    PolynomialBasis,
    Stencil,
    StencilCatalog,
    StencilMember,
    n_derivatives,
)
from .parallel import HaloGatherer, HaloTransport, InMemoryTransport  # noqa: E402
from .reconstruction import ReconstructionResult, WENOReconstructor, WeightCombiner  # noqa: E402
from .utils import (  # noqa: E402
    ConfigurationError,
    DimensionMismatchError,
    HaloResolutionError,
    InsufficientStencilError,
    StencilSetupError,
    WENOError,
    configure_logging,
    get_logger,
)

__all__ = [
    "LOCAL",
    "ConfigurationError",
    "DimensionMismatchError",
    "FieldKind",
    "HaloGatherer",
    "HaloResolutionError",
    "HaloTransport",
    "InMemoryTransport",
    "InsufficientStencilError",
    "PolynomialBasis",
    "ReconstructionResult",
    "Stencil",
    "StencilCatalog",
    "StencilMember",
    "StencilSetupError",
    "WENOConfig",
    "WENOError",
    "WENOReconstructor",
    "WeightCombiner",
    "__version__",
    "configure_logging",
    "get_logger",
    "load_weno_config",
    "n_derivatives",
    "save_weno_config",
]
