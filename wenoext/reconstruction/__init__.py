"""
Per-pass reconstruction: stencil solves, smoothness indicators, nonlinear
weighting and the mesh-wide driver.
"""

from __future__ import annotations

from .reconstructor import CellCandidates, WENOReconstructor
from .result import ReconstructionResult
from .smoothness import SmoothnessEvaluator, smoothness_indicator
from .stencil_solver import StencilSolver, apply_operator
from .weights import CENTRAL_STENCIL, WeightCombiner, compute_gammas, compute_weights, stencil_bias

__all__ = [
    "CENTRAL_STENCIL",
    "CellCandidates",
    "ReconstructionResult",
    "SmoothnessEvaluator",
    "StencilSolver",
    "WENOReconstructor",
    "WeightCombiner",
    "apply_operator",
    "compute_gammas",
    "compute_weights",
    "smoothness_indicator",
    "stencil_bias",
]
