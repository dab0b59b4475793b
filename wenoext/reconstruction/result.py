"""
Result object of a reconstruction pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from wenoext.core.basis import PolynomialBasis
    from wenoext.core.field_types import FieldKind


@dataclass
class ReconstructionResult:
    """
    Blended Taylor coefficients of every cell.

    Attributes:
        coefficients: (n_cells, n_coeffs) for scalar fields, else
            (n_cells, n_coeffs, *value_shape), ordered like ``basis``
        basis: Mesh-level basis of the coefficient layout; monomials a cell
            cannot resolve hold zero
        field_kind: Value type of the reconstructed field
        weights: Per cell, the nonlinear weight of each of its stencils
            (zero for excluded stencils); (n_stencils,) for scalar fields,
            else (n_stencils, n_components). None unless diagnostics were
            requested.
        indicators: Per cell, the smoothness indicators in the same layout
            (NaN for excluded stencils)
        halo_rounds: Halo exchanges issued by the pass (0 or 1)
        execution_time: Wall time of the pass in seconds
        metadata: Additional information about the pass
    """

    coefficients: NDArray[np.float64]
    basis: PolynomialBasis
    field_kind: FieldKind
    weights: list[NDArray[np.float64]] | None = None
    indicators: list[NDArray[np.float64]] | None = None
    halo_rounds: int = 0
    execution_time: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def n_cells(self) -> int:
        return self.coefficients.shape[0]

    @property
    def has_diagnostics(self) -> bool:
        return self.weights is not None

    def coefficients_of(self, cell: int) -> NDArray[np.float64]:
        return self.coefficients[cell]

    def weights_of(self, cell: int) -> NDArray[np.float64]:
        if self.weights is None:
            raise ValueError("Weights were not stored; enable store_diagnostics in the configuration")
        return self.weights[cell]

    def indicators_of(self, cell: int) -> NDArray[np.float64]:
        if self.indicators is None:
            raise ValueError("Indicators were not stored; enable store_diagnostics in the configuration")
        return self.indicators[cell]

    def summary(self) -> dict[str, Any]:
        return {
            "n_cells": self.n_cells,
            "n_coeffs": self.basis.size,
            "pol_order": self.basis.pol_order,
            "field_kind": self.field_kind.label,
            "halo_rounds": self.halo_rounds,
            "execution_time": self.execution_time,
        }
