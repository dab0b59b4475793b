"""
Smoothness indicators of candidate polynomials.

The indicator of a coefficient vector ``c`` is the quadratic form
``s = c^T B c`` with the stencil's oscillation matrix ``B``. ``B`` is
positive semi-definite in exact arithmetic; negative rounding artifacts are
clamped to zero.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from wenoext.utils.exceptions import StencilSetupError

if TYPE_CHECKING:
    from numpy.typing import NDArray


def smoothness_indicator(coefficients: NDArray[np.float64], oscillation: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Evaluate ``c^T B c`` per component.

    Parameters
    ----------
    coefficients : NDArray
        Shape (k,) or (k, n_components)
    oscillation : NDArray
        Shape (k, k)

    Returns
    -------
    NDArray
        Shape () for a 1-D input, else (n_components,); never negative
    """
    c = np.asarray(coefficients, dtype=np.float64)
    k = c.shape[0] if c.ndim else 0
    if oscillation.shape != (k, k):
        raise StencilSetupError(
            "Oscillation matrix does not match the coefficient vector",
            component="SmoothnessEvaluator",
            diagnostic_data={"oscillation_shape": oscillation.shape, "coefficients_shape": c.shape},
        )
    if c.ndim == 1:
        s = np.einsum("i,ij,j->", c, oscillation, c)
    else:
        s = np.einsum("ic,ij,jc->c", c, oscillation, c)
    return np.maximum(s, 0.0)


class SmoothnessEvaluator:
    """Applies the oscillation matrices of a catalog."""

    def __init__(self, catalog):
        self.catalog = catalog

    def evaluate(self, cell: int, stencil: int, coefficients: NDArray[np.float64]) -> NDArray[np.float64]:
        try:
            return smoothness_indicator(coefficients, self.catalog.oscillation_matrix_of(cell, stencil))
        except StencilSetupError as e:
            raise StencilSetupError(
                "Oscillation matrix does not match the coefficient vector",
                cell=cell,
                stencil=stencil,
                component="SmoothnessEvaluator",
                diagnostic_data=e.diagnostic_data,
            ) from e
