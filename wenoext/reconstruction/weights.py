"""
Nonlinear weighting of candidate polynomials.

For the usable stencils of a cell with smoothness indicators ``s_i``:

    gamma_0 = dm / (epsilon + s_0)**p      central stencil
    gamma_i = 1  / (epsilon + s_i)**p      sectorial stencils, i >= 1
    w_i     = gamma_i / sum_j gamma_j
    C       = sum_i w_i c_i

Large ``dm`` makes the reconstruction fall back to the central stencil in
smooth regions; near discontinuities the oscillating candidates receive
vanishing weight. Excluded stencils take no part in either sum.

The weights are evaluated from ``log(gamma)`` shifted by its maximum, which
yields the same ratios without overflow for large ``p``.

Non-scalar fields are blended component by component with the same scalar
routine, each component using its own indicators.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from wenoext.utils.exceptions import DimensionMismatchError, StencilSetupError, validate_parameter_value

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from wenoext.config.weno_config import WENOConfig

CENTRAL_STENCIL = 0


def stencil_bias(stencil_ids: ArrayLike, dm: float) -> NDArray[np.float64]:
    """Linear weight of each stencil: ``dm`` for the central stencil, else 1."""
    ids = np.asarray(stencil_ids)
    return np.where(ids == CENTRAL_STENCIL, dm, 1.0)


def compute_gammas(
    indicators: ArrayLike,
    stencil_ids: ArrayLike | None = None,
    p: float = 4.0,
    dm: float = 1000.0,
    epsilon: float = 1e-5,
) -> NDArray[np.float64]:
    """Unnormalized weights ``bias_i / (epsilon + s_i)**p``."""
    s = np.asarray(indicators, dtype=np.float64)
    ids = np.arange(len(s)) if stencil_ids is None else stencil_ids
    return stencil_bias(ids, dm) / (epsilon + s) ** p


def compute_weights(
    indicators: ArrayLike,
    stencil_ids: ArrayLike | None = None,
    p: float = 4.0,
    dm: float = 1000.0,
    epsilon: float = 1e-5,
) -> NDArray[np.float64]:
    """
    Normalized nonlinear weights of the given stencils.

    Parameters
    ----------
    indicators : ArrayLike
        Smoothness indicator of each stencil taking part, shape (n,)
    stencil_ids : ArrayLike | None
        Stencil index of each entry; index 0 receives the central bias.
        Defaults to ``0 .. n-1``.

    Returns
    -------
    NDArray
        Shape (n,), summing to one
    """
    s = np.asarray(indicators, dtype=np.float64)
    if s.ndim != 1 or s.size == 0:
        raise DimensionMismatchError("indicators", s.shape, ("n_stencils>=1",), component="WeightCombiner")
    ids = np.arange(len(s)) if stencil_ids is None else np.asarray(stencil_ids)
    if ids.shape != s.shape:
        raise DimensionMismatchError("stencil_ids", ids.shape, s.shape, component="WeightCombiner")

    log_gamma = np.log(stencil_bias(ids, dm)) - p * np.log(epsilon + s)
    scaled = np.exp(log_gamma - np.max(log_gamma))
    return scaled / np.sum(scaled)


class WeightCombiner:
    """
    Blends the candidate polynomials of a cell.

    Parameters
    ----------
    p : float
        Sharpening exponent (default: 4)
    dm : float
        Central stencil bias (default: 1000)
    epsilon : float
        Smoothness regularizer (default: 1e-5)
    """

    def __init__(self, p: float = 4.0, dm: float = 1000.0, epsilon: float = 1e-5):
        validate_parameter_value(p, "p", (int, float), (np.finfo(float).tiny, np.inf), component="WeightCombiner")
        validate_parameter_value(dm, "dm", (int, float), (np.finfo(float).tiny, np.inf), component="WeightCombiner")
        validate_parameter_value(
            epsilon, "epsilon", (int, float), (np.finfo(float).tiny, np.inf), component="WeightCombiner"
        )
        self.p = float(p)
        self.dm = float(dm)
        self.epsilon = float(epsilon)

    @classmethod
    def from_config(cls, config: WENOConfig) -> WeightCombiner:
        return cls(p=config.p, dm=config.dm, epsilon=config.epsilon)

    def weights(self, indicators: ArrayLike, stencil_ids: ArrayLike | None = None) -> NDArray[np.float64]:
        return compute_weights(indicators, stencil_ids, p=self.p, dm=self.dm, epsilon=self.epsilon)

    def gammas(self, indicators: ArrayLike, stencil_ids: ArrayLike | None = None) -> NDArray[np.float64]:
        return compute_gammas(indicators, stencil_ids, p=self.p, dm=self.dm, epsilon=self.epsilon)

    @staticmethod
    def _select(n: int, stencil_ids: ArrayLike | None, usable: ArrayLike | None) -> tuple[NDArray, NDArray]:
        ids = np.arange(n) if stencil_ids is None else np.asarray(stencil_ids, dtype=np.int64)
        mask = np.ones(n, dtype=bool) if usable is None else np.asarray(usable, dtype=bool)
        if ids.shape != (n,) or mask.shape != (n,):
            raise DimensionMismatchError(
                "stencil_ids/usable", (ids.shape, mask.shape), ((n,), (n,)), component="WeightCombiner"
            )
        return ids, mask

    def combine_scalar(
        self,
        coefficients: ArrayLike,
        indicators: ArrayLike,
        stencil_ids: ArrayLike | None = None,
        usable: ArrayLike | None = None,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Blend scalar candidate polynomials.

        Parameters
        ----------
        coefficients : ArrayLike
            Shape (n_stencils, k), one coefficient vector per stencil in a
            common basis layout
        indicators : ArrayLike
            Shape (n_stencils,)
        stencil_ids : ArrayLike | None
            Stencil index of each row (default ``0 .. n_stencils-1``)
        usable : ArrayLike | None
            False rows are omitted from the weighting and the blend

        Returns
        -------
        blended : NDArray
            Shape (k,)
        weights : NDArray
            Shape (n_stencils,); exactly zero for omitted rows

        Raises
        ------
        StencilSetupError
            If no row is usable
        """
        c = np.asarray(coefficients, dtype=np.float64)
        s = np.asarray(indicators, dtype=np.float64)
        if c.ndim != 2 or s.shape != (c.shape[0],):
            raise DimensionMismatchError(
                "coefficients/indicators", (c.shape, s.shape), (("n", "k"), ("n",)), component="WeightCombiner"
            )
        ids, mask = self._select(c.shape[0], stencil_ids, usable)
        if not mask.any():
            raise StencilSetupError("No usable stencil left to blend", component="WeightCombiner")

        weights = np.zeros(c.shape[0])
        weights[mask] = self.weights(s[mask], ids[mask])
        blended = weights[mask] @ c[mask]
        return blended, weights

    def combine(
        self,
        coefficients: ArrayLike,
        indicators: ArrayLike,
        stencil_ids: ArrayLike | None = None,
        usable: ArrayLike | None = None,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Blend candidate polynomials of a field with any number of components.

        Parameters
        ----------
        coefficients : ArrayLike
            Shape (n_stencils, k, n_components)
        indicators : ArrayLike
            Shape (n_stencils, n_components)

        Returns
        -------
        blended : NDArray
            Shape (k, n_components)
        weights : NDArray
            Shape (n_stencils, n_components)
        """
        c = np.asarray(coefficients, dtype=np.float64)
        s = np.asarray(indicators, dtype=np.float64)
        if c.ndim != 3 or s.shape != (c.shape[0], c.shape[2]):
            raise DimensionMismatchError(
                "coefficients/indicators",
                (c.shape, s.shape),
                (("n", "k", "n_comp"), ("n", "n_comp")),
                component="WeightCombiner",
            )

        n_comp = c.shape[2]
        blended = np.empty((c.shape[1], n_comp))
        weights = np.empty((c.shape[0], n_comp))
        for comp in range(n_comp):
            blended[:, comp], weights[:, comp] = self.combine_scalar(c[:, :, comp], s[:, comp], stencil_ids, usable)
        return blended, weights
