"""
Taylor polynomial basis in cell reference space.

A basis is fixed by the polynomial order ``p`` and the dimensionality triple
``(dx, dy, dz)`` of a stencil: the largest monomial degree available along
each reference axis (``dz = 0`` for 2D meshes, smaller values where a stencil
cannot resolve an axis). Its members are the exponent triples ``(n, m, l)``
with ``0 <= n <= dx``, ``0 <= m <= dy``, ``0 <= l <= dz`` and
``0 < n + m + l <= p``, enumerated with ``n`` outermost and ``l`` innermost.

Every coefficient vector in the package follows this ordering: least-squares
operators produce it, oscillation matrices are indexed by it, and the face
interpolation layer consumes it.
"""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

import numpy as np

from wenoext.utils.exceptions import ConfigurationError, DimensionMismatchError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import ArrayLike, NDArray


def n_derivatives(pol_order: int, n_geometric_dims: int) -> int:
    """
    Number of Taylor coefficients of a full basis (constant term excluded).

    ``(p+1)(p+2)(p+3)/6 - 1`` in 3D and ``(p+1)(p+2)/2 - 1`` in 2D.
    """
    if n_geometric_dims == 3:
        return (pol_order + 1) * (pol_order + 2) * (pol_order + 3) // 6 - 1
    if n_geometric_dims == 2:
        return (pol_order + 1) * (pol_order + 2) // 2 - 1
    raise ConfigurationError(
        "n_geometric_dims", n_geometric_dims, valid_range=(2, 3), component="PolynomialBasis"
    )


class PolynomialBasis:
    """
    Ordered monomial multi-indices for one polynomial order and dimensionality.

    Instances are immutable and hashable; two bases compare equal when they
    share order and dimensionality.

    Parameters
    ----------
    pol_order : int
        Polynomial order, at least 1
    dims : Sequence[int]
        Dimensionality triple (dx, dy, dz)

    Examples
    --------
    >>> basis = PolynomialBasis(2, (2, 2, 0))
    >>> basis.exponents
    ((0, 1, 0), (0, 2, 0), (1, 0, 0), (1, 1, 0), (2, 0, 0))
    """

    def __init__(self, pol_order: int, dims: Sequence[int]):
        if int(pol_order) != pol_order or pol_order < 1:
            raise ConfigurationError(
                "pol_order",
                pol_order,
                expected_type=int,
                component="PolynomialBasis",
                reason="polynomial order must be an integer >= 1",
            )
        dims = tuple(int(d) for d in dims)
        if len(dims) != 3 or any(d < 0 for d in dims):
            raise ConfigurationError(
                "dims",
                dims,
                component="PolynomialBasis",
                reason="expected three non-negative per-axis degrees",
            )

        self._pol_order = int(pol_order)
        self._dims: tuple[int, int, int] = dims  # type: ignore[assignment]
        self._exponents = tuple(
            (n, m, l)
            for n in range(dims[0] + 1)
            for m in range(dims[1] + 1)
            for l in range(dims[2] + 1)  # noqa: E741
            if 0 < n + m + l <= self._pol_order
        )

    @classmethod
    def full(cls, pol_order: int, n_geometric_dims: int) -> PolynomialBasis:
        """Basis without any reduced axis: ``(p, p, p)`` in 3D, ``(p, p, 0)`` in 2D."""
        if n_geometric_dims not in (2, 3):
            raise ConfigurationError(
                "n_geometric_dims", n_geometric_dims, valid_range=(2, 3), component="PolynomialBasis"
            )
        dz = pol_order if n_geometric_dims == 3 else 0
        return cls(pol_order, (pol_order, pol_order, dz))

    @property
    def pol_order(self) -> int:
        return self._pol_order

    @property
    def dims(self) -> tuple[int, int, int]:
        return self._dims

    @property
    def exponents(self) -> tuple[tuple[int, int, int], ...]:
        return self._exponents

    @property
    def size(self) -> int:
        return len(self._exponents)

    @cached_property
    def _exponent_array(self) -> NDArray[np.int64]:
        return np.asarray(self._exponents, dtype=np.int64).reshape(-1, 3)

    @cached_property
    def _positions(self) -> dict[tuple[int, int, int], int]:
        return {e: k for k, e in enumerate(self._exponents)}

    def index_of(self, exponent: tuple[int, int, int]) -> int:
        """Position of a multi-index in the coefficient vector."""
        try:
            return self._positions[tuple(exponent)]
        except KeyError:
            raise KeyError(f"Monomial {tuple(exponent)} is not part of {self!r}") from None

    def __contains__(self, exponent) -> bool:
        return tuple(exponent) in self._positions

    def __len__(self) -> int:
        return self.size

    def __iter__(self):
        return iter(self._exponents)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PolynomialBasis):
            return NotImplemented
        return self._pol_order == other._pol_order and self._dims == other._dims

    def __hash__(self) -> int:
        return hash((self._pol_order, self._dims))

    def __repr__(self) -> str:
        return f"PolynomialBasis(pol_order={self._pol_order}, dims={self._dims})"

    def flatten(self, moments: ArrayLike) -> NDArray[np.float64]:
        """
        Collect the basis entries of a dense ``(n, m, l)``-indexed array.

        ``moments`` must cover at least ``(dx+1, dy+1, dz+1)``; typically it
        holds integrals of the basis functions over a cell in reference space.
        A trailing component axis is carried through unchanged.
        """
        moments = np.asarray(moments, dtype=np.float64)
        needed = tuple(d + 1 for d in self._dims)
        if moments.ndim < 3 or any(s < n for s, n in zip(moments.shape[:3], needed, strict=False)):
            raise DimensionMismatchError(
                "moments",
                moments.shape,
                needed,
                component="PolynomialBasis",
                context="flatten needs one entry per (n, m, l) up to the per-axis caps",
            )
        e = self._exponent_array
        return moments[e[:, 0], e[:, 1], e[:, 2]]

    def unflatten(self, vector: ArrayLike) -> NDArray[np.float64]:
        """
        Scatter a coefficient vector back onto its ``(n, m, l)`` positions.

        Returns a ``(dx+1, dy+1, dz+1)`` array (plus any trailing component
        axes); the constant term and monomials above the order stay zero.
        """
        vector = np.asarray(vector, dtype=np.float64)
        if vector.ndim < 1 or vector.shape[0] != self.size:
            raise DimensionMismatchError(
                "coefficient vector", vector.shape, (self.size,), component="PolynomialBasis"
            )
        out = np.zeros(tuple(d + 1 for d in self._dims) + vector.shape[1:])
        e = self._exponent_array
        out[e[:, 0], e[:, 1], e[:, 2]] = vector
        return out

    def embed(self, vector: ArrayLike, target: PolynomialBasis) -> NDArray[np.float64]:
        """
        Re-index a coefficient vector of this basis into ``target``'s layout.

        Monomials of ``target`` absent here receive zero. Every monomial of
        this basis must exist in ``target``.
        """
        vector = np.asarray(vector, dtype=np.float64)
        if vector.ndim < 1 or vector.shape[0] != self.size:
            raise DimensionMismatchError(
                "coefficient vector", vector.shape, (self.size,), component="PolynomialBasis"
            )
        if target == self:
            return vector.copy()
        out = np.zeros((target.size,) + vector.shape[1:])
        out[self.positions_in(target)] = vector
        return out

    def positions_in(self, target: PolynomialBasis) -> NDArray[np.int64]:
        """Index of each monomial of this basis within ``target``."""
        missing = [e for e in self._exponents if e not in target]
        if missing:
            raise ConfigurationError(
                "target",
                target,
                component="PolynomialBasis",
                reason=f"monomials {missing} of {self!r} are not part of the target basis",
            )
        return np.array([target.index_of(e) for e in self._exponents], dtype=np.int64)

    def monomials(self, offsets: ArrayLike) -> NDArray[np.float64]:
        """
        Evaluate every basis monomial at reference-space offsets.

        Parameters
        ----------
        offsets : ArrayLike
            Points relative to the expansion point, shape (3,) or (n_points, 3);
            2D data may pass two columns.

        Returns
        -------
        NDArray
            Shape (size,) for a single point, else (n_points, size)
        """
        pts = np.asarray(offsets, dtype=np.float64)
        single = pts.ndim == 1
        pts = np.atleast_2d(pts)
        if pts.shape[1] == 2:
            pts = np.column_stack([pts, np.zeros(len(pts))])
        if pts.shape[1] != 3:
            raise DimensionMismatchError("offsets", pts.shape, (pts.shape[0], 3), component="PolynomialBasis")
        e = self._exponent_array
        values = np.prod(pts[:, None, :] ** e[None, :, :], axis=2)
        return values[0] if single else values

    def evaluate(self, coefficients: ArrayLike, offsets: ArrayLike) -> NDArray[np.float64]:
        """
        Value of ``sum_k c_k x^n y^m z^l`` at the given offsets.

        The constant term is not part of the basis, so the result is the
        deviation from the cell value.
        """
        coefficients = np.asarray(coefficients, dtype=np.float64)
        if coefficients.ndim < 1 or coefficients.shape[0] != self.size:
            raise DimensionMismatchError(
                "coefficients", coefficients.shape, (self.size,), component="PolynomialBasis"
            )
        return np.tensordot(self.monomials(offsets), coefficients, axes=([-1], [0]))
