"""
Per-stencil Taylor coefficients from a precomputed least-squares operator.

For cell ``i`` and stencil ``s`` with members ``j_1 .. j_n`` the right-hand
side is ``b_k = u(j_k) - u(i)`` and the coefficients are ``c = L_s b``, where
``L_s`` is the stencil's pseudoinverse. Any distance weighting is already part
of ``L_s``. Non-scalar fields are solved for all components at once; each
column of ``b`` is an independent scalar problem sharing ``L_s``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from wenoext.utils.exceptions import HaloResolutionError, StencilSetupError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from wenoext.core.stencil_catalog import StencilCatalog
    from wenoext.parallel.halo import HaloValueCache


def apply_operator(operator: NDArray[np.float64], rhs: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Multiply a least-squares operator with a stacked right-hand side.

    Parameters
    ----------
    operator : NDArray
        Shape (n_coeffs, n_members)
    rhs : NDArray
        Shape (n_members,) or (n_members, n_components)

    Raises
    ------
    StencilSetupError
        If the operator does not match the number of right-hand side rows
    """
    if operator.ndim != 2 or operator.shape[1] != rhs.shape[0]:
        raise StencilSetupError(
            "Least-squares operator does not match the number of stencil members",
            component="StencilSolver",
            diagnostic_data={"operator_shape": operator.shape, "rhs_shape": rhs.shape},
        )
    return operator @ rhs


class StencilSolver:
    """
    Computes the Taylor coefficients of one stencil of one cell.

    Parameters
    ----------
    catalog : StencilCatalog
        Shared, read-only stencil catalog
    """

    def __init__(self, catalog: StencilCatalog):
        self.catalog = catalog

    def member_values(
        self,
        cell: int,
        stencil: int,
        components: NDArray[np.float64],
        halo: HaloValueCache | None = None,
    ) -> NDArray[np.float64]:
        """
        Field values of the members of a stencil, shape (n_members, n_components).

        Local members are read from ``components``, halo members from the
        pass's halo cache.
        """
        st = self.catalog.stencil(cell, stencil)
        values = np.empty((st.n_members, components.shape[1]))

        local = st.local_mask
        values[local] = components[st.member_indices[local]]

        if not local.all():
            if halo is None:
                raise HaloResolutionError(
                    "Stencil references halo cells but no halo values were gathered", cell=cell, stencil=stencil
                )
            slots, halo_values = halo.member_values(cell, stencil)
            if len(slots) != st.n_members - int(local.sum()):
                raise HaloResolutionError(
                    "Halo cache does not cover every halo member of the stencil", cell=cell, stencil=stencil
                )
            values[slots] = halo_values

        return values

    def rhs(
        self,
        cell: int,
        stencil: int,
        components: NDArray[np.float64],
        halo: HaloValueCache | None = None,
    ) -> NDArray[np.float64]:
        """Differences between member values and the cell's own value."""
        return self.member_values(cell, stencil, components, halo) - components[cell]

    def solve(
        self,
        cell: int,
        stencil: int,
        components: NDArray[np.float64],
        halo: HaloValueCache | None = None,
    ) -> NDArray[np.float64]:
        """
        Taylor coefficients of one stencil.

        Parameters
        ----------
        cell, stencil : int
            Cell and stencil index
        components : NDArray
            Local field, shape (n_cells, n_components)
        halo : HaloValueCache | None
            Halo values of the current pass

        Returns
        -------
        NDArray
            Shape (n_coeffs, n_components), ordered like the stencil's basis
        """
        st = self.catalog.stencil(cell, stencil)
        if not st.usable:
            raise StencilSetupError("Cannot solve an excluded stencil", cell=cell, stencil=stencil)
        b = self.rhs(cell, stencil, components, halo)
        try:
            return apply_operator(st.operator, b)
        except StencilSetupError as e:
            raise StencilSetupError(
                "Least-squares operator does not match the number of stencil members",
                cell=cell,
                stencil=stencil,
                component="StencilSolver",
                diagnostic_data=e.diagnostic_data,
            ) from e
