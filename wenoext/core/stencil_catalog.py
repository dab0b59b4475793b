"""
Stencil catalog: per-cell candidate stencils and their precomputed operators.

The catalog is built once per mesh and polynomial order and is read-only
afterwards. All matrices are copied on construction and flagged non-writeable,
so a single catalog can be shared by every worker of a parallel reconstruction
pass without synchronization.

Member classification follows the partition layout of the mesh:

- ``patch == -1``: a local cell, ``index`` is its cell id on this partition
- ``patch >= 0``: a halo cell reached through processor patch ``patch``;
  ``index`` is its cell id on the neighbouring partition
  ``patch_to_proc[patch]``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from wenoext.core.basis import PolynomialBasis
from wenoext.utils.exceptions import ConfigurationError, InsufficientStencilError, StencilSetupError
from wenoext.utils.weno_logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from numpy.typing import ArrayLike, NDArray

logger = get_logger(__name__)

LOCAL = -1


class StencilMember(NamedTuple):
    """One member cell of a stencil."""

    index: int
    patch: int = LOCAL

    @property
    def is_halo(self) -> bool:
        return self.patch != LOCAL


class HaloMemberRef(NamedTuple):
    """Position of a halo member inside the catalog."""

    cell: int
    stencil: int
    slot: int
    member: StencilMember


def _frozen(matrix: ArrayLike) -> NDArray[np.float64]:
    arr = np.array(matrix, dtype=np.float64, copy=True)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class Stencil:
    """
    One candidate stencil of a cell.

    Attributes
    ----------
    members : tuple[StencilMember, ...]
        Member cells in the column order of ``operator``; the cell itself is
        not a member
    dims : tuple[int, int, int]
        Dimensionality triple of the fit
    operator : NDArray
        Least-squares pseudoinverse, shape (n_coeffs, n_members)
    oscillation : NDArray
        Symmetric oscillation matrix, shape (n_coeffs, n_coeffs)
    usable : bool
        False excludes the stencil from the reconstruction of its cell
    """

    members: tuple[StencilMember, ...]
    dims: tuple[int, int, int]
    operator: NDArray[np.float64]
    oscillation: NDArray[np.float64]
    usable: bool = True
    _member_index: NDArray[np.int64] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        members = tuple(m if isinstance(m, StencilMember) else StencilMember(*m) for m in self.members)
        object.__setattr__(self, "members", members)
        object.__setattr__(self, "dims", tuple(int(d) for d in self.dims))
        object.__setattr__(self, "operator", _frozen(self.operator))
        object.__setattr__(self, "oscillation", _frozen(self.oscillation))
        index = np.array([m.index for m in members], dtype=np.int64)
        index.flags.writeable = False
        object.__setattr__(self, "_member_index", index)

    @classmethod
    def excluded(cls, dims: Sequence[int] = (0, 0, 0)) -> Stencil:
        """Placeholder for a stencil that could not be built for a cell."""
        return cls(
            members=(),
            dims=tuple(dims),
            operator=np.zeros((0, 0)),
            oscillation=np.zeros((0, 0)),
            usable=False,
        )

    @property
    def n_members(self) -> int:
        return len(self.members)

    @property
    def has_halo(self) -> bool:
        return any(m.is_halo for m in self.members)

    @property
    def local_mask(self) -> NDArray[np.bool_]:
        return np.array([not m.is_halo for m in self.members], dtype=bool)

    @property
    def member_indices(self) -> NDArray[np.int64]:
        return self._member_index


class StencilCatalog:
    """
    Read-only collection of the stencils of every cell.

    Parameters
    ----------
    stencils : Sequence[Sequence[Stencil]]
        ``stencils[cell][s]``; stencil 0 is the central stencil, the others
        are sectorial
    pol_order : int
        Polynomial order the operators were built for
    n_geometric_dims : int
        2 for meshes with a single layer of cells in z, else 3
    patch_to_proc : Sequence[int]
        Owning partition of each processor patch referenced by halo members

    Raises
    ------
    StencilSetupError
        Operator or oscillation shapes inconsistent with the members and the
        basis, unknown patches, invalid dimensionality, cells without
        stencils
    InsufficientStencilError
        A usable stencil has fewer members than coefficients
    """

    def __init__(
        self,
        stencils: Sequence[Sequence[Stencil]],
        pol_order: int,
        n_geometric_dims: int = 3,
        patch_to_proc: Sequence[int] = (),
    ):
        if n_geometric_dims not in (2, 3):
            raise ConfigurationError(
                "n_geometric_dims", n_geometric_dims, valid_range=(2, 3), component="StencilCatalog"
            )
        self._pol_order = int(pol_order)
        self._n_geometric_dims = int(n_geometric_dims)
        self._full_basis = PolynomialBasis.full(self._pol_order, self._n_geometric_dims)
        self._patch_to_proc = tuple(int(p) for p in patch_to_proc)
        self._stencils: tuple[tuple[Stencil, ...], ...] = tuple(tuple(cell) for cell in stencils)
        self._bases: dict[tuple[int, int, int], PolynomialBasis] = {}
        self._cell_bases: list[PolynomialBasis] = []

        for cell, cell_stencils in enumerate(self._stencils):
            self._validate_cell(cell, cell_stencils)

        n_usable = sum(s.usable for cell in self._stencils for s in cell)
        logger.debug(
            f"StencilCatalog: {self.n_cells} cells, {n_usable} usable stencils, "
            f"order {self._pol_order}, {self._n_geometric_dims}D"
        )

    def _basis(self, dims: tuple[int, int, int]) -> PolynomialBasis:
        if dims not in self._bases:
            self._bases[dims] = PolynomialBasis(self._pol_order, dims)
        return self._bases[dims]

    def _validate_cell(self, cell: int, cell_stencils: tuple[Stencil, ...]) -> None:
        if not cell_stencils:
            raise StencilSetupError("Cell has no stencils", cell=cell)

        usable_dims = []
        for s, stencil in enumerate(cell_stencils):
            if not isinstance(stencil, Stencil):
                raise StencilSetupError(f"Expected a Stencil, got {type(stencil).__name__}", cell=cell, stencil=s)
            if not stencil.usable:
                continue

            dims = stencil.dims
            max_z = self._pol_order if self._n_geometric_dims == 3 else 0
            if (
                len(dims) != 3
                or not all(0 <= d <= self._pol_order for d in dims)
                or dims[2] > max_z
            ):
                raise StencilSetupError(
                    f"Invalid dimensionality {dims} for order {self._pol_order} on a "
                    f"{self._n_geometric_dims}D mesh",
                    cell=cell,
                    stencil=s,
                )

            basis = self._basis(dims)
            if stencil.n_members < basis.size:
                raise InsufficientStencilError(cell, s, stencil.n_members, basis.size, self._pol_order)

            if stencil.operator.shape != (basis.size, stencil.n_members):
                raise StencilSetupError(
                    "Least-squares operator shape does not match the stencil",
                    cell=cell,
                    stencil=s,
                    diagnostic_data={
                        "operator_shape": stencil.operator.shape,
                        "expected_shape": (basis.size, stencil.n_members),
                    },
                )
            if stencil.oscillation.shape != (basis.size, basis.size):
                raise StencilSetupError(
                    "Oscillation matrix shape does not match the basis",
                    cell=cell,
                    stencil=s,
                    diagnostic_data={
                        "oscillation_shape": stencil.oscillation.shape,
                        "expected_shape": (basis.size, basis.size),
                    },
                )

            for member in stencil.members:
                if member.is_halo:
                    if not 0 <= member.patch < len(self._patch_to_proc):
                        raise StencilSetupError(
                            f"Halo member refers to unknown patch {member.patch}", cell=cell, stencil=s
                        )
                elif not 0 <= member.index < len(self._stencils):
                    raise StencilSetupError(
                        f"Local member {member.index} is outside the mesh", cell=cell, stencil=s
                    )
                if member.index < 0:
                    raise StencilSetupError(f"Negative member index {member.index}", cell=cell, stencil=s)

            usable_dims.append(dims)

        if not usable_dims:
            # Resolved per pass: the cell cannot be reconstructed at all
            self._cell_bases.append(self._full_basis)
            return
        cell_dims = tuple(max(d[axis] for d in usable_dims) for axis in range(3))
        self._cell_bases.append(self._basis(cell_dims))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def pol_order(self) -> int:
        return self._pol_order

    @property
    def n_geometric_dims(self) -> int:
        return self._n_geometric_dims

    @property
    def n_cells(self) -> int:
        return len(self._stencils)

    @property
    def patch_to_proc(self) -> tuple[int, ...]:
        return self._patch_to_proc

    @property
    def full_basis(self) -> PolynomialBasis:
        """Basis of the uncollapsed dimensionality; layout of the pass output."""
        return self._full_basis

    def stencils_of(self, cell: int) -> tuple[Stencil, ...]:
        return self._stencils[cell]

    def stencil(self, cell: int, stencil: int) -> Stencil:
        return self._stencils[cell][stencil]

    def members_of(self, cell: int, stencil: int) -> list[tuple[int, bool]]:
        """Ordered ``(index, is_halo)`` pairs of one stencil."""
        return [(m.index, m.is_halo) for m in self._stencils[cell][stencil].members]

    def operator_of(self, cell: int, stencil: int) -> NDArray[np.float64]:
        return self._stencils[cell][stencil].operator

    def oscillation_matrix_of(self, cell: int, stencil: int) -> NDArray[np.float64]:
        return self._stencils[cell][stencil].oscillation

    def basis_of(self, cell: int, stencil: int) -> PolynomialBasis:
        dims = self._stencils[cell][stencil].dims
        # Unusable stencils were never validated and are not cached
        basis = self._bases.get(dims)
        return basis if basis is not None else PolynomialBasis(self._pol_order, dims)

    def cell_basis(self, cell: int) -> PolynomialBasis:
        """Basis the stencils of ``cell`` are blended in."""
        return self._cell_bases[cell]

    def usable_stencils(self, cell: int) -> list[int]:
        return [s for s, stencil in enumerate(self._stencils[cell]) if stencil.usable]

    def proc_of(self, member: StencilMember) -> int:
        """Partition owning a halo member."""
        return self._patch_to_proc[member.patch]

    def halo_members(self) -> Iterator[HaloMemberRef]:
        """Every halo member of every usable stencil."""
        for cell, cell_stencils in enumerate(self._stencils):
            for s, stencil in enumerate(cell_stencils):
                if not stencil.usable:
                    continue
                for slot, member in enumerate(stencil.members):
                    if member.is_halo:
                        yield HaloMemberRef(cell, s, slot, member)

    @property
    def has_halo(self) -> bool:
        return any(True for _ in self.halo_members())

    def __len__(self) -> int:
        return self.n_cells

    def __repr__(self) -> str:
        return (
            f"StencilCatalog(n_cells={self.n_cells}, pol_order={self._pol_order}, "
            f"n_geometric_dims={self._n_geometric_dims})"
        )
