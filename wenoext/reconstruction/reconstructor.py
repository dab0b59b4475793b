"""
WENO reconstruction pass over a whole mesh.

A pass runs in three steps:

1. one halo exchange fills the halo value cache;
2. every cell solves its usable stencils and evaluates their smoothness
   indicators (in parallel over chunks of cells when ``num_workers > 1``);
3. the candidates of each cell are blended with the nonlinear weights.

The catalog and the halo cache are read-only during step 2, so workers share
them without locks; each worker writes a disjoint block of output rows.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from wenoext.config.weno_config import WENOConfig
from wenoext.core.field_types import FieldKind, component_shape, from_components, infer_field_kind, to_components
from wenoext.parallel.halo import HaloGatherer
from wenoext.reconstruction.result import ReconstructionResult
from wenoext.reconstruction.smoothness import SmoothnessEvaluator
from wenoext.reconstruction.stencil_solver import StencilSolver
from wenoext.reconstruction.weights import WeightCombiner
from wenoext.utils.exceptions import ConfigurationError, DimensionMismatchError, StencilSetupError
from wenoext.utils.weno_logging import (
    LoggedOperation,
    get_logger,
    log_reconstruction_completion,
    log_reconstruction_start,
)

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from wenoext.core.stencil_catalog import StencilCatalog
    from wenoext.parallel.halo import HaloTransport, HaloValueCache

logger = get_logger(__name__)


class CellCandidates(NamedTuple):
    """Per-stencil fits of one cell, each in its stencil's own basis."""

    stencil_ids: list[int]
    coefficients: list[NDArray[np.float64]]
    indicators: list[NDArray[np.float64]]


class _CellBlend(NamedTuple):
    coefficients: NDArray[np.float64]
    weights: NDArray[np.float64]
    indicators: NDArray[np.float64]


class WENOReconstructor:
    """
    Computes blended WENO polynomial coefficients for every cell of a mesh.

    Parameters
    ----------
    catalog : StencilCatalog
        Frozen stencil catalog, shared by every pass
    config : WENOConfig | None
        Reconstruction configuration; defaults to ``WENOConfig`` with the
        catalog's polynomial order
    transport : HaloTransport | None
        Halo exchange for partitioned meshes

    Examples
    --------
    >>> reconstructor = WENOReconstructor(catalog, WENOConfig(pol_order=2))
    >>> result = reconstructor.reconstruct(u)
    >>> result.coefficients.shape
    (n_cells, 5)
    """

    def __init__(
        self,
        catalog: StencilCatalog,
        config: WENOConfig | None = None,
        transport: HaloTransport | None = None,
    ):
        if config is None:
            config = WENOConfig(pol_order=catalog.pol_order)
        if config.pol_order != catalog.pol_order:
            raise ConfigurationError(
                "pol_order",
                config.pol_order,
                valid_range=(catalog.pol_order, catalog.pol_order),
                component="WENOReconstructor",
                reason=f"the stencil catalog was built for order {catalog.pol_order}",
            )

        self.catalog = catalog
        self.config = config
        self.basis = catalog.full_basis
        self.solver = StencilSolver(catalog)
        self.smoothness = SmoothnessEvaluator(catalog)
        self.combiner = WeightCombiner.from_config(config)
        self.halo = HaloGatherer(catalog, transport)

        self._rows: dict[tuple[int, int, int], NDArray[np.int64]] = {}
        with LoggedOperation(logger, "reconstruction setup", logging.DEBUG):
            for cell in range(catalog.n_cells):
                for s in catalog.usable_stencils(cell):
                    dims = catalog.stencil(cell, s).dims
                    if dims not in self._rows:
                        self._rows[dims] = catalog.basis_of(cell, s).positions_in(self.basis)
            self.halo.collect_requests()

        log_reconstruction_start(
            logger, catalog.pol_order, catalog.n_geometric_dims, config.model_dump(exclude={"logging"})
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def reconstruct(
        self,
        values: ArrayLike,
        kind: FieldKind | str | None = None,
        centers: ArrayLike | None = None,
    ) -> ReconstructionResult:
        """
        Run one reconstruction pass.

        Parameters
        ----------
        values : ArrayLike
            Cell values on this partition: (n_cells,) scalar, (n_cells, 3)
            vector, (n_cells, 9) or (n_cells, 3, 3) tensor, (n_cells, 6)
            symmetric tensor, (n_cells,) or (n_cells, 1) spherical tensor
        kind : FieldKind | str | None
            Value type; inferred from the shape when omitted
        centers : ArrayLike | None
            Local cell centers, exchanged with the halo values when given

        Returns
        -------
        ReconstructionResult
            Blended coefficients of every cell in ``self.basis`` order

        Raises
        ------
        StencilSetupError
            For any broken stencil or unreachable halo cell; the pass is
            aborted for every cell
        """
        start = time.perf_counter()
        kind = infer_field_kind(values) if kind is None else FieldKind.from_label(kind)
        components = self._components(values, kind)
        value_shape = component_shape(values, kind)

        halo = self.halo.gather(components, centers)

        n_cells = self.catalog.n_cells
        n_comp = components.shape[1]
        blended = np.zeros((n_cells, self.basis.size, n_comp))
        store = self.config.store_diagnostics
        weights: list[NDArray[np.float64] | None] | None = [None] * n_cells if store else None
        indicators: list[NDArray[np.float64] | None] | None = [None] * n_cells if store else None

        def run(cells: range) -> int:
            n_solved = 0
            for cell in cells:
                cell_blend = self._reconstruct_cell(cell, components, halo)
                blended[cell] = cell_blend.coefficients
                if store:
                    weights[cell] = self._diagnostic_layout(cell_blend.weights, kind)
                    indicators[cell] = self._diagnostic_layout(cell_blend.indicators, kind)
                n_solved += int(np.isfinite(cell_blend.indicators[:, 0]).sum())
            return n_solved

        chunks = self._chunks(n_cells)
        if self.config.num_workers == 1 or len(chunks) <= 1:
            n_solved = sum(run(chunk) for chunk in chunks)
        else:
            with ThreadPoolExecutor(max_workers=self.config.num_workers) as executor:
                futures = [executor.submit(run, chunk) for chunk in chunks]
                # result() re-raises the first setup error of any worker
                n_solved = sum(future.result() for future in futures)

        execution_time = time.perf_counter() - start
        halo_rounds = int(halo.exchanged)
        log_reconstruction_completion(logger, n_cells, n_solved, halo_rounds, execution_time)

        return ReconstructionResult(
            coefficients=from_components(blended, value_shape),
            basis=self.basis,
            field_kind=kind,
            weights=weights,
            indicators=indicators,
            halo_rounds=halo_rounds,
            execution_time=execution_time,
            metadata={"n_stencil_solves": n_solved, "halo_tag": halo.tag},
        )

    def candidates(
        self,
        cell: int,
        values: ArrayLike,
        kind: FieldKind | str | None = None,
        centers: ArrayLike | None = None,
    ) -> CellCandidates:
        """
        Unblended per-stencil fits of a single cell, for diagnostics.

        Issues its own halo exchange when the catalog has halo members.
        """
        kind = infer_field_kind(values) if kind is None else FieldKind.from_label(kind)
        components = self._components(values, kind)
        halo = self.halo.gather(components, centers)

        ids, coeffs, inds = [], [], []
        for s in self.catalog.usable_stencils(cell):
            c = self.solver.solve(cell, s, components, halo)
            ids.append(s)
            coeffs.append(c[:, 0] if kind.n_components == 1 else c)
            ind = self.smoothness.evaluate(cell, s, c)
            inds.append(ind[0] if kind.n_components == 1 else ind)
        return CellCandidates(ids, coeffs, inds)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _components(self, values: ArrayLike, kind: FieldKind) -> NDArray[np.float64]:
        components = to_components(values, kind)
        if components.shape[0] != self.catalog.n_cells:
            raise DimensionMismatchError(
                "field",
                np.shape(values),
                (self.catalog.n_cells, *np.shape(values)[1:]),
                component="WENOReconstructor",
            )
        return components

    def _chunks(self, n_cells: int) -> list[range]:
        size = self.config.chunk_size
        if size is None:
            size = max(1, -(-n_cells // self.config.num_workers))
        return [range(i, min(i + size, n_cells)) for i in range(0, n_cells, size)]

    @staticmethod
    def _diagnostic_layout(array: NDArray[np.float64], kind: FieldKind) -> NDArray[np.float64]:
        return array[:, 0].copy() if kind.n_components == 1 else array

    def _reconstruct_cell(
        self, cell: int, components: NDArray[np.float64], halo: HaloValueCache
    ) -> _CellBlend:
        cell_stencils = self.catalog.stencils_of(cell)
        usable = self.catalog.usable_stencils(cell)
        if not usable:
            raise StencilSetupError("Cell has no usable stencil", cell=cell, component="WENOReconstructor")

        n_comp = components.shape[1]
        coeffs = np.zeros((len(usable), self.basis.size, n_comp))
        inds = np.empty((len(usable), n_comp))

        for row, s in enumerate(usable):
            c = self.solver.solve(cell, s, components, halo)
            inds[row] = self.smoothness.evaluate(cell, s, c)
            coeffs[row, self._rows[cell_stencils[s].dims]] = c

        blended, w = self.combiner.combine(coeffs, inds, stencil_ids=usable)

        all_weights = np.zeros((len(cell_stencils), n_comp))
        all_weights[usable] = w
        all_inds = np.full((len(cell_stencils), n_comp), np.nan)
        all_inds[usable] = inds
        return _CellBlend(blended, all_weights, all_inds)
