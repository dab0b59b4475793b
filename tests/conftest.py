"""
Pytest configuration and shared fixtures for the wenoext test suite.

Most tests run on small structured 2D grids whose stencil catalogs are built
here the way a mesh preprocessor would: a central stencil of every neighbour
within ``radius`` cells and four sectorial (quadrant) stencils, each with the
least-squares pseudoinverse of its monomial matrix as operator.
"""

from __future__ import annotations

from typing import NamedTuple

import pytest

import numpy as np

from wenoext.core import PolynomialBasis, Stencil, StencilCatalog, StencilMember

# =============================================================================
# Test Configuration
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (slower, cross-component)")
    config.addinivalue_line("markers", "mathematical: Mathematical property validation tests")
    config.addinivalue_line("markers", "slow: Slow tests (may take >10 seconds)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test paths."""
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/mathematical/" in test_path:
            item.add_marker(pytest.mark.mathematical)

        if "large" in item.name or "slow" in item.name:
            item.add_marker(pytest.mark.slow)


# =============================================================================
# Grid Mesh Builders
# =============================================================================

QUADRANTS = ((1, 1), (-1, 1), (-1, -1), (1, -1))


class GridMesh(NamedTuple):
    """Catalog of one partition of a structured grid plus its bookkeeping."""

    catalog: StencilCatalog
    centers: np.ndarray  # centers of every grid cell, by global id
    owned: list[int]  # global ids of the local cells, in local order
    remote: list[int]  # global ids of the cells of partition 1, in remote order

    def local(self, field: np.ndarray) -> np.ndarray:
        return np.asarray(field)[self.owned]

    def remote_part(self, field: np.ndarray) -> np.ndarray:
        return np.asarray(field)[self.remote]


def grid_centers(nx: int, ny: int, h: float = 1.0) -> np.ndarray:
    """Cell centers of an nx x ny grid; global id is ``i * ny + j``."""
    return np.array([(i * h, j * h, 0.0) for i in range(nx) for j in range(ny)])


def build_grid_catalog(
    nx: int = 6,
    ny: int = 6,
    pol_order: int = 2,
    radius: int = 2,
    owned: list[int] | None = None,
    oscillation: np.ndarray | None = None,
    exclude: tuple[int, ...] = (),
    h: float = 1.0,
    central_radius: int | None = None,
) -> GridMesh:
    """
    Build a 2D stencil catalog for the cells in ``owned``.

    Cells outside ``owned`` belong to partition 1, reached through patch 0.
    Sectorial stencils without a full-rank fit, and stencils listed in
    ``exclude``, are marked unusable. The central stencil reaches
    ``central_radius`` cells (default ``radius``).
    """
    centers = grid_centers(nx, ny, h)
    basis = PolynomialBasis.full(pol_order, 2)
    all_ids = list(range(nx * ny))
    owned = all_ids if owned is None else list(owned)
    local_index = {g: k for k, g in enumerate(owned)}
    remote = [g for g in all_ids if g not in local_index]
    remote_index = {g: k for k, g in enumerate(remote)}
    central_radius = radius if central_radius is None else central_radius

    stencils = []
    for g in owned:
        i, j = divmod(g, ny)
        neighbours = [
            (a, b)
            for a in range(max(0, i - radius), min(nx, i + radius + 1))
            for b in range(max(0, j - radius), min(ny, j + radius + 1))
            if (a, b) != (i, j)
        ]
        central = [(a, b) for a, b in neighbours if max(abs(a - i), abs(b - j)) <= central_radius]
        groups = [central] + [
            [(a, b) for a, b in neighbours if (a - i) * sx >= 0 and (b - j) * sy >= 0] for sx, sy in QUADRANTS
        ]

        cell_stencils = []
        for s, group in enumerate(groups):
            ids = [a * ny + b for a, b in group]
            A = basis.monomials(centers[ids] - centers[g]) if ids else np.zeros((0, basis.size))
            if s in exclude or len(ids) < basis.size or np.linalg.matrix_rank(A) < basis.size:
                cell_stencils.append(Stencil.excluded())
                continue
            members = [
                StencilMember(local_index[m]) if m in local_index else StencilMember(remote_index[m], patch=0)
                for m in ids
            ]
            B = np.eye(basis.size) if oscillation is None else oscillation
            cell_stencils.append(Stencil(members, basis.dims, np.linalg.pinv(A), B))
        stencils.append(cell_stencils)

    catalog = StencilCatalog(stencils, pol_order, 2, patch_to_proc=(1,) if remote else ())
    return GridMesh(catalog, centers, owned, remote)


def quadratic_field(centers: np.ndarray) -> np.ndarray:
    x, y = centers[:, 0], centers[:, 1]
    return 1.0 + 2.0 * x - y + 0.5 * x**2 + 0.25 * x * y - 0.75 * y**2


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def grid_catalog_builder():
    """The grid catalog builder, for tests that need custom layouts."""
    return build_grid_catalog


@pytest.fixture
def small_grid() -> GridMesh:
    """6 x 6 grid, order 2, single partition."""
    return build_grid_catalog()


@pytest.fixture
def partitioned_grid() -> GridMesh:
    """Left half (x < 3) of a 6 x 6 grid; the right half lives on partition 1."""
    owned = [g for g in range(36) if g // 6 < 3]
    return build_grid_catalog(owned=owned)


@pytest.fixture
def quadratic():
    """Quadratic test field evaluated at cell centers."""
    return quadratic_field


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
