"""
Setup-time data of the reconstruction: polynomial basis, field value
variants and the stencil catalog.
"""

from __future__ import annotations

from .basis import PolynomialBasis, n_derivatives
from .field_types import FieldKind, from_components, infer_field_kind, to_components
from .stencil_catalog import LOCAL, HaloMemberRef, Stencil, StencilCatalog, StencilMember

__all__ = [
    "LOCAL",
    "FieldKind",
    "HaloMemberRef",
    "PolynomialBasis",
    "Stencil",
    "StencilCatalog",
    "StencilMember",
    "from_components",
    "infer_field_kind",
    "n_derivatives",
    "to_components",
]
