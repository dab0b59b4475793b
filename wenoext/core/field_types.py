"""
Field value variants.

Reconstruction is always carried out on independent scalar components; this
module selects how many components a field value type has and how to slice a
field into, and assemble it back from, a ``(n_cells, n_components)`` array.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from wenoext.utils.exceptions import ConfigurationError, DimensionMismatchError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


class FieldKind(Enum):
    """Value type of a cell field, with its number of independent components."""

    SCALAR = ("scalar", 1)
    VECTOR = ("vector", 3)
    TENSOR = ("tensor", 9)
    SYMM_TENSOR = ("symmTensor", 6)
    SPHERICAL_TENSOR = ("sphericalTensor", 1)

    def __init__(self, label: str, n_components: int):
        self.label = label
        self.n_components = n_components

    @property
    def is_scalar(self) -> bool:
        return self is FieldKind.SCALAR

    @classmethod
    def from_label(cls, label: str | FieldKind) -> FieldKind:
        if isinstance(label, FieldKind):
            return label
        for kind in cls:
            if label.lower() in (kind.label.lower(), kind.name.lower()):
                return kind
        raise ConfigurationError(
            "field_kind",
            label,
            component="FieldKind",
            reason=f"expected one of {[k.label for k in cls]}",
        )


def infer_field_kind(values: ArrayLike) -> FieldKind:
    """
    Deduce the field kind from the array shape.

    ``(n,)`` is scalar, ``(n, 3)`` vector, ``(n, 9)`` or ``(n, 3, 3)``
    tensor and ``(n, 6)`` symmetric tensor. A spherical tensor stored as
    ``(n, 1)`` cannot be told apart from a scalar and needs an explicit kind.
    """
    shape = np.shape(values)
    if len(shape) == 1:
        return FieldKind.SCALAR
    if len(shape) == 2:
        by_width = {3: FieldKind.VECTOR, 9: FieldKind.TENSOR, 6: FieldKind.SYMM_TENSOR}
        if shape[1] in by_width:
            return by_width[shape[1]]
    if len(shape) == 3 and shape[1:] == (3, 3):
        return FieldKind.TENSOR
    raise ConfigurationError(
        "field_kind",
        f"array of shape {shape}",
        component="FieldKind",
        reason="cannot infer the field kind from this shape; pass kind explicitly",
    )


def to_components(values: ArrayLike, kind: FieldKind) -> NDArray[np.float64]:
    """
    Slice a field into its scalar components.

    Returns
    -------
    NDArray
        Shape (n_cells, kind.n_components), contiguous float64
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim == 0:
        raise DimensionMismatchError("field", arr.shape, ("n_cells",), component="FieldKind")
    n_cells = arr.shape[0]
    n_comp = kind.n_components

    if kind is FieldKind.SCALAR:
        if arr.ndim == 1:
            return np.ascontiguousarray(arr.reshape(n_cells, 1))
        if arr.ndim == 2 and arr.shape[1] == 1:
            return np.ascontiguousarray(arr)
    elif kind is FieldKind.SPHERICAL_TENSOR:
        if arr.ndim == 1:
            return np.ascontiguousarray(arr.reshape(n_cells, 1))
        if arr.ndim == 2 and arr.shape[1] == 1:
            return np.ascontiguousarray(arr)
    elif kind is FieldKind.TENSOR and arr.ndim == 3 and arr.shape[1:] == (3, 3):
        return np.ascontiguousarray(arr.reshape(n_cells, 9))
    elif arr.ndim == 2 and arr.shape[1] == n_comp:
        return np.ascontiguousarray(arr)

    raise DimensionMismatchError(
        f"{kind.label} field",
        arr.shape,
        (n_cells, n_comp),
        component="FieldKind",
    )


def component_shape(values: ArrayLike, kind: FieldKind) -> tuple[int, ...]:
    """
    Trailing per-cell shape of the caller's layout.

    Scalars always map to ``()``, so an (n_cells, 1) scalar field comes back
    as (n_cells, n_coeffs). Spherical tensors keep the layout they came in.
    """
    shape = np.shape(values)
    if kind is FieldKind.SCALAR:
        return ()
    return tuple(shape[1:])


def from_components(components: ArrayLike, shape: tuple[int, ...]) -> NDArray[np.float64]:
    """
    Restore the caller's per-value layout on the last axis of ``components``.

    ``components`` has shape (..., n_components); the result has shape
    (..., *shape). For scalar fields ``shape`` is ``()`` and the component
    axis is dropped.
    """
    components = np.asarray(components, dtype=np.float64)
    return components.reshape(components.shape[:-1] + tuple(shape))
