"""
Structured exception classes for wenoext with actionable error messages.

Setup-time failures (a malformed stencil catalog, a stencil with too few
members, an unreachable halo cell) abort the whole reconstruction pass and
carry the cell and stencil that triggered them, so a broken mesh or catalog
can be traced back to its origin.
"""

from __future__ import annotations

from typing import Any

import numpy as np


class WENOError(Exception):
    """
    Base exception for reconstruction errors with context and suggestions.

    The formatted message contains:
    - Clear error description
    - Component that raised it
    - Suggested action for resolution
    - Optional diagnostic data
    """

    def __init__(
        self,
        message: str,
        component: str | None = None,
        suggested_action: str | None = None,
        error_code: str | None = None,
        diagnostic_data: dict[str, Any] | None = None,
    ):
        self.component = component or "wenoext"
        self.suggested_action = suggested_action
        self.error_code = error_code
        self.diagnostic_data = diagnostic_data or {}

        full_message = f"[{self.component}] {message}"

        if self.suggested_action:
            full_message += f"\nSuggestion: {self.suggested_action}"

        if self.error_code:
            full_message += f"\nError Code: {self.error_code}"

        if self.diagnostic_data:
            full_message += "\nDiagnostic Information:"
            for key, value in self.diagnostic_data.items():
                full_message += f"\n   - {key}: {value}"

        super().__init__(full_message)


class ConfigurationError(WENOError):
    """Exception raised when a configuration parameter is invalid."""

    def __init__(
        self,
        parameter_name: str,
        provided_value: Any,
        expected_type: type | None = None,
        valid_range: tuple | None = None,
        component: str | None = None,
        reason: str | None = None,
    ):
        diagnostic_data = {
            "parameter": parameter_name,
            "provided_value": str(provided_value),
            "provided_type": type(provided_value).__name__,
        }

        if expected_type:
            diagnostic_data["expected_type"] = expected_type.__name__

        if valid_range:
            diagnostic_data["valid_range"] = f"[{valid_range[0]}, {valid_range[1]}]"

        suggested_action = _generate_configuration_suggestions(
            parameter_name, provided_value, expected_type, valid_range
        )

        message = f"Invalid configuration for parameter '{parameter_name}'"
        if reason:
            message += f": {reason}"

        self.parameter_name = parameter_name
        self.provided_value = provided_value

        super().__init__(
            message=message,
            component=component,
            suggested_action=suggested_action,
            error_code="INVALID_CONFIGURATION",
            diagnostic_data=diagnostic_data,
        )


class DimensionMismatchError(WENOError):
    """Exception raised when array dimensions don't match expected values."""

    def __init__(
        self,
        array_name: str,
        provided_shape: tuple,
        expected_shape: tuple,
        component: str | None = None,
        context: str | None = None,
    ):
        diagnostic_data = {
            "array_name": array_name,
            "provided_shape": str(provided_shape),
            "expected_shape": str(expected_shape),
            "dimension_mismatch": _describe_dimension_mismatch(provided_shape, expected_shape),
        }

        if context:
            diagnostic_data["context"] = context

        self.array_name = array_name
        self.provided_shape = tuple(provided_shape)
        self.expected_shape = tuple(expected_shape)

        super().__init__(
            message=f"Dimension mismatch for {array_name}",
            component=component,
            suggested_action=_generate_dimension_suggestions(array_name, provided_shape, expected_shape),
            error_code="DIMENSION_MISMATCH",
            diagnostic_data=diagnostic_data,
        )


class StencilSetupError(WENOError):
    """
    Fatal error in the precomputed stencil data of one cell.

    Raised for operator or oscillation matrices whose shapes disagree with the
    member count or the basis size, and for cells left without any usable
    stencil. Always aborts the whole reconstruction pass.
    """

    def __init__(
        self,
        message: str,
        cell: int | None = None,
        stencil: int | None = None,
        component: str | None = None,
        suggested_action: str | None = None,
        error_code: str = "STENCIL_SETUP",
        diagnostic_data: dict[str, Any] | None = None,
    ):
        self.cell = cell
        self.stencil = stencil

        data: dict[str, Any] = {}
        if cell is not None:
            data["cell"] = cell
        if stencil is not None:
            data["stencil"] = stencil
        if diagnostic_data:
            data.update(diagnostic_data)

        super().__init__(
            message=message,
            component=component or "StencilCatalog",
            suggested_action=suggested_action
            or "Rebuild the stencil catalog; the precomputed operators do not match the stencil layout",
            error_code=error_code,
            diagnostic_data=data,
        )


class InsufficientStencilError(StencilSetupError):
    """Raised when a stencil has fewer members than the basis has coefficients."""

    def __init__(self, cell: int, stencil: int, n_members: int, n_required: int, pol_order: int):
        self.n_members = n_members
        self.n_required = n_required

        super().__init__(
            message=f"Stencil has {n_members} members but order {pol_order} needs at least {n_required}",
            cell=cell,
            stencil=stencil,
            suggested_action=(
                "Enlarge the stencil, mark it unusable for this cell, or lower the polynomial order"
            ),
            error_code="INSUFFICIENT_STENCIL",
            diagnostic_data={"n_members": n_members, "n_required": n_required, "pol_order": pol_order},
        )


class HaloResolutionError(StencilSetupError):
    """Raised when a halo cell referenced by a stencil cannot be resolved."""

    def __init__(
        self,
        message: str,
        partition: int | None = None,
        remote_cells: list[int] | None = None,
        cell: int | None = None,
        stencil: int | None = None,
    ):
        self.partition = partition
        self.remote_cells = list(remote_cells) if remote_cells else []

        data: dict[str, Any] = {}
        if partition is not None:
            data["partition"] = partition
        if self.remote_cells:
            shown = self.remote_cells[:10]
            data["remote_cells"] = f"{shown}{' ...' if len(self.remote_cells) > 10 else ''}"

        super().__init__(
            message=message,
            cell=cell,
            stencil=stencil,
            component="HaloGatherer",
            suggested_action="Check the partition map; it may be stale relative to the stencil catalog",
            error_code="HALO_UNREACHABLE",
            diagnostic_data=data,
        )


# Helper functions for generating specific suggestions


def _generate_configuration_suggestions(
    parameter_name: str,
    provided_value: Any,
    expected_type: type | None,
    valid_range: tuple | None,
) -> str:
    """Generate specific suggestions for configuration errors."""

    suggestions = []

    if expected_type and not isinstance(provided_value, expected_type):
        suggestions.append(f"Convert {parameter_name} to {expected_type.__name__}")

    if valid_range and isinstance(provided_value, (int, float)):
        if provided_value < valid_range[0]:
            suggestions.append(f"Increase {parameter_name} to at least {valid_range[0]}")
        elif provided_value > valid_range[1]:
            suggestions.append(f"Decrease {parameter_name} to at most {valid_range[1]}")

    if "order" in parameter_name.lower() and isinstance(provided_value, (int, float)):
        if provided_value < 1:
            suggestions.append("Polynomial order must be at least 1")

    if "epsilon" in parameter_name.lower() and isinstance(provided_value, (int, float)):
        if provided_value <= 0:
            suggestions.append("The smoothness regularizer must be positive")

    return " | ".join(suggestions) if suggestions else f"Check {parameter_name} value and try again"


def _describe_dimension_mismatch(provided_shape: tuple, expected_shape: tuple) -> str:
    """Describe the specific nature of dimension mismatch."""

    if len(provided_shape) != len(expected_shape):
        return f"Wrong number of dimensions: got {len(provided_shape)}, expected {len(expected_shape)}"

    mismatches = []
    for i, (provided, expected) in enumerate(zip(provided_shape, expected_shape, strict=False)):
        if provided != expected:
            mismatches.append(f"axis {i}: got {provided}, expected {expected}")

    return " | ".join(mismatches)


def _generate_dimension_suggestions(array_name: str, provided_shape: tuple, expected_shape: tuple) -> str:
    """Generate specific suggestions for dimension errors."""

    if "field" in array_name.lower():
        return f"Provide one value per mesh cell: expected shape {expected_shape}"

    if len(provided_shape) < len(expected_shape):
        return f"Add missing dimensions to {array_name}: reshape or expand to {expected_shape}"
    elif len(provided_shape) > len(expected_shape):
        return f"Remove extra dimensions from {array_name}: reshape to {expected_shape}"
    else:
        return f"Reshape {array_name} to {expected_shape}"


# Convenience functions for common error scenarios


def validate_array_dimensions(
    array: np.ndarray, expected_shape: tuple, array_name: str, component: str | None = None
):
    """Validate that array has expected dimensions."""
    if array.shape != tuple(expected_shape):
        raise DimensionMismatchError(
            array_name=array_name,
            provided_shape=array.shape,
            expected_shape=tuple(expected_shape),
            component=component,
        )


def validate_parameter_value(
    value: Any,
    parameter_name: str,
    expected_type: type | tuple[type, ...] | None = None,
    valid_range: tuple | None = None,
    component: str | None = None,
):
    """Validate parameter value and type."""
    if expected_type and not isinstance(value, expected_type):
        raise ConfigurationError(
            parameter_name=parameter_name,
            provided_value=value,
            expected_type=expected_type if isinstance(expected_type, type) else None,
            component=component,
        )

    if valid_range and isinstance(value, (int, float)):
        if not (valid_range[0] <= value <= valid_range[1]):
            raise ConfigurationError(
                parameter_name=parameter_name,
                provided_value=value,
                valid_range=valid_range,
                component=component,
            )
