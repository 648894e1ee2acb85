"""Output geometry resolution and the geometry adjustment hook."""

import logging
from enum import Enum
from typing import Callable, Optional, Union

from phase_correlation.errors import IncompatibleGeometry, RankMismatch
from phase_correlation.spectrum import FrequencyLayout, Geometry

logger = logging.getLogger(__name__)

__all__ = [
    'AdjustmentHook',
    'GeometryAdjustment',
    'identity_adjustment',
    'low_frequency_adjustment',
    'select_adjustment',
    'resolve_output_geometry',
]

AdjustmentHook = Callable[[Geometry], Geometry]


class GeometryAdjustment(str, Enum):
    """Strategy applied to the tentative output geometry."""

    DEFAULT = "default"
    LOW_FREQUENCY_ONLY = "low_frequency_only"
    CUSTOM = "custom"


def identity_adjustment(geometry: Geometry) -> Geometry:
    """Leave the resolved geometry unchanged."""
    return geometry


def low_frequency_adjustment(geometry: Geometry) -> Geometry:
    """Keep the lower half of every axis (size // 2), at the same origin and spacing."""
    return geometry._replace(size=tuple(s // 2 for s in geometry.size))


def select_adjustment(
    adjustment: Union[GeometryAdjustment, str, AdjustmentHook, None] = None,
    custom: Optional[AdjustmentHook] = None,
) -> AdjustmentHook:
    """
    Turn an adjustment selection into a callable hook.

    Args:
        adjustment: A GeometryAdjustment (or its value), a callable, or None for DEFAULT
        custom: Hook used when adjustment is GeometryAdjustment.CUSTOM

    Returns:
        Callable mapping the tentative Geometry to the adjusted Geometry

    Raises:
        ValueError: If CUSTOM is selected without a callable, or the name is unknown
    """
    if adjustment is None:
        return identity_adjustment
    if callable(adjustment) and not isinstance(adjustment, GeometryAdjustment):
        return adjustment

    adjustment = GeometryAdjustment(adjustment)
    if adjustment is GeometryAdjustment.DEFAULT:
        return identity_adjustment
    if adjustment is GeometryAdjustment.LOW_FREQUENCY_ONLY:
        return low_frequency_adjustment
    if custom is None or not callable(custom):
        raise ValueError("GeometryAdjustment.CUSTOM requires a callable custom adjustment")
    return custom


def _check_positive(geometry: Geometry, stage: str) -> None:
    for axis, s in enumerate(geometry.size):
        if s <= 0:
            raise IncompatibleGeometry(
                f"{stage} output size must be positive on axis {axis}, got {s} "
                f"(size {tuple(geometry.size)})"
            )


def _validate_adjusted(
    tentative: Geometry, adjusted: Geometry, layout: FrequencyLayout
) -> Geometry:
    if not isinstance(adjusted, tuple) or len(adjusted) != 3:
        raise IncompatibleGeometry(
            f"Geometry adjustment must return a Geometry, got {type(adjusted).__name__}"
        )
    size, spacing, index = adjusted
    adjusted = Geometry(
        size=tuple(int(s) for s in size),
        spacing=tuple(float(p) for p in spacing),
        index=tuple(int(i) for i in index),
    )

    ndim = tentative.ndim
    if not (len(adjusted.size) == len(adjusted.spacing) == len(adjusted.index) == ndim):
        raise IncompatibleGeometry(
            f"Geometry adjustment changed the rank from {ndim} to "
            f"({len(adjusted.size)}, {len(adjusted.spacing)}, {len(adjusted.index)})"
        )

    _check_positive(adjusted, "Adjusted")

    for axis in range(ndim):
        spacing_a = adjusted.spacing[axis]
        # output bin k always reads input bin k, so the bin width is fixed
        if spacing_a != tentative.spacing[axis]:
            raise IncompatibleGeometry(
                f"Adjusted spacing {spacing_a} on axis {axis} differs from the "
                f"resolved spacing {tentative.spacing[axis]}; bins at that spacing "
                f"are not available from both inputs"
            )
        lo = adjusted.index[axis]
        hi = lo + adjusted.size[axis]
        if lo < 0 or hi > tentative.size[axis]:
            raise IncompatibleGeometry(
                f"Adjusted bins [{lo}, {hi}) on axis {axis} are not available from "
                f"both inputs (available: [0, {tentative.size[axis]}))"
            )
        if lo != 0 and layout.is_wrapped(axis, ndim):
            raise IncompatibleGeometry(
                f"Axis {axis} stores negative frequencies at its tail ({layout.value} layout); "
                f"its output origin must stay at 0, got {lo}"
            )

    return adjusted


def resolve_output_geometry(
    fixed: Geometry,
    moving: Geometry,
    adjustment: Optional[AdjustmentHook] = None,
    layout: FrequencyLayout = FrequencyLayout.OFFSET,
) -> Geometry:
    """
    Resolve the output geometry from the fixed and moving input geometries.

    Per axis the output keeps the smaller size and the coarser spacing, and
    starts at bin 0. The adjustment hook may then shrink or reposition the
    result, but must keep the resolved spacing. Only geometry is used; no
    samples are read.

    Args:
        fixed: Geometry of the fixed spectrum
        moving: Geometry of the moving spectrum
        adjustment: Hook applied to the tentative geometry (identity if None)
        layout: Frequency layout of the spectra

    Returns:
        The adjusted output Geometry

    Raises:
        RankMismatch: If the inputs differ in rank
        IncompatibleGeometry: If the resolved or adjusted geometry is unusable
    """
    if len(fixed.size) != len(moving.size):
        raise RankMismatch(
            f"Fixed spectrum has rank {len(fixed.size)}, moving spectrum has rank {len(moving.size)}"
        )

    ndim = len(fixed.size)
    tentative = Geometry(
        size=tuple(min(int(f), int(m)) for f, m in zip(fixed.size, moving.size)),
        spacing=tuple(max(float(f), float(m)) for f, m in zip(fixed.spacing, moving.spacing)),
        index=(0,) * ndim,
    )
    _check_positive(tentative, "Resolved")

    if tuple(fixed.spacing) != tuple(moving.spacing):
        logger.warning(
            f"Input spacings differ (fixed {tuple(fixed.spacing)}, moving {tuple(moving.spacing)}); "
            f"using coarser spacing {tentative.spacing}"
        )

    hook = adjustment if adjustment is not None else identity_adjustment
    adjusted = _validate_adjusted(tentative, hook(tentative), FrequencyLayout(layout))

    logger.debug(
        f"Resolved output geometry: size={adjusted.size}, spacing={adjusted.spacing}, "
        f"index={adjusted.index} (tentative size={tentative.size})"
    )
    return adjusted
