"""Work partitioning and requested-region expansion.

An output tile is a Region in the output's bin-index space. Each output bin
reads exactly one bin of each input; `input_bin_positions` is the one place
where that mapping is defined, and both the region expander and the combiner
go through it.
"""

import logging
from typing import List, Optional

import numpy as np

from phase_correlation.errors import RegionOutOfBounds
from phase_correlation.spectrum import FrequencyLayout, Geometry, Region

logger = logging.getLogger(__name__)

__all__ = ['input_bin_positions', 'expand_requested_region', 'split_region']


def input_bin_positions(
    output_region: Region,
    output_geometry: Geometry,
    input_region: Region,
    layout: FrequencyLayout = FrequencyLayout.OFFSET,
) -> List[np.ndarray]:
    """
    Map an output region to the array positions read from one input.

    Args:
        output_region: Output bins to be produced (bin-index space)
        output_geometry: Resolved output geometry
        input_region: Stored extent of the input (its index and size)
        layout: Frequency layout shared by inputs and output

    Returns:
        One int64 array per axis with the input array positions, in output order.
        Positions are not bounds-checked.
    """
    ndim = output_region.ndim
    positions = []
    for axis in range(ndim):
        bins = np.arange(output_region.index[axis], output_region.upper[axis], dtype=np.int64)
        if layout.is_wrapped(axis, ndim):
            out_size = output_geometry.size[axis]
            freqs = np.where(bins < (out_size + 1) // 2, bins, bins - out_size)
            bins = np.mod(freqs, input_region.size[axis])
        positions.append(bins - input_region.index[axis])
    return positions


def expand_requested_region(
    output_region: Region,
    output_geometry: Geometry,
    input_region: Region,
    layout: FrequencyLayout = FrequencyLayout.OFFSET,
    margin: int = 0,
) -> Region:
    """
    Compute the input region needed to produce an output region.

    The baseline is the bounding box of the bins the combiner reads. It must
    be stored in the input; it is never clamped. `margin` adds headroom on
    every side for variants that read neighbouring bins. Only that headroom is
    cut back to the stored extent.

    Args:
        output_region: Output bins to be produced
        output_geometry: Resolved output geometry
        input_region: Stored extent of the input
        layout: Frequency layout shared by inputs and output
        margin: Extra bins requested on each side of the baseline

    Returns:
        Requested Region in the input's bin-index space

    Raises:
        RegionOutOfBounds: If the baseline lies outside the stored extent
        ValueError: If the margin is negative or the ranks differ
    """
    if margin < 0:
        raise ValueError(f"margin must be non-negative, got {margin}")
    if output_region.ndim != input_region.ndim:
        raise ValueError(
            f"Output region has rank {output_region.ndim}, input has rank {input_region.ndim}"
        )

    positions = input_bin_positions(output_region, output_geometry, input_region, layout)
    lower = tuple(int(p.min()) + o for p, o in zip(positions, input_region.index))
    upper = tuple(int(p.max()) + 1 + o for p, o in zip(positions, input_region.index))
    baseline = Region(index=lower, size=tuple(hi - lo for lo, hi in zip(lower, upper)))

    if not input_region.contains(baseline):
        raise RegionOutOfBounds(
            f"Requested input bins [{baseline.index}, {baseline.upper}) for output region "
            f"[{output_region.index}, {output_region.upper}) are outside the stored bins "
            f"[{input_region.index}, {input_region.upper})"
        )

    if margin == 0:
        return baseline

    lower = tuple(max(lo - margin, own) for lo, own in zip(baseline.index, input_region.index))
    upper = tuple(min(hi + margin, own) for hi, own in zip(baseline.upper, input_region.upper))
    return Region(index=lower, size=tuple(hi - lo for lo, hi in zip(lower, upper)))


def split_region(region: Region, tiles: int, axis: Optional[int] = None) -> List[Region]:
    """
    Split a region into disjoint contiguous tiles along one axis.

    Args:
        region: Region to partition
        tiles: Requested number of tiles (fewer are returned if the axis is short)
        axis: Axis to split; defaults to the slowest-varying axis longer than one bin

    Returns:
        Non-empty tiles covering the region exactly, in increasing index order
    """
    if tiles < 1:
        raise ValueError(f"tiles must be at least 1, got {tiles}")
    if axis is None:
        axis = next((a for a, s in enumerate(region.size) if s > 1), 0)
    if not 0 <= axis < region.ndim:
        raise ValueError(f"axis {axis} out of range for a region of rank {region.ndim}")

    length = region.size[axis]
    count = max(1, min(tiles, length))
    base, extra = divmod(length, count)

    result = []
    start = region.index[axis]
    for k in range(count):
        step = base + (1 if k < extra else 0)
        index = list(region.index)
        size = list(region.size)
        index[axis] = start
        size[axis] = step
        result.append(Region(index=tuple(index), size=tuple(size)))
        start += step

    logger.debug(f"Split region {region.size} into {len(result)} tiles along axis {axis}")
    return result
