"""Normalized cross-power spectrum kernel and its tiled, multithreaded driver."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, NamedTuple, Optional

import numpy as np
from pydantic import Field
from pydantic.dataclasses import dataclass as pydantic_dataclass

from phase_correlation.errors import RankMismatch, RegionOutOfBounds
from phase_correlation.regions import expand_requested_region, input_bin_positions, split_region
from phase_correlation.spectrum import FrequencyLayout, Geometry, Region, Spectrum

logger = logging.getLogger(__name__)

__all__ = ['ParallelSpectrumCombiner', 'TilePlan', 'combine_region', 'default_epsilon']


class TilePlan(NamedTuple):
    """One work unit: an output tile and the input regions it reads."""

    output_region: Region
    fixed_region: Region
    moving_region: Region


def default_epsilon(dtype: np.dtype) -> float:
    """
    Magnitude threshold at or below which a cross-power sample is set to zero.

    This is the smallest normal number of the real dtype, so only magnitudes
    that have lost precision to underflow are zeroed. Low-energy bins keep
    their phase, even in single precision.
    """
    return float(np.finfo(np.dtype(dtype)).tiny)


def _read_only(spectrum: Spectrum) -> Spectrum:
    view = spectrum.data.view()
    view.flags.writeable = False
    return Spectrum(data=view, spacing=spectrum.spacing, index=spectrum.index)


def _gather(
    spectrum: Spectrum,
    region: Region,
    output_geometry: Geometry,
    layout: FrequencyLayout,
    dtype: np.dtype,
) -> np.ndarray:
    positions = input_bin_positions(region, output_geometry, spectrum.region, layout)
    for axis, (pos, n) in enumerate(zip(positions, spectrum.size)):
        if pos.min() < 0 or pos.max() >= n:
            raise RegionOutOfBounds(
                f"Output region [{region.index}, {region.upper}) reads array positions "
                f"[{pos.min()}, {pos.max()}] on axis {axis}, but only [0, {n - 1}] are stored"
            )
    return spectrum.data[np.ix_(*positions)].astype(dtype, copy=False)


def combine_region(
    fixed: Spectrum,
    moving: Spectrum,
    output: np.ndarray,
    output_geometry: Geometry,
    region: Region,
    layout: FrequencyLayout = FrequencyLayout.OFFSET,
    epsilon: Optional[float] = None,
) -> None:
    """
    Fill one output region with the normalized cross-power spectrum.

    For every bin, C = F * conj(M), and the output is C / |C| when |C| is
    finite and larger than epsilon, else 0. The default epsilon is the
    smallest normal number of the output's real dtype (about 1.2e-38 for
    complex64), so bins are zeroed only when |C| underflows. Real and imaginary parts are
    formed with separate elementwise operations and |C| with numpy.hypot, so
    each bin's value does not depend on how the output was tiled.

    Args:
        fixed: Fixed spectrum (read only)
        moving: Moving spectrum (read only)
        output: Output array covering output_geometry, written in place
        output_geometry: Resolved output geometry
        region: Output bins to compute (bin-index space)
        layout: Frequency layout shared by inputs and output
        epsilon: Zero-guard threshold; defaults to default_epsilon(output.dtype)

    Raises:
        RegionOutOfBounds: If an input does not store a bin this region reads
    """
    dtype = output.dtype
    if epsilon is None:
        epsilon = default_epsilon(dtype)

    f = _gather(fixed, region, output_geometry, layout, dtype)
    m = _gather(moving, region, output_geometry, layout, dtype)

    # (fr + i fi) * (mr - i mi); overflow and NaN are caught by the guard below
    with np.errstate(over="ignore", invalid="ignore"):
        real = f.real * m.real + f.imag * m.imag
        imag = f.imag * m.real - f.real * m.imag
        magnitude = np.hypot(real, imag)
    keep = np.isfinite(magnitude) & (magnitude > epsilon)

    tile = output[region.slices(origin=output_geometry.index)]
    tile[...] = 0
    tile.real[keep] = real[keep] / magnitude[keep]
    tile.imag[keep] = imag[keep] / magnitude[keep]


@pydantic_dataclass
class ParallelSpectrumCombiner:
    """Combines two spectra over an output geometry, one thread per tile."""

    max_workers: Optional[int] = Field(default=None, ge=1)
    tiles: Optional[int] = Field(default=None, ge=1)
    tile_axis: Optional[int] = Field(default=None, ge=0)
    margin: int = Field(default=0, ge=0)
    epsilon: Optional[float] = Field(default=None, gt=0.0)
    layout: FrequencyLayout = FrequencyLayout.OFFSET

    @property
    def workers(self) -> int:
        return self.max_workers or os.cpu_count() or 1

    def plan(
        self, fixed: Spectrum, moving: Spectrum, output_geometry: Geometry
    ) -> List[TilePlan]:
        """
        Partition the output and compute every tile's input requested regions.

        Args:
            fixed: Fixed spectrum
            moving: Moving spectrum
            output_geometry: Resolved output geometry

        Returns:
            One TilePlan per tile

        Raises:
            RankMismatch: If an input's rank differs from the output's
            RegionOutOfBounds: If any tile needs bins an input does not store
        """
        for name, spectrum in (("fixed", fixed), ("moving", moving)):
            if spectrum.ndim != output_geometry.ndim:
                raise RankMismatch(
                    f"The {name} spectrum has rank {spectrum.ndim}, "
                    f"output geometry has rank {output_geometry.ndim}"
                )

        tile_count = self.tiles or self.workers
        regions = split_region(output_geometry.region, tile_count, axis=self.tile_axis)

        plans = []
        for region in regions:
            plans.append(
                TilePlan(
                    output_region=region,
                    fixed_region=expand_requested_region(
                        region, output_geometry, fixed.region, self.layout, self.margin
                    ),
                    moving_region=expand_requested_region(
                        region, output_geometry, moving.region, self.layout, self.margin
                    ),
                )
            )
        return plans

    def combine(self, fixed: Spectrum, moving: Spectrum, output_geometry: Geometry) -> np.ndarray:
        """
        Compute the full output array.

        Every tile is planned and bounds-checked before the output is
        allocated. The array is returned only after all tiles have finished;
        if a tile fails, the partial buffer is dropped and the error propagates.

        Args:
            fixed: Fixed spectrum (never written)
            moving: Moving spectrum (never written)
            output_geometry: Resolved output geometry

        Returns:
            Complex array of shape output_geometry.size
        """
        plans = self.plan(fixed, moving, output_geometry)
        fixed = _read_only(fixed)
        moving = _read_only(moving)

        dtype = np.result_type(fixed.data.dtype, moving.data.dtype)
        output = np.empty(tuple(output_geometry.size), dtype=dtype)
        epsilon = self.epsilon if self.epsilon is not None else default_epsilon(dtype)
        workers = min(self.workers, len(plans))

        logger.debug(
            f"Combining {len(plans)} tiles on {workers} worker(s), dtype={dtype}, "
            f"epsilon={epsilon:.3g}"
        )

        if workers == 1:
            for tile in plans:
                combine_region(
                    fixed, moving, output, output_geometry, tile.output_region,
                    self.layout, epsilon,
                )
            return output

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(
                    combine_region, fixed, moving, output, output_geometry,
                    tile.output_region, self.layout, epsilon,
                )
                for tile in plans
            ]
            for future in as_completed(futures):
                future.result()

        return output
