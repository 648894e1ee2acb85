"""Phase correlation operator - combines fixed and moving spectra."""

import logging
import time
from typing import Callable, Optional, Union

from pydantic import Field
from pydantic.dataclasses import dataclass

from phase_correlation.combiner import ParallelSpectrumCombiner
from phase_correlation.errors import RankMismatch
from phase_correlation.geometry import GeometryAdjustment, resolve_output_geometry, select_adjustment
from phase_correlation.spectrum import FrequencyLayout, Geometry, Spectrum

logger = logging.getLogger(__name__)

__all__ = ['PhaseCorrelationOperator']


@dataclass
class PhaseCorrelationOperator:
    """
    Computes the normalized cross-power spectrum of two spectra.

    The two inputs may differ in size and spacing. The output keeps the
    smaller size and the coarser spacing on every axis, optionally shrunk
    further by the geometry adjustment (e.g. to low frequencies only). Its
    inverse transform peaks at the translation between the source images.

    Typical use:

        op = PhaseCorrelationOperator(adjustment="low_frequency_only")
        op.set_fixed_spectrum(fixed)
        op.set_moving_spectrum(moving)
        op.execute()
        correlation = op.get_output()
    """

    adjustment: Union[GeometryAdjustment, Callable[[Geometry], Geometry]] = GeometryAdjustment.DEFAULT
    custom_adjustment: Optional[Callable[[Geometry], Geometry]] = None
    layout: FrequencyLayout = FrequencyLayout.OFFSET
    max_workers: Optional[int] = Field(default=None, ge=1)
    tiles: Optional[int] = Field(default=None, ge=1)
    tile_axis: Optional[int] = Field(default=None, ge=0)
    region_margin: int = Field(default=0, ge=0)
    epsilon: Optional[float] = Field(default=None, gt=0.0)

    def __post_init__(self):
        """Select the adjustment hook and set up the combiner."""
        self.adjustment_hook = select_adjustment(self.adjustment, self.custom_adjustment)
        self.combiner = ParallelSpectrumCombiner(
            max_workers=self.max_workers,
            tiles=self.tiles,
            tile_axis=self.tile_axis,
            margin=self.region_margin,
            epsilon=self.epsilon,
            layout=self.layout,
        )
        self._fixed: Optional[Spectrum] = None
        self._moving: Optional[Spectrum] = None
        self._output: Optional[Spectrum] = None

    def set_fixed_spectrum(self, spectrum: Spectrum) -> None:
        """Connect the fixed spectrum (borrowed, never written)."""
        spectrum = self._check_input(spectrum, "fixed")
        self._check_ranks(spectrum, self._moving)
        self._fixed = spectrum

    def set_moving_spectrum(self, spectrum: Spectrum) -> None:
        """Connect the moving spectrum (borrowed, never written)."""
        spectrum = self._check_input(spectrum, "moving")
        self._check_ranks(self._fixed, spectrum)
        self._moving = spectrum

    @staticmethod
    def _check_input(spectrum: Spectrum, name: str) -> Spectrum:
        if not isinstance(spectrum, Spectrum):
            raise TypeError(f"The {name} input must be a Spectrum, got {type(spectrum).__name__}")
        return spectrum

    @staticmethod
    def _check_ranks(fixed: Optional[Spectrum], moving: Optional[Spectrum]) -> None:
        if fixed is None or moving is None:
            return
        if fixed.ndim != moving.ndim:
            raise RankMismatch(
                f"Fixed spectrum has rank {fixed.ndim}, "
                f"moving spectrum has rank {moving.ndim}"
            )

    def verify_input_information(self) -> None:
        """
        Check that the connected inputs can be combined.

        Pipelines usually require all inputs of a stage to occupy the same
        physical space. These inputs are spectra of images whose physical
        extents may differ, so that check does not apply here; spacing
        compatibility belongs to the stage producing the spectra. Only the
        presence of both inputs and their rank agreement are verified.

        Raises:
            ValueError: If an input is not connected
            RankMismatch: If the inputs differ in rank
        """
        if self._fixed is None:
            raise ValueError("Fixed spectrum is not set")
        if self._moving is None:
            raise ValueError("Moving spectrum is not set")
        self._check_ranks(self._fixed, self._moving)
        logger.debug("Skipping same-physical-space check for fixed and moving spectra")

    def generate_output_information(self) -> Geometry:
        """
        Resolve the output geometry without touching any samples.

        Returns:
            Output geometry after the adjustment hook
        """
        self.verify_input_information()
        return resolve_output_geometry(
            self._fixed.geometry,
            self._moving.geometry,
            adjustment=self.adjustment_hook,
            layout=self.layout,
        )

    def execute(self) -> Spectrum:
        """
        Resolve the output geometry, then combine the spectra in parallel.

        Any previous output is released first. On error, no output is kept.

        Returns:
            The new correlation spectrum (also available through get_output)
        """
        self._output = None
        start = time.perf_counter()

        geometry = self.generate_output_information()
        data = self.combiner.combine(self._fixed, self._moving, geometry)
        output = Spectrum(data=data, spacing=geometry.spacing, index=geometry.index)

        logger.info(
            f"Phase correlation complete: fixed {self._fixed.size} x moving {self._moving.size} "
            f"-> {output.size} in {time.perf_counter() - start:.3f}s"
        )
        self._output = output
        return output

    def get_output(self) -> Spectrum:
        """
        Hand the last output over to the caller.

        The operator drops its own reference, so a second call raises until
        execute() runs again.

        Raises:
            RuntimeError: If there is no output to hand over
        """
        if self._output is None:
            raise RuntimeError("No output available; call execute() first")
        output, self._output = self._output, None
        return output
