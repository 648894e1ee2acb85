"""Phase Correlation - normalized cross-power spectra for image registration"""

__version__ = "0.1.0"

from .combiner import ParallelSpectrumCombiner, combine_region
from .errors import IncompatibleGeometry, PhaseCorrelationError, RankMismatch, RegionOutOfBounds
from .geometry import GeometryAdjustment, resolve_output_geometry
from .operator import PhaseCorrelationOperator
from .regions import expand_requested_region, split_region
from .spectrum import FrequencyLayout, Geometry, Region, Spectrum

__all__ = [
    "PhaseCorrelationOperator",
    "ParallelSpectrumCombiner",
    "combine_region",
    "resolve_output_geometry",
    "expand_requested_region",
    "split_region",
    "GeometryAdjustment",
    "FrequencyLayout",
    "Geometry",
    "Region",
    "Spectrum",
    "PhaseCorrelationError",
    "RankMismatch",
    "IncompatibleGeometry",
    "RegionOutOfBounds",
]
