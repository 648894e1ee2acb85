"""Spectrum data model: complex frequency-domain arrays with bin geometry."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

__all__ = ['Spectrum', 'Geometry', 'Region', 'FrequencyLayout']


class FrequencyLayout(str, Enum):
    """How bin indices of a spectrum relate to frequencies.

    OFFSET: bin k is stored at array position k - index.
    FFT: every axis is in numpy.fft.fftn order (negative frequencies at the tail).
    RFFT: like FFT, but the last axis is the non-negative half axis of rfftn.
    """

    OFFSET = "offset"
    FFT = "fft"
    RFFT = "rfft"

    def is_wrapped(self, axis: int, ndim: int) -> bool:
        """Whether negative frequencies of this axis are stored at its tail."""
        if self is FrequencyLayout.FFT:
            return True
        if self is FrequencyLayout.RFFT:
            return axis != ndim - 1
        return False


class Geometry(NamedTuple):
    """Per-axis size, spacing (bin width) and index (bin-space origin)."""

    size: Tuple[int, ...]
    spacing: Tuple[float, ...]
    index: Tuple[int, ...]

    @property
    def ndim(self) -> int:
        return len(self.size)

    @property
    def region(self) -> "Region":
        """Bin-index range covered by this geometry."""
        return Region(index=tuple(self.index), size=tuple(self.size))


class Region(NamedTuple):
    """Per-axis range [index, index + size) in bin-index space."""

    index: Tuple[int, ...]
    size: Tuple[int, ...]

    @property
    def ndim(self) -> int:
        return len(self.size)

    @property
    def upper(self) -> Tuple[int, ...]:
        """Exclusive upper bound per axis."""
        return tuple(i + s for i, s in zip(self.index, self.size))

    @property
    def num_bins(self) -> int:
        return int(np.prod(self.size)) if self.size else 0

    def contains(self, other: "Region") -> bool:
        """True if `other` lies entirely inside this region."""
        if other.ndim != self.ndim:
            return False
        return all(
            lo >= own_lo and hi <= own_hi
            for lo, hi, own_lo, own_hi in zip(other.index, other.upper, self.index, self.upper)
        )

    def slices(self, origin: Optional[Sequence[int]] = None) -> Tuple[slice, ...]:
        """Array slices selecting this region from an array whose first bin is `origin`."""
        if origin is None:
            origin = (0,) * self.ndim
        return tuple(slice(i - o, i - o + s) for i, s, o in zip(self.index, self.size, origin))


@dataclass(eq=False)
class Spectrum:
    """An N-dimensional complex spectrum with per-axis bin geometry.

    The array is held by reference; a Spectrum never copies complex input data.
    Real-valued arrays are promoted to complex.

    Attributes:
        data: Complex samples, axis 0 slowest varying
        spacing: Frequency-bin width per axis (defaults to 1.0)
        index: Bin-space origin per axis (defaults to 0)
    """

    data: np.ndarray
    spacing: Optional[Sequence[float]] = None
    index: Optional[Sequence[int]] = None

    def __post_init__(self):
        data = np.asarray(self.data)
        if data.ndim == 0 or data.size == 0:
            raise ValueError(f"Spectrum array is empty (shape {data.shape})")
        if not np.iscomplexobj(data):
            logger.warning(f"Promoting {data.dtype} spectrum samples to complex")
            data = data.astype(np.result_type(data.dtype, np.complex64))
        self.data = data

        ndim = data.ndim
        spacing = (1.0,) * ndim if self.spacing is None else tuple(float(s) for s in self.spacing)
        index = (0,) * ndim if self.index is None else tuple(int(i) for i in self.index)

        if len(spacing) != ndim:
            raise ValueError(f"Expected {ndim} spacing values, got {len(spacing)}")
        if len(index) != ndim:
            raise ValueError(f"Expected {ndim} index values, got {len(index)}")
        for axis, s in enumerate(spacing):
            if not np.isfinite(s) or s <= 0:
                raise ValueError(f"Spacing must be positive on axis {axis}, got {s}")

        self.spacing = spacing
        self.index = index

    @property
    def ndim(self) -> int:
        return self.data.ndim

    @property
    def size(self) -> Tuple[int, ...]:
        return tuple(int(n) for n in self.data.shape)

    @property
    def geometry(self) -> Geometry:
        return Geometry(size=self.size, spacing=tuple(self.spacing), index=tuple(self.index))

    @property
    def region(self) -> Region:
        """Bin-index range actually stored in this spectrum."""
        return Region(index=tuple(self.index), size=self.size)
