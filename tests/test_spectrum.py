"""Tests for the spectrum data model."""

import numpy as np
import pytest

from phase_correlation.spectrum import FrequencyLayout, Geometry, Region, Spectrum


def test_spectrum_defaults():
    """Test default spacing and index."""
    spectrum = Spectrum(data=np.ones((4, 6), dtype=np.complex128))

    assert spectrum.ndim == 2
    assert spectrum.size == (4, 6)
    assert spectrum.spacing == (1.0, 1.0)
    assert spectrum.index == (0, 0)
    assert spectrum.geometry == Geometry(size=(4, 6), spacing=(1.0, 1.0), index=(0, 0))
    assert spectrum.region == Region(index=(0, 0), size=(4, 6))


def test_spectrum_keeps_reference_to_complex_data():
    """Complex input arrays are borrowed, not copied."""
    data = np.zeros((3, 3), dtype=np.complex64)
    spectrum = Spectrum(data=data, spacing=(0.5, 2.0), index=(1, -1))

    assert spectrum.data is data
    assert spectrum.spacing == (0.5, 2.0)
    assert spectrum.index == (1, -1)


def test_spectrum_promotes_real_data():
    """Real arrays are promoted to complex."""
    spectrum = Spectrum(data=np.arange(5, dtype=np.float32))

    assert np.iscomplexobj(spectrum.data)
    assert spectrum.data.dtype == np.complex64


def test_spectrum_input_validation():
    """Test input validation for Spectrum."""
    with pytest.raises(ValueError, match="Spectrum array is empty"):
        Spectrum(data=np.array([], dtype=np.complex128))

    with pytest.raises(ValueError, match="Expected 2 spacing values"):
        Spectrum(data=np.ones((2, 2), dtype=np.complex128), spacing=(1.0,))

    with pytest.raises(ValueError, match="Expected 2 index values"):
        Spectrum(data=np.ones((2, 2), dtype=np.complex128), index=(0, 0, 0))

    with pytest.raises(ValueError, match="Spacing must be positive"):
        Spectrum(data=np.ones((2, 2), dtype=np.complex128), spacing=(1.0, 0.0))


def test_region_helpers():
    """Test Region bounds, containment and slicing."""
    outer = Region(index=(0, 2), size=(10, 5))
    inner = Region(index=(3, 4), size=(2, 3))

    assert outer.upper == (10, 7)
    assert outer.num_bins == 50
    assert outer.contains(inner)
    assert not inner.contains(outer)
    assert not outer.contains(Region(index=(0, 2, 0), size=(1, 1, 1)))
    assert inner.slices(origin=(0, 2)) == (slice(3, 5), slice(2, 5))


def test_frequency_layout_wrapped_axes():
    """RFFT keeps the last axis unwrapped."""
    assert not FrequencyLayout.OFFSET.is_wrapped(0, 2)
    assert FrequencyLayout.FFT.is_wrapped(1, 2)
    assert FrequencyLayout.RFFT.is_wrapped(0, 2)
    assert not FrequencyLayout.RFFT.is_wrapped(1, 2)
    assert FrequencyLayout("rfft") is FrequencyLayout.RFFT
