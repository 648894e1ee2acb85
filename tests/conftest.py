"""Shared fixtures for phase correlation tests."""

import numpy as np
import pytest

from phase_correlation.spectrum import Spectrum


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def make_spectrum(rng):
    """Factory for random complex spectra."""

    def _make(shape, spacing=None, index=None, dtype=np.complex128):
        data = (rng.standard_normal(shape) + 1j * rng.standard_normal(shape)).astype(dtype)
        return Spectrum(data=data, spacing=spacing, index=index)

    return _make
