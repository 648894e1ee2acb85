"""Reference forward/inverse transforms around the phase correlation operator."""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy import fft

from phase_correlation.spectrum import FrequencyLayout, Spectrum

logger = logging.getLogger(__name__)

__all__ = ['forward_spectrum', 'correlation_surface', 'peak_translation']


def forward_spectrum(
    image: np.ndarray,
    spacing: Optional[Sequence[float]] = None,
    layout: FrequencyLayout = FrequencyLayout.RFFT,
) -> Spectrum:
    """
    Compute the spectrum of a real-valued image.

    Args:
        image: Real-valued N-dimensional array
        spacing: Frequency-bin width per axis (defaults to 1.0)
        layout: RFFT for a half spectrum (rfftn), FFT or OFFSET for a full one (fftn)

    Returns:
        Spectrum in the requested layout

    Raises:
        ValueError: If image is empty or complex
    """
    image = np.asarray(image)
    if image.size == 0:
        raise ValueError("Image array is empty")
    if np.iscomplexobj(image):
        raise ValueError(f"Expected a real-valued image, got {image.dtype}")

    if image.dtype not in (np.float32, np.float64):
        logger.warning(f"Converting image from {image.dtype} to float64")
        image = image.astype(np.float64)

    layout = FrequencyLayout(layout)
    if layout is FrequencyLayout.RFFT:
        data = fft.rfftn(image)
    else:
        data = fft.fftn(image)

    logger.debug(f"Forward {layout.value} transform: {image.shape} -> {data.shape}")
    return Spectrum(data=data, spacing=spacing)


def correlation_surface(
    spectrum: Spectrum,
    shape: Optional[Tuple[int, ...]] = None,
    layout: FrequencyLayout = FrequencyLayout.RFFT,
) -> np.ndarray:
    """
    Inverse-transform a correlation spectrum to a real correlation surface.

    Args:
        spectrum: Output of the phase correlation operator
        shape: Spatial shape of the surface; for RFFT defaults to the even
            length implied by the half axis
        layout: Layout the spectrum is stored in

    Returns:
        Real-valued correlation surface
    """
    layout = FrequencyLayout(layout)
    if layout is FrequencyLayout.RFFT:
        if shape is None:
            shape = spectrum.size[:-1] + (2 * (spectrum.size[-1] - 1),)
        return fft.irfftn(spectrum.data, s=shape)
    return np.real(fft.ifftn(spectrum.data, s=shape))


def peak_translation(surface: np.ndarray) -> Tuple[int, ...]:
    """
    Locate the correlation peak as a signed integer translation.

    Peak positions past the middle of an axis wrap to negative shifts.

    Args:
        surface: Real-valued correlation surface

    Returns:
        Per-axis integer shift that maps the moving image onto the fixed one,
        i.e. np.roll(moving, shift) matches fixed for a circular translation
    """
    surface = np.asarray(surface)
    if surface.size == 0:
        raise ValueError("Correlation surface is empty")

    peak = np.unravel_index(int(np.argmax(surface)), surface.shape)
    shift = tuple(
        int(p) if p <= n // 2 else int(p) - n for p, n in zip(peak, surface.shape)
    )
    logger.debug(f"Correlation peak at {tuple(int(p) for p in peak)} -> shift {shift}")
    return shift
