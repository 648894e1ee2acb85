"""Basic usage example for the phase correlation operator."""

import logging

import numpy as np

from phase_correlation import FrequencyLayout, GeometryAdjustment, PhaseCorrelationOperator
from phase_correlation.transform import correlation_surface, forward_spectrum, peak_translation

# Configure logging
logging.basicConfig(level=logging.INFO)


def make_images(shift=(7, -12), shape=(256, 256), seed=0):
    """Create a random test image and a circularly shifted copy."""
    rng = np.random.default_rng(seed)
    fixed = rng.random(shape)
    moving = np.roll(fixed, shift, axis=(0, 1))
    return fixed, moving


# Example: Register two images of the same size
def register_pair():
    """Recover a known translation from two half spectra."""
    fixed, moving = make_images()

    operator = PhaseCorrelationOperator(layout=FrequencyLayout.RFFT, max_workers=4)
    operator.set_fixed_spectrum(forward_spectrum(fixed, layout=FrequencyLayout.RFFT))
    operator.set_moving_spectrum(forward_spectrum(moving, layout=FrequencyLayout.RFFT))
    operator.execute()
    correlation = operator.get_output()

    surface = correlation_surface(correlation, shape=fixed.shape, layout=FrequencyLayout.RFFT)
    print(f"Correlation spectrum size: {correlation.size}")
    print(f"Recovered shift (moving -> fixed): {peak_translation(surface)}")


# Example: Restrict the combination to low frequencies
def register_low_frequencies():
    """Correlate on the lower half of every axis (half resolution)."""
    fixed, moving = make_images(shift=(8, -12))

    operator = PhaseCorrelationOperator(
        layout=FrequencyLayout.FFT,
        adjustment=GeometryAdjustment.LOW_FREQUENCY_ONLY,
    )
    operator.set_fixed_spectrum(forward_spectrum(fixed, layout=FrequencyLayout.FFT))
    operator.set_moving_spectrum(forward_spectrum(moving, layout=FrequencyLayout.FFT))
    geometry = operator.generate_output_information()
    print(f"Low-frequency output geometry: {geometry}")

    operator.execute()
    surface = correlation_surface(operator.get_output(), layout=FrequencyLayout.FFT)
    print(f"Recovered shift at half resolution: {peak_translation(surface)}")


if __name__ == "__main__":
    print("=" * 60)
    print("Phase Correlation - Basic Usage Example")
    print("=" * 60)

    register_pair()

    print("\n" + "=" * 60)
    print("\n")

    register_low_frequencies()
