"""Tests for the cross-power spectrum kernel and its parallel driver."""

import numpy as np
import pytest
from pydantic import ValidationError

from phase_correlation.combiner import ParallelSpectrumCombiner, combine_region, default_epsilon
from phase_correlation.errors import RankMismatch, RegionOutOfBounds
from phase_correlation.spectrum import FrequencyLayout, Geometry, Region, Spectrum


def _full(spectrum):
    return Geometry(size=spectrum.size, spacing=tuple(spectrum.spacing), index=(0,) * spectrum.ndim)


def test_known_values():
    """C = F * conj(M) normalized to unit magnitude."""
    fixed = Spectrum(data=np.array([2 + 0j, 3 + 4j, 1j]))
    moving = Spectrum(data=np.array([1j, 1 + 0j, 1j]))

    output = ParallelSpectrumCombiner(max_workers=1).combine(fixed, moving, _full(fixed))

    np.testing.assert_allclose(output, [-1j, 0.6 + 0.8j, 1 + 0j])


def test_output_has_unit_magnitude(make_spectrum):
    """Every non-degenerate sample has magnitude 1."""
    fixed = make_spectrum((16, 12))
    moving = make_spectrum((16, 12))

    output = ParallelSpectrumCombiner().combine(fixed, moving, _full(fixed))

    np.testing.assert_allclose(np.abs(output), 1.0, rtol=1e-12)


def test_zero_guard(make_spectrum):
    """Zero fixed or moving samples give exactly zero, never NaN or Inf."""
    fixed = make_spectrum((8, 8))
    moving = make_spectrum((8, 8))
    fixed.data[1, 2] = 0
    moving.data[5, 5] = 0
    fixed.data[0, 0] = 0
    moving.data[0, 0] = 0

    output = ParallelSpectrumCombiner().combine(fixed, moving, _full(fixed))

    assert np.all(np.isfinite(output))
    assert output[1, 2] == 0
    assert output[5, 5] == 0
    assert output[0, 0] == 0


def test_non_finite_samples_give_zero():
    """Overflowing or NaN products are mapped to zero."""
    fixed = Spectrum(data=np.array([np.nan + 0j, 1e200 + 0j, np.inf + 1j, 1 + 1j]))
    moving = Spectrum(data=np.array([1 + 0j, 1e200 + 0j, 1 + 0j, 1 + 1j]))

    output = ParallelSpectrumCombiner().combine(fixed, moving, _full(fixed))

    assert np.all(np.isfinite(output))
    np.testing.assert_array_equal(output[:3], [0, 0, 0])
    np.testing.assert_allclose(output[3], 1 + 0j)


def test_epsilon_threshold():
    """Magnitudes at or below epsilon are zeroed."""
    fixed = Spectrum(data=np.array([1e-3 + 0j, 1.0 + 0j]))
    moving = Spectrum(data=np.array([1e-3 + 0j, 1.0 + 0j]))

    output = ParallelSpectrumCombiner(epsilon=1e-4).combine(fixed, moving, _full(fixed))

    np.testing.assert_array_equal(output, [0, 1])


def test_low_energy_single_precision_bins_keep_their_phase():
    """complex64 bins with a small but normal |C| are normalized, not zeroed."""
    fixed = Spectrum(data=np.array([1e-4 + 1e-4j, 1e-20 + 0j], dtype=np.complex64))
    moving = Spectrum(data=np.array([1e-4j, 1e-20 + 0j], dtype=np.complex64))

    output = ParallelSpectrumCombiner().combine(fixed, moving, _full(fixed))

    assert output.dtype == np.complex64
    np.testing.assert_allclose(output[0], (1 - 1j) / np.sqrt(2), rtol=1e-6)
    # 1e-40 is below the smallest normal float32
    assert output[1] == 0


def test_locality(make_spectrum):
    """Changing other bins never changes the output at a given bin."""
    fixed = make_spectrum((6, 7))
    moving = make_spectrum((6, 7))
    combiner = ParallelSpectrumCombiner(max_workers=2)
    before = combiner.combine(fixed, moving, _full(fixed))

    changed_fixed = Spectrum(data=fixed.data.copy())
    changed_moving = Spectrum(data=moving.data.copy())
    changed_fixed.data[0, :] = 0
    changed_moving.data[:, 4] = 17 - 3j
    changed_fixed.data[3, 1] = -5j
    after = combiner.combine(changed_fixed, changed_moving, _full(fixed))

    assert after[2, 2] == before[2, 2]
    assert after[5, 6] == before[5, 6]
    assert after[0, 3] == 0


@pytest.mark.parametrize(
    "max_workers, tiles, tile_axis",
    [(2, None, None), (4, 7, None), (3, 5, 1), (8, 64, 2), (1, 3, 0)],
)
def test_determinism_across_tilings(make_spectrum, max_workers, tiles, tile_axis):
    """Any tiling and worker count gives a bit-identical output."""
    fixed = make_spectrum((9, 10, 11))
    moving = make_spectrum((9, 10, 11))
    geometry = _full(fixed)

    reference = ParallelSpectrumCombiner(max_workers=1, tiles=1).combine(fixed, moving, geometry)
    output = ParallelSpectrumCombiner(
        max_workers=max_workers, tiles=tiles, tile_axis=tile_axis
    ).combine(fixed, moving, geometry)

    assert output.tobytes() == reference.tobytes()


def test_inputs_are_not_modified(make_spectrum):
    """Inputs are read through read-only views and left untouched."""
    fixed = make_spectrum((8, 8))
    moving = make_spectrum((8, 8))
    fixed_copy = fixed.data.copy()
    moving_copy = moving.data.copy()

    ParallelSpectrumCombiner(max_workers=4).combine(fixed, moving, _full(fixed))

    np.testing.assert_array_equal(fixed.data, fixed_copy)
    np.testing.assert_array_equal(moving.data, moving_copy)
    assert fixed.data.flags.writeable


def test_output_dtype_follows_inputs(make_spectrum):
    """complex64 inputs give a complex64 output."""
    fixed = make_spectrum((4, 4), dtype=np.complex64)
    moving = make_spectrum((4, 4), dtype=np.complex64)

    output = ParallelSpectrumCombiner().combine(fixed, moving, _full(fixed))

    assert output.dtype == np.complex64
    assert default_epsilon(np.complex64) == float(np.finfo(np.float32).tiny)


def test_smaller_output_reads_leading_bins(make_spectrum):
    """In the offset layout a smaller output reads the same bin indices."""
    fixed = make_spectrum((12,))
    moving = make_spectrum((8,), spacing=(2.0,))
    geometry = Geometry(size=(8,), spacing=(2.0,), index=(0,))

    output = ParallelSpectrumCombiner().combine(fixed, moving, geometry)
    expected = ParallelSpectrumCombiner().combine(
        Spectrum(data=fixed.data[:8]), moving, geometry
    )

    np.testing.assert_array_equal(output, expected)


def test_input_origin_offsets(make_spectrum):
    """Inputs whose arrays start at another bin are read at the matching bins."""
    fixed = make_spectrum((10,), index=(-2,))
    moving = make_spectrum((6,))
    geometry = Geometry(size=(6,), spacing=(1.0,), index=(0,))

    output = ParallelSpectrumCombiner().combine(fixed, moving, geometry)
    expected = ParallelSpectrumCombiner().combine(
        Spectrum(data=fixed.data[2:8]), moving, geometry
    )

    np.testing.assert_array_equal(output, expected)


def test_fft_layout_truncation(make_spectrum):
    """Wrapped layouts read negative frequencies from the tail of larger inputs."""
    fixed = make_spectrum((8, 6))
    moving = make_spectrum((4, 6))
    geometry = Geometry(size=(4, 6), spacing=(1.0, 1.0), index=(0, 0))

    output = ParallelSpectrumCombiner(layout=FrequencyLayout.RFFT).combine(fixed, moving, geometry)
    trimmed = Spectrum(data=fixed.data[[0, 1, 6, 7], :])
    expected = ParallelSpectrumCombiner().combine(trimmed, moving, geometry)

    np.testing.assert_array_equal(output, expected)


def test_out_of_bounds_raises_before_allocation(make_spectrum):
    """Missing input bins abort the run before any tile is combined."""
    fixed = make_spectrum((8,), index=(4,))
    moving = make_spectrum((8,))
    geometry = Geometry(size=(8,), spacing=(1.0,), index=(0,))

    with pytest.raises(RegionOutOfBounds):
        ParallelSpectrumCombiner(max_workers=4).combine(fixed, moving, geometry)


def test_combine_region_checks_bounds(make_spectrum):
    """The kernel refuses to read bins the input does not store."""
    fixed = make_spectrum((4,))
    moving = make_spectrum((8,))
    geometry = Geometry(size=(8,), spacing=(1.0,), index=(0,))
    output = np.zeros(8, dtype=np.complex128)

    combine_region(fixed, moving, output, geometry, Region(index=(0,), size=(4,)))
    with pytest.raises(RegionOutOfBounds, match="only \\[0, 3\\] are stored"):
        combine_region(fixed, moving, output, geometry, Region(index=(4,), size=(4,)))


def test_plan_reports_requested_regions(make_spectrum):
    """Each tile plan carries the input regions it reads."""
    fixed = make_spectrum((6, 4))
    moving = make_spectrum((6, 4))

    plans = ParallelSpectrumCombiner(tiles=2, margin=1).plan(fixed, moving, _full(fixed))

    assert [p.output_region for p in plans] == [
        Region(index=(0, 0), size=(3, 4)),
        Region(index=(3, 0), size=(3, 4)),
    ]
    assert plans[0].fixed_region == Region(index=(0, 0), size=(4, 4))
    assert plans[1].moving_region == Region(index=(2, 0), size=(4, 4))


def test_plan_rank_mismatch(make_spectrum):
    """Inputs must match the output rank."""
    fixed = make_spectrum((4, 4))
    moving = make_spectrum((4, 4, 4))

    with pytest.raises(RankMismatch):
        ParallelSpectrumCombiner().plan(fixed, moving, _full(fixed))


def test_combiner_configuration_validation():
    """Test configuration validation for ParallelSpectrumCombiner."""
    with pytest.raises(ValidationError):
        ParallelSpectrumCombiner(max_workers=0)

    with pytest.raises(ValidationError):
        ParallelSpectrumCombiner(epsilon=0.0)

    with pytest.raises(ValidationError):
        ParallelSpectrumCombiner(margin=-1)
