"""Error taxonomy for the phase correlation operator."""

__all__ = [
    'PhaseCorrelationError',
    'RankMismatch',
    'IncompatibleGeometry',
    'RegionOutOfBounds',
]


class PhaseCorrelationError(ValueError):
    """Base class for structural errors raised while combining spectra."""


class RankMismatch(PhaseCorrelationError):
    """Fixed and moving spectra have a different number of dimensions."""


class IncompatibleGeometry(PhaseCorrelationError):
    """Resolved or adjusted output geometry cannot be produced from the inputs."""


class RegionOutOfBounds(PhaseCorrelationError):
    """A requested input region is not stored in the input spectrum."""
