"""Exceptions raised by trellishmm."""


class TrellisHMMError(Exception):
    """Base class for all trellishmm errors."""


class InvalidDistribution(TrellisHMMError, ValueError):
    """A loaded probability row is malformed or does not sum to 1."""


class MissingData(TrellisHMMError, RuntimeError):
    """Training was requested before all parameters and data were loaded."""


class InfeasiblePath(TrellisHMMError, RuntimeError):
    """No path of nonzero probability connects the trellis start and end."""


class NumericFailure(TrellisHMMError, FloatingPointError):
    """A NaN appeared during forward-backward or re-estimation."""
