"""Exceptions raised by splicediv."""


class SpliceDivError(ValueError):
    """Base class for all splicediv errors."""


class ShapeMismatch(SpliceDivError):
    """Gene labels or condition labels do not line up with the expression data."""


class UnknownMethod(SpliceDivError):
    """An enumerated option (diversity or summary method) is not recognized."""


class UnknownTest(UnknownMethod):
    """The requested significance test is not recognized."""


class UnknownCorrection(UnknownMethod):
    """The requested multiple testing correction is not recognized."""


class InvalidInput(SpliceDivError):
    """Expression values are not numeric, not finite or negative."""


class InvalidCondition(SpliceDivError):
    """Sample conditions are malformed or the control label is missing."""


class InsufficientData(SpliceDivError):
    """There is nothing to compute on."""
