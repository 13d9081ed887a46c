# jaxpgm/exceptions.py
"""
Error taxonomy for jaxpgm factors.

All errors subclass ValueError as well as JaxPGMError so that callers
catching ValueError keep working.
"""


class JaxPGMError(Exception):
    """Base class for jaxpgm errors."""


class NotFittedError(JaxPGMError, ValueError):
    """An operation that needs a fitted factor was called before fit()."""


class DataTypeMismatchError(JaxPGMError, ValueError):
    """Column widths differ from the training dtype, or are not float32/float64."""


class VariableSetError(JaxPGMError, ValueError):
    """Empty or duplicated variable set."""


class DegenerateSampleWarning(UserWarning):
    """fit() found no jointly complete rows; evaluations will be NaN."""
