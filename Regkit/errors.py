# =============================================================================
# module: errors.py
# Purpose: Exception taxonomy for model estimation and sensitivity analysis
# Key Types/Classes: RegkitError, InsufficientDataError, SingularDesignError,
#                    DivisionByZeroError
# Dependencies: typing
# =============================================================================
from typing import Optional


class RegkitError(Exception):
    """
    Base class for all errors raised by the Regkit pipeline.

    Parameters
    ----------
    message : str
        Human-readable description of the failure.
    response : str, optional
        Name of the response variable the failure belongs to.
    """

    def __init__(self, message: str, response: Optional[str] = None):
        super().__init__(message)
        self.response = response


class InsufficientDataError(RegkitError, ValueError):
    """
    Too few complete observations for the requested design.

    Raised when the number of complete rows does not exceed the number of
    design columns (intercept included), leaving no residual degrees of freedom.
    """

    def __init__(self, message: str, response: Optional[str] = None,
                 nobs: int = 0, n_params: int = 0):
        super().__init__(message, response=response)
        self.nobs = nobs
        self.n_params = n_params


class SingularDesignError(RegkitError, ValueError):
    """
    Design matrix is rank deficient (collinear or duplicate predictors).
    """

    def __init__(self, message: str, response: Optional[str] = None,
                 rank: int = 0, n_params: int = 0):
        super().__init__(message, response=response)
        self.rank = rank
        self.n_params = n_params


class DivisionByZeroError(RegkitError, ZeroDivisionError):
    """
    A sensitivity ratio was requested for a coefficient estimated at exactly zero.
    """

    def __init__(self, message: str, response: Optional[str] = None,
                 coefficient: Optional[str] = None):
        super().__init__(message, response=response)
        self.coefficient = coefficient
