"""Error taxonomy for the M statistics pipeline.

``InputError`` and ``ConfigurationError`` are raised before any model is
fitted.  ``ConvergenceError`` is raised per variant by the REML
estimator and is either propagated or turned into an exclusion,
depending on ``MStatConfig.on_convergence_failure``.  ``NumericalAnomaly``
always propagates and names the observation or study that caused it.
"""

from enum import Enum
from typing import Iterable, List, Optional


class ErrorType(Enum):
    """Classification of pipeline failures."""
    INPUT = "input"                  # Malformed observations - fatal, reported up front
    CONFIGURATION = "configuration"  # Bad options - fatal, reported up front
    CONVERGENCE = "convergence"      # REML hit its iteration cap - per variant
    NUMERICAL = "numerical"          # Negative radicand, degenerate interval - fatal


class MStatError(Exception):
    """Base class for all pipeline errors."""

    error_type: ErrorType


class InputError(MStatError, ValueError):
    """Invalid observations.

    ``problems`` holds every issue found during validation so callers can
    report them together.
    """

    error_type = ErrorType.INPUT

    def __init__(
        self,
        message: str,
        problems: Optional[Iterable[str]] = None,
        variant_id: Optional[str] = None,
        study_id: Optional[str] = None,
    ) -> None:
        self.problems: List[str] = list(problems or [])
        self.variant_id = variant_id
        self.study_id = study_id
        super().__init__(message)


class ConfigurationError(MStatError, ValueError):
    """Unknown estimator, out-of-range alpha or unknown policy."""

    error_type = ErrorType.CONFIGURATION


class ConvergenceError(MStatError):
    """The REML Fisher scoring iteration did not converge."""

    error_type = ErrorType.CONVERGENCE

    def __init__(self, message: str, variant_id: Optional[str] = None, iterations: int = 0) -> None:
        self.variant_id = variant_id
        self.iterations = iterations
        super().__init__(message)


class NumericalAnomaly(MStatError, ArithmeticError):
    """A value that cannot be computed without coercion.

    Raised for a negative radicand in the unconditional standard error and
    for a study whose confidence interval has zero degrees of freedom.
    """

    error_type = ErrorType.NUMERICAL

    def __init__(
        self,
        message: str,
        variant_id: Optional[str] = None,
        study_id: Optional[str] = None,
        value: Optional[float] = None,
    ) -> None:
        self.variant_id = variant_id
        self.study_id = study_id
        self.value = value
        super().__init__(message)
