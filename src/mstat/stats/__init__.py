"""Observation- and study-level statistics built on the variant fits."""

from .residuals import standardize_residuals  # noqa: F401
from .aggregation import StudyAggregator  # noqa: F401
from .null_model import null_model  # noqa: F401
from .classification import SignificanceClassifier  # noqa: F401
