"""Per-variant meta-regression.

This package contains the random-effects engine used to pool each
variant's study effects, the sign aligner built on it, and the
shrinkage and leverage diagnostics computed from a fitted variant.
"""

from .regression import MetaRegressionEngine  # noqa: F401
from .alignment import EffectAligner, AlignedVariant  # noqa: F401
from .influence import InfluenceDiagnostics  # noqa: F401
