"""M statistics for systematic heterogeneity in GWAS meta-analysis.

Per-variant random-effects fits are turned into standardized predicted
random effects, which are averaged per study into M statistics and
compared against their null distribution to flag studies that are
systematically stronger (influential) or weaker (underperforming) than
the rest of the meta-analysis.
"""

__version__ = "0.1.0"

from .config.run_config import MStatConfig  # noqa: E402,F401
from .core.errors import (  # noqa: E402,F401
    MStatError,
    InputError,
    ConfigurationError,
    ConvergenceError,
    NumericalAnomaly,
)
from .core.models import Observation, MStatResult, NullModel, StudyLabel  # noqa: E402,F401
from .pipeline import compute_m_statistics  # noqa: E402,F401
from .stats.null_model import null_model  # noqa: E402,F401
