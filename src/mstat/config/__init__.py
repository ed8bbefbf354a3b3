"""Settings and per-run configuration."""

from .run_config import MStatConfig, ESTIMATORS, CONVERGENCE_POLICIES  # noqa: F401
from .settings import Settings, settings  # noqa: F401
