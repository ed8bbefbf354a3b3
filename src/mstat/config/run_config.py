"""Per-run configuration for the M statistics pipeline."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.errors import ConfigurationError
from .settings import settings

ESTIMATORS = ("DL", "REML")
CONVERGENCE_POLICIES = ("abort", "exclude")


class MStatConfig(BaseModel):
    """Options controlling a single ``compute_m_statistics`` invocation.

    ``on_convergence_failure`` decides what happens when the REML
    iteration for a variant hits ``reml_max_iter``: ``"abort"`` re-raises
    the :class:`~mstat.core.errors.ConvergenceError`, ``"exclude"`` drops
    the variant and lists it in the result.
    """

    model_config = ConfigDict(frozen=True)

    estimator: Literal["DL", "REML"] = "DL"
    alpha: float = Field(0.05, description="Family-wise significance level")
    on_convergence_failure: Literal["abort", "exclude"] = "abort"
    reml_tol: float = Field(1e-5, gt=0)
    reml_max_iter: int = Field(10_000, ge=1)
    reml_step_adj: float = Field(0.5, gt=0, le=1)
    n_workers: int = Field(1, ge=1)

    @field_validator("estimator", mode="before")
    @classmethod
    def _normalize_estimator(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("alpha")
    @classmethod
    def _check_alpha(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"alpha must lie in (0, 1], got {v}")
        return v

    @classmethod
    def create(cls, **kwargs: Any) -> "MStatConfig":
        """Build a config, reporting bad values as :class:`ConfigurationError`."""
        try:
            return cls(**kwargs)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ConfigurationError(f"Invalid configuration: {problems}") from exc

    @classmethod
    def from_settings(cls, **overrides: Any) -> "MStatConfig":
        """Build a config from the global settings, applying ``overrides``."""
        values = {
            "estimator": settings.estimator,
            "alpha": settings.alpha,
            "on_convergence_failure": settings.on_convergence_failure,
            "reml_tol": settings.reml_tol,
            "reml_max_iter": settings.reml_max_iter,
            "reml_step_adj": settings.reml_step_adj,
            "n_workers": settings.n_workers,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.create(**values)
