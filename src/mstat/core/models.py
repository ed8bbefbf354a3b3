"""Core domain models for observations, fits and study-level results."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config.run_config import MStatConfig


class Observation(BaseModel):
    """One (variant, study) effect estimate."""

    model_config = ConfigDict(frozen=True)

    beta: float = Field(..., description="Effect size, e.g. log odds ratio")
    se: float = Field(..., gt=0, description="Standard error of beta")
    variant_id: str
    study_id: str

    @field_validator("beta", "se")
    @classmethod
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("must be finite")
        return v

    @field_validator("variant_id", "study_id", mode="before")
    @classmethod
    def _as_str(cls, v: Any) -> str:
        return str(v).strip()


class StudyLabel(str, Enum):
    """Classification of a study by its M statistic."""

    INFLUENTIAL = "influential"
    UNDERPERFORMING = "underperforming"
    NEUTRAL = "neutral"


@dataclass
class VariantFit:
    """Random-effects fit and diagnostics for one variant.

    Per-observation arrays follow the row order of the variant's frame.
    ``predicted_fixed`` and ``predicted_fixed_se`` hold one pooled value
    repeated for every study.
    """

    variant_id: str
    estimator: str
    k: int
    beta_fixed: float
    beta_fixed_se: float
    tau2: float
    I2: float
    Q: float
    iterations: int = 0
    converged: bool = True
    predicted_fixed: np.ndarray = field(default_factory=lambda: np.empty(0))
    predicted_fixed_se: np.ndarray = field(default_factory=lambda: np.empty(0))
    predicted_shrunken: np.ndarray = field(default_factory=lambda: np.empty(0))
    predicted_shrunken_se: np.ndarray = field(default_factory=lambda: np.empty(0))
    leverage: np.ndarray = field(default_factory=lambda: np.empty(0))

    def summary(self) -> Dict[str, Any]:
        """Variant-level fields as a flat dictionary."""
        return {
            "variant_id": self.variant_id,
            "estimator": self.estimator,
            "k": self.k,
            "beta_fixed": self.beta_fixed,
            "beta_fixed_se": self.beta_fixed_se,
            "tau2": self.tau2,
            "I2": self.I2,
            "Q": self.Q,
            "iterations": self.iterations,
            "converged": self.converged,
        }


class MStatistic(BaseModel):
    """Aggregated standardized residuals for one study."""

    study_id: str
    mean: float
    se: float
    sd: float
    n: int = Field(..., ge=1)
    lower: float
    upper: float


class NullModel(BaseModel):
    """Distribution of M under the null of no systematic heterogeneity."""

    model_config = ConfigDict(frozen=True)

    expected_mean: float = 0.0
    expected_sd: float = Field(..., gt=0)
    critical_threshold: float = Field(..., ge=0)
    alpha: float
    n_variants: int = Field(..., ge=1)
    n_studies: int = Field(..., ge=1)


class ClassifiedStudy(MStatistic):
    """An M statistic with its significance and label."""

    z: float
    p_value: float = Field(..., ge=0.0, le=1.0)
    bonferroni_p: float = Field(..., ge=0.0, le=1.0)
    fdr_q: float = Field(..., ge=0.0, le=1.0)
    label: StudyLabel
    rank: int = Field(..., ge=1)


class ExcludedVariant(BaseModel):
    """A variant dropped from aggregation, with the reason."""

    variant_id: str
    reason: str
    iterations: Optional[int] = None


class MStatResult(BaseModel):
    """Everything returned by one pipeline run.

    ``dataset`` has one row per retained observation with the study-level
    fields broadcast onto it; ``studies`` has one row per study.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    dataset: pd.DataFrame
    studies: pd.DataFrame
    influential: pd.DataFrame
    underperforming: pd.DataFrame
    variant_fits: pd.DataFrame
    null_model: NullModel
    excluded_variants: List[ExcludedVariant] = Field(default_factory=list)
    config: MStatConfig

    @property
    def estimator(self) -> str:
        return self.config.estimator

    @property
    def on_convergence_failure(self) -> str:
        return self.config.on_convergence_failure

    @property
    def expected_mean(self) -> float:
        return self.null_model.expected_mean

    @property
    def expected_sd(self) -> float:
        return self.null_model.expected_sd

    @property
    def critical_threshold(self) -> float:
        return self.null_model.critical_threshold

    @property
    def n_variants(self) -> int:
        return self.null_model.n_variants

    @property
    def n_studies(self) -> int:
        return self.null_model.n_studies

    def classified_studies(self) -> List[ClassifiedStudy]:
        """Per-study rows as :class:`ClassifiedStudy` models, in rank order."""
        rows = self.studies.sort_values(["rank", "study_id"], kind="mergesort")
        return [
            ClassifiedStudy(
                study_id=row.study_id,
                mean=row.M,
                se=row.M_se,
                sd=row.M_sd,
                n=int(row.n),
                lower=row.lower_bound,
                upper=row.upper_bound,
                z=row.z,
                p_value=row.p_value,
                bonferroni_p=row.bonferroni_p,
                fdr_q=row.fdr_q,
                label=StudyLabel(row.label),
                rank=int(row.rank),
            )
            for row in rows.itertuples(index=False)
        ]
