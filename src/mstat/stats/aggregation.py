"""Per-study aggregation of standardized residuals into M statistics."""

from __future__ import annotations

from typing import Dict

import numpy as np
import pandas as pd
from scipy import stats

from ..core.errors import NumericalAnomaly
from ..core.models import MStatistic
from ..utils.logging import get_logger

logger = get_logger(__name__)


class StudyAggregator:
    """Compute the M statistic and its Bonferroni interval for each study.

    The interval uses a t critical value at ``1 - (alpha / 2) / n_studies``
    with ``n - 1`` degrees of freedom, so one interval is built per study
    and the family of intervals keeps ``alpha`` overall.
    """

    def __init__(self, alpha: float, n_studies: int, n_variants: int) -> None:
        self.alpha = alpha
        self.n_studies = n_studies
        self.n_variants = n_variants

    def aggregate(self, frame: pd.DataFrame, study_id: str) -> MStatistic:
        """Summarise ``usta`` over one study's observations.

        Raises:
            NumericalAnomaly: The study has a single observation, so its
                interval has zero degrees of freedom.
        """
        usta = frame["usta"].to_numpy(dtype=float)
        n = usta.size
        if n < 2:
            raise NumericalAnomaly(
                f"Study {study_id} has {n} observation(s); its confidence interval "
                "has zero degrees of freedom",
                study_id=study_id,
                value=float(n),
            )
        mean = float(np.mean(usta))
        sd = float(np.std(usta, ddof=1))
        se = sd / np.sqrt(n)
        tcrit = float(stats.t.ppf(1.0 - (self.alpha / 2.0) / self.n_studies, n - 1))
        # Top-up for variants the study did not measure: contributes zero
        topup = (self.n_variants - n) * ((1.0 / n) * 0.0)
        m = mean + topup
        return MStatistic(
            study_id=study_id,
            mean=m,
            se=se,
            sd=sd,
            n=n,
            lower=mean - tcrit * se,
            upper=mean + tcrit * se,
        )

    @staticmethod
    def effect_size_summary(frame: pd.DataFrame) -> Dict[str, float]:
        """Average aligned effect size of a study, also as an odds ratio."""
        beta = frame["beta"].to_numpy(dtype=float)
        beta_mean = float(np.mean(beta))
        return {
            "beta_mean": beta_mean,
            "oddsratio": float(np.exp(beta_mean)),
            "beta_n": int(beta.size),
        }
