"""Significance testing and labelling of study M statistics."""

from __future__ import annotations

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests

from ..core.models import NullModel, StudyLabel


class SignificanceClassifier:
    """Score each study's M against the null model.

    A study is *influential* when ``M >= critical_threshold`` and
    *underperforming* when ``M <= -critical_threshold``.
    """

    def __init__(self, null: NullModel) -> None:
        self.null = null

    def classify(self, studies: pd.DataFrame) -> pd.DataFrame:
        """Add significance columns to a per-study frame.

        Args:
            studies: One row per study with ``study_id`` and ``M`` columns.

        Returns:
            A copy with ``z, p_value, bonferroni_p, fdr_q, label, rank,
            strength`` added, ordered by ascending M then study id.
        """
        out = studies.sort_values(["M", "study_id"], kind="mergesort").reset_index(drop=True)
        m = out["M"].to_numpy(dtype=float)
        z = (m - self.null.expected_mean) / self.null.expected_sd
        p = 2.0 * stats.norm.cdf(-np.abs(z))
        bonf = np.minimum(1.0, p * self.null.n_studies)
        _, fdr_q, _, _ = multipletests(bonf, method="fdr_bh")

        threshold = self.null.critical_threshold
        labels = np.full(m.size, StudyLabel.NEUTRAL.value, dtype=object)
        labels[m >= threshold] = StudyLabel.INFLUENTIAL.value
        labels[m <= -threshold] = StudyLabel.UNDERPERFORMING.value

        out["z"] = z
        out["p_value"] = p
        out["bonferroni_p"] = bonf
        out["fdr_q"] = fdr_q
        out["label"] = labels
        out["rank"] = np.arange(1, m.size + 1)
        out["strength"] = np.where(m >= 0, "strong", "weak")
        return out

    @staticmethod
    def select(classified: pd.DataFrame, label: StudyLabel) -> pd.DataFrame:
        """Table of studies with ``label``: ``study_id, M, bonferroni_p``."""
        rows = classified.loc[classified["label"] == label.value, ["study_id", "M", "bonferroni_p"]]
        return rows.reset_index(drop=True)
