"""Expected distribution and critical threshold of M under the null."""

from __future__ import annotations

import math

from scipy import stats

from ..core.errors import InputError
from ..core.models import NullModel


def null_model(n_variants: int, n_studies: int, alpha: float = 0.05) -> NullModel:
    """Mean, spread and critical value of M under no systematic heterogeneity.

    Each study's M is treated as the mean of ``n_variants`` independent
    unit-variance standardized residuals, so its expected mean is 0 and
    its sd is ``sqrt(n_variants * (1 / n_variants)^2)``.  The threshold is
    the two-sided normal critical value at ``alpha / n_studies`` scaled by
    that sd.

    Raises:
        InputError: ``n_variants`` or ``n_studies`` is below 1.
    """
    if n_variants < 1 or n_studies < 1:
        raise InputError(
            f"Null model needs at least one variant and one study (got {n_variants}, {n_studies})"
        )
    expected_mean = n_variants * (1.0 / n_variants) * 0.0
    expected_sd = math.sqrt(n_variants * (1.0 / n_variants) ** 2)
    z_crit = abs(float(stats.norm.ppf((alpha / n_studies) / 2.0)))
    return NullModel(
        expected_mean=expected_mean,
        expected_sd=expected_sd,
        critical_threshold=z_crit * expected_sd,
        alpha=alpha,
        n_variants=n_variants,
        n_studies=n_studies,
    )
