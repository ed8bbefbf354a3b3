"""Shrinkage predictions and leverage for a fitted variant."""

from __future__ import annotations

import numpy as np

from ..core.models import VariantFit
from .regression import design_matrix


class InfluenceDiagnostics:
    """Add BLUPs and hat values to a :class:`VariantFit`.

    For study *i* with sampling variance ``v_i`` the shrinkage factor is
    ``λ_i = tau² / (tau² + v_i)``.  The best linear unbiased prediction
    moves the observed effect towards the pooled estimate::

        xbu_i    = λ_i * y_i + (1 - λ_i) * b
        stdxbu_i = sqrt(λ_i * v_i + (1 - λ_i)^2 * var(b))

    where ``var(b)`` is the Knapp–Hartung variance of the pooled effect.
    Leverage is the diagonal of ``X (X'WX)^-1 X'W`` with random-effects
    weights ``W = diag(1 / (v + tau²))``; it lies in [0, 1] and sums to
    the number of fixed parameters.
    """

    def compute(self, fit: VariantFit, beta: np.ndarray, se: np.ndarray) -> VariantFit:
        """Fill the shrinkage and leverage arrays of ``fit`` in place.

        Returns:
            The same ``fit`` for chaining.
        """
        y = np.asarray(beta, dtype=float)
        v = np.asarray(se, dtype=float) ** 2
        X = design_matrix(y.size)
        var_b = fit.beta_fixed_se ** 2

        shrink = fit.tau2 / (fit.tau2 + v)
        fit.predicted_shrunken = shrink * y + (1.0 - shrink) * fit.beta_fixed
        fit.predicted_shrunken_se = np.sqrt(shrink * v + (1.0 - shrink) ** 2 * var_b)

        w = 1.0 / (v + fit.tau2)
        WX = X * w[:, None]
        hat = np.einsum("ij,jk,ik->i", X, np.linalg.inv(X.T @ WX), WX)
        fit.leverage = np.clip(hat, 0.0, 1.0)
        return fit

    @staticmethod
    def n_parameters() -> int:
        """Number of fixed parameters in the per-variant model."""
        return design_matrix(1).shape[1]
