"""Random-effects meta-regression for a single variant.

This module defines :class:`MetaRegressionEngine`, which pools the
per-study effect sizes of one variant with an intercept-only weighted
random-effects model.  The between-study variance (tau²) is estimated
either with the DerSimonian–Laird moment estimator (``"DL"``) or by
restricted maximum likelihood (``"REML"``) using Fisher scoring with a
damped step.  Standard errors of the pooled estimate carry the
Knapp–Hartung adjustment, so the variance of the pooled effect is
scaled by the weighted residual mean square instead of assuming the
weights are exact.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
import pandas as pd

from ..config.run_config import ESTIMATORS, MStatConfig
from ..core.errors import ConfigurationError, ConvergenceError, InputError
from ..core.models import VariantFit
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Smallest step accepted while halving towards the tau² = 0 boundary
_MIN_STEP = 1e-12


def design_matrix(k: int) -> np.ndarray:
    """Intercept-only design matrix for ``k`` studies."""
    return np.ones((k, 1), dtype=float)


def weighted_least_squares(
    X: np.ndarray, y: np.ndarray, w: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Solve the weighted normal equations.

    Returns:
        The coefficient vector and ``(X'WX)^-1``.
    """
    XtW = X.T * w
    XtWX = XtW @ X
    inv_XtWX = np.linalg.inv(XtWX)
    coef = inv_XtWX @ (XtW @ y)
    return coef, inv_XtWX


def residual_projection(X: np.ndarray, w: np.ndarray) -> np.ndarray:
    """``P = W - W X (X'WX)^-1 X'W`` for weights ``w``."""
    W = np.diag(w)
    WX = X * w[:, None]
    inv_XtWX = np.linalg.inv(X.T @ WX)
    return W - WX @ inv_XtWX @ WX.T


class MetaRegressionEngine:
    """Fit the per-variant random-effects model.

    The engine is stateless apart from its estimator settings and can be
    shared across variants and worker processes.
    """

    def __init__(
        self,
        estimator: str = "DL",
        tol: float = 1e-5,
        max_iter: int = 10_000,
        step_adj: float = 0.5,
    ) -> None:
        """
        Initialize the engine.

        Args:
            estimator: ``"DL"`` or ``"REML"``.
            tol: REML convergence threshold on the absolute change in tau².
            max_iter: Maximum number of REML Fisher scoring iterations.
            step_adj: Step length multiplier for each REML update.
        """
        estimator = estimator.upper()
        if estimator not in ESTIMATORS:
            raise ConfigurationError(
                f"Unknown estimator '{estimator}'. Known estimators: {', '.join(ESTIMATORS)}"
            )
        if max_iter < 1:
            raise ConfigurationError("max_iter must be at least 1")
        if not 0.0 < step_adj <= 1.0:
            raise ConfigurationError("step_adj must lie in (0, 1]")
        self.estimator = estimator
        self.tol = tol
        self.max_iter = max_iter
        self.step_adj = step_adj

    @classmethod
    def from_config(cls, config: MStatConfig) -> "MetaRegressionEngine":
        return cls(
            estimator=config.estimator,
            tol=config.reml_tol,
            max_iter=config.reml_max_iter,
            step_adj=config.reml_step_adj,
        )

    def fit_frame(self, frame: pd.DataFrame, variant_id: Optional[str] = None) -> VariantFit:
        """Fit the model to a frame with ``beta`` and ``se`` columns."""
        if variant_id is None and "variant_id" in frame.columns and len(frame):
            variant_id = str(frame["variant_id"].iloc[0])
        return self.fit(frame["beta"].to_numpy(dtype=float), frame["se"].to_numpy(dtype=float), variant_id)

    def fit(self, beta: np.ndarray, se: np.ndarray, variant_id: Optional[str] = None) -> VariantFit:
        """Pool the effect sizes of one variant.

        Args:
            beta: Effect sizes, one per study.
            se: Standard errors matching ``beta``.
            variant_id: Used in log messages and errors.

        Returns:
            A :class:`VariantFit` with the pooled estimate, variance
            components and fixed-effect predictions.  The shrinkage and
            leverage arrays are left empty; see
            :class:`~mstat.meta.influence.InfluenceDiagnostics`.

        Raises:
            InputError: Fewer than two studies or a non-positive standard error.
            ConvergenceError: The REML iteration reached ``max_iter``.
        """
        y = np.asarray(beta, dtype=float)
        se = np.asarray(se, dtype=float)
        k = y.size
        if k < 2:
            raise InputError(
                f"Variant {variant_id} has {k} observation(s); at least 2 studies are required",
                variant_id=variant_id,
            )
        if np.any(se <= 0) or not np.all(np.isfinite(se)):
            raise InputError(f"Variant {variant_id} has a non-positive standard error", variant_id=variant_id)
        v = se ** 2
        X = design_matrix(k)
        p = X.shape[1]

        # Fixed-effect quantities: Q and the trace used by DL and I²
        w_fe = 1.0 / v
        coef_fe, _ = weighted_least_squares(X, y, w_fe)
        resid_fe = y - X @ coef_fe
        Q = float(np.sum(w_fe * resid_fe ** 2))
        tr_P_fe = float(np.trace(residual_projection(X, w_fe)))

        iterations = 0
        if self.estimator == "DL":
            tau2 = max(0.0, (Q - (k - p)) / tr_P_fe)
        else:
            tau2, iterations = self._tau2_reml(X, y, v, variant_id)

        # Random-effects pooled estimate with Knapp-Hartung variance
        w = 1.0 / (v + tau2)
        coef, inv_XtWX = weighted_least_squares(X, y, w)
        resid = y - X @ coef
        s2w = float(np.sum(w * resid ** 2)) / (k - p)
        vb = s2w * inv_XtWX
        pred = X @ coef
        pred_se = np.sqrt(np.einsum("ij,jk,ik->i", X, vb, X))

        vt = (k - p) / tr_P_fe
        I2 = 100.0 * tau2 / (vt + tau2)

        fit = VariantFit(
            variant_id=str(variant_id),
            estimator=self.estimator,
            k=k,
            beta_fixed=float(coef[0]),
            beta_fixed_se=float(np.sqrt(vb[0, 0])),
            tau2=float(tau2),
            I2=float(I2),
            Q=Q,
            iterations=iterations,
            converged=True,
            predicted_fixed=pred,
            predicted_fixed_se=pred_se,
        )
        logger.debug(
            "Variant %s: k=%d b=%.6g se=%.6g tau2=%.6g I2=%.2f Q=%.4g",
            variant_id, k, fit.beta_fixed, fit.beta_fixed_se, fit.tau2, fit.I2, fit.Q,
        )
        return fit

    def _tau2_hedges(self, X: np.ndarray, y: np.ndarray, v: np.ndarray) -> float:
        """Hedges (HE) estimate, used as the REML starting value."""
        k, p = X.shape
        P = np.eye(k) - X @ np.linalg.inv(X.T @ X) @ X.T
        rss = float(y @ P @ y)
        tr_PV = float(np.trace(P * v[None, :]))
        return max(0.0, (rss - tr_PV) / (k - p))

    def _tau2_reml(
        self, X: np.ndarray, y: np.ndarray, v: np.ndarray, variant_id: Optional[str]
    ) -> Tuple[float, int]:
        """REML estimate of tau² by Fisher scoring.

        Each iteration moves tau² by ``step_adj * (y'PPy - tr P) / tr(PP)``.
        When the step would make tau² negative it is halved until it does
        not.  Iteration stops once the change falls below ``tol``.
        """
        tau2 = self._tau2_hedges(X, y, v)
        for iteration in range(1, self.max_iter + 1):
            P = residual_projection(X, 1.0 / (v + tau2))
            PP = P @ P
            adj = (float(y @ PP @ y) - float(np.trace(P))) / float(np.trace(PP))
            step = self.step_adj
            while tau2 + step * adj < 0.0 and step > _MIN_STEP:
                step /= 2.0
            tau2_new = max(0.0, tau2 + step * adj)
            change = abs(tau2_new - tau2)
            tau2 = tau2_new
            if change <= self.tol:
                return tau2, iteration
        raise ConvergenceError(
            f"REML did not converge for variant {variant_id} within {self.max_iter} iterations",
            variant_id=variant_id,
            iterations=self.max_iter,
        )
