"""Unit tests for the random-effects meta-regression engine."""

import numpy as np
import pytest

from mstat.core.errors import ConfigurationError, ConvergenceError, InputError
from mstat.meta.regression import MetaRegressionEngine, residual_projection, design_matrix


def dl_reference(y: np.ndarray, se: np.ndarray) -> dict:
    """Closed-form DerSimonian-Laird fit with Knapp-Hartung variance."""
    v = se ** 2
    w = 1 / v
    k = y.size
    b_fe = np.sum(w * y) / np.sum(w)
    Q = np.sum(w * (y - b_fe) ** 2)
    c = np.sum(w) - np.sum(w ** 2) / np.sum(w)
    tau2 = max(0.0, (Q - (k - 1)) / c)
    ws = 1 / (v + tau2)
    b = np.sum(ws * y) / np.sum(ws)
    s2w = np.sum(ws * (y - b) ** 2) / (k - 1)
    return {"Q": Q, "tau2": tau2, "b": b, "se": np.sqrt(s2w / np.sum(ws)), "c": c}


class TestDerSimonianLaird:
    """Tests for the closed-form moment estimator."""

    def test_heterogeneous_equal_weights(self) -> None:
        """Test the worked example with one outlying study."""
        y = np.array([1.0, 5.0, 1.0])
        se = np.array([0.1, 0.1, 0.1])
        fit = MetaRegressionEngine("DL").fit(y, se, "rs1")

        assert fit.beta_fixed == pytest.approx(7 / 3)
        assert fit.Q == pytest.approx(9600 / 9)
        assert fit.tau2 == pytest.approx((9600 / 9 - 2) / 200)
        # Equal random-effects weights make the Knapp-Hartung scale exactly 1
        assert fit.beta_fixed_se ** 2 == pytest.approx((fit.tau2 + 0.01) / 3)

    def test_matches_reference_with_unequal_weights(self) -> None:
        """Test against an independent implementation on unequal se."""
        y = np.array([0.1, 0.9, 0.4, 1.6, 0.7])
        se = np.array([0.1, 0.2, 0.3, 0.15, 0.25])
        ref = dl_reference(y, se)
        fit = MetaRegressionEngine("DL").fit(y, se, "rs2")

        assert fit.Q == pytest.approx(ref["Q"])
        assert fit.tau2 == pytest.approx(ref["tau2"])
        assert fit.beta_fixed == pytest.approx(ref["b"])
        assert fit.beta_fixed_se == pytest.approx(ref["se"])

    def test_homogeneous_truncates_tau2_at_zero(self) -> None:
        """Test that Q below its degrees of freedom gives tau2 = 0."""
        y = np.array([1.0, 1.01, 0.99])
        se = np.array([0.5, 0.5, 0.5])
        fit = MetaRegressionEngine("DL").fit(y, se)
        assert fit.tau2 == 0.0
        assert fit.I2 == 0.0

    def test_i2_matches_q_formula_when_positive(self) -> None:
        """Test I2 = (Q - df) / Q when the DL estimate is positive."""
        y = np.array([0.1, 0.9, 0.4, 1.6, 0.7])
        se = np.array([0.1, 0.2, 0.3, 0.15, 0.25])
        fit = MetaRegressionEngine("DL").fit(y, se)
        assert fit.tau2 > 0
        assert fit.I2 == pytest.approx(100 * (fit.Q - 4) / fit.Q)

    def test_predictions_are_pooled_estimate(self) -> None:
        """Test xb and xbse are identical across the group."""
        y = np.array([0.2, 0.4, 0.3, 0.9])
        se = np.array([0.1, 0.2, 0.1, 0.3])
        fit = MetaRegressionEngine("DL").fit(y, se)
        assert np.allclose(fit.predicted_fixed, fit.beta_fixed)
        assert np.allclose(fit.predicted_fixed_se, fit.beta_fixed_se)
        assert fit.predicted_fixed.shape == (4,)

    def test_identical_observations(self) -> None:
        """Test identical effects give zero heterogeneity and zero KH variance."""
        y = np.full(4, 2.0)
        se = np.full(4, 0.5)
        fit = MetaRegressionEngine("DL").fit(y, se)
        assert fit.beta_fixed == pytest.approx(2.0)
        assert fit.tau2 == 0.0
        assert fit.Q == pytest.approx(0.0)
        assert fit.beta_fixed_se == pytest.approx(0.0)


class TestREML:
    """Tests for the Fisher scoring REML estimator."""

    def test_equal_variances_closed_form(self) -> None:
        """Test REML equals var(y) - v when all sampling variances are equal."""
        y = np.array([1.0, 5.0, 1.0])
        se = np.array([0.1, 0.1, 0.1])
        fit = MetaRegressionEngine("REML").fit(y, se)
        assert fit.tau2 == pytest.approx(np.var(y, ddof=1) - 0.01, rel=1e-6)
        assert fit.iterations >= 1
        assert fit.converged

    def test_solves_score_equation(self) -> None:
        """Test the REML estimate zeroes the restricted likelihood score."""
        y = np.array([0.1, 0.9, 0.4, 1.6, 0.7])
        se = np.array([0.1, 0.2, 0.3, 0.15, 0.25])
        fit = MetaRegressionEngine("REML", tol=1e-10).fit(y, se)
        P = residual_projection(design_matrix(5), 1 / (se ** 2 + fit.tau2))
        score = y @ P @ P @ y - np.trace(P)
        assert fit.tau2 > 0
        assert abs(score) < 1e-6 * np.trace(P)

    def test_homogeneous_stays_at_zero(self) -> None:
        """Test REML converges on the tau2 = 0 boundary."""
        y = np.full(5, 0.3)
        se = np.array([0.1, 0.2, 0.15, 0.3, 0.1])
        fit = MetaRegressionEngine("REML").fit(y, se)
        assert fit.tau2 == 0.0
        assert fit.iterations == 1

    def test_iteration_cap_raises(self) -> None:
        """Test ConvergenceError when the cap is reached."""
        y = np.array([0.1, 0.9, 0.4, 1.6])
        se = np.array([0.1, 0.2, 0.3, 0.15])
        engine = MetaRegressionEngine("REML", tol=1e-12, max_iter=1)
        with pytest.raises(ConvergenceError) as excinfo:
            engine.fit(y, se, "rs9")
        assert excinfo.value.variant_id == "rs9"
        assert excinfo.value.iterations == 1

    def test_differs_from_dl_with_unequal_weights(self) -> None:
        """Test the two estimators are genuinely different."""
        y = np.array([0.1, 0.9, 0.4, 1.6, 0.7])
        se = np.array([0.1, 0.2, 0.3, 0.15, 0.25])
        dl = MetaRegressionEngine("DL").fit(y, se)
        reml = MetaRegressionEngine("REML").fit(y, se)
        assert dl.tau2 != pytest.approx(reml.tau2)


class TestEngineErrors:
    """Tests for invalid input and configuration."""

    def test_single_study_rejected(self) -> None:
        with pytest.raises(InputError):
            MetaRegressionEngine().fit(np.array([1.0]), np.array([0.1]), "rs1")

    def test_non_positive_se_rejected(self) -> None:
        with pytest.raises(InputError):
            MetaRegressionEngine().fit(np.array([1.0, 2.0]), np.array([0.1, 0.0]))

    def test_unknown_estimator(self) -> None:
        with pytest.raises(ConfigurationError):
            MetaRegressionEngine("PM")

    def test_lowercase_estimator_accepted(self) -> None:
        assert MetaRegressionEngine("reml").estimator == "REML"

    def test_invalid_step_adj(self) -> None:
        with pytest.raises(ConfigurationError):
            MetaRegressionEngine("REML", step_adj=0.0)
