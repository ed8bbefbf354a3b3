"""Unit tests for per-study aggregation and the null model."""

import math

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from mstat.core.errors import InputError, NumericalAnomaly
from mstat.stats.aggregation import StudyAggregator
from mstat.stats.null_model import null_model


class TestStudyAggregator:
    """Tests for StudyAggregator."""

    def test_mean_sd_and_interval(self) -> None:
        usta = np.array([0.5, -0.2, 1.1, 0.3, 0.0])
        frame = pd.DataFrame({"usta": usta, "beta": 0.1})
        m = StudyAggregator(alpha=0.05, n_studies=4, n_variants=5).aggregate(frame, "S1")

        se = usta.std(ddof=1) / math.sqrt(5)
        tcrit = stats.t.ppf(1 - 0.025 / 4, 4)
        assert m.study_id == "S1"
        assert m.n == 5
        assert m.mean == pytest.approx(usta.mean())
        assert m.sd == pytest.approx(usta.std(ddof=1))
        assert m.se == pytest.approx(se)
        assert m.lower == pytest.approx(usta.mean() - tcrit * se)
        assert m.upper == pytest.approx(usta.mean() + tcrit * se)

    def test_missing_variants_do_not_shift_mean(self) -> None:
        """Test a study measured in fewer variants keeps the plain mean."""
        frame = pd.DataFrame({"usta": [1.0, 2.0], "beta": 0.0})
        m = StudyAggregator(alpha=0.05, n_studies=3, n_variants=10).aggregate(frame, "S1")
        assert m.mean == pytest.approx(1.5)

    def test_more_studies_widen_interval(self) -> None:
        frame = pd.DataFrame({"usta": [0.1, 0.4, -0.3, 0.8], "beta": 0.0})
        narrow = StudyAggregator(0.05, n_studies=2, n_variants=4).aggregate(frame, "S1")
        wide = StudyAggregator(0.05, n_studies=50, n_variants=4).aggregate(frame, "S1")
        assert wide.upper - wide.lower > narrow.upper - narrow.lower

    def test_single_observation_raises(self) -> None:
        frame = pd.DataFrame({"usta": [0.7], "beta": 0.2})
        with pytest.raises(NumericalAnomaly) as excinfo:
            StudyAggregator(0.05, n_studies=3, n_variants=3).aggregate(frame, "C")
        assert excinfo.value.study_id == "C"

    def test_effect_size_summary(self) -> None:
        frame = pd.DataFrame({"beta": [0.1, 0.3, 0.2], "usta": 0.0})
        summary = StudyAggregator.effect_size_summary(frame)
        assert summary["beta_mean"] == pytest.approx(0.2)
        assert summary["oddsratio"] == pytest.approx(math.exp(0.2))
        assert summary["beta_n"] == 3


class TestNullModel:
    """Tests for null_model."""

    @pytest.mark.parametrize("n_variants", [1, 2, 50, 1000])
    def test_expected_sd(self, n_variants: int) -> None:
        null = null_model(n_variants=n_variants, n_studies=10)
        assert null.expected_mean == 0
        assert null.expected_sd == pytest.approx(1 / math.sqrt(n_variants))

    def test_threshold_value(self) -> None:
        null = null_model(n_variants=5, n_studies=3, alpha=0.05)
        z = abs(stats.norm.ppf(0.05 / 3 / 2))
        assert null.critical_threshold == pytest.approx(z * math.sqrt(0.2))
        assert null.critical_threshold == pytest.approx(1.0706, abs=1e-4)

    def test_threshold_grows_with_studies(self) -> None:
        thresholds = [null_model(20, n).critical_threshold for n in (1, 2, 5, 20, 100)]
        assert thresholds == sorted(thresholds)
        assert len(set(thresholds)) == len(thresholds)

    def test_threshold_shrinks_with_variants(self) -> None:
        assert null_model(100, 5).critical_threshold < null_model(10, 5).critical_threshold

    @pytest.mark.parametrize("n_variants,n_studies", [(0, 5), (5, 0), (-1, 3)])
    def test_invalid_counts(self, n_variants: int, n_studies: int) -> None:
        with pytest.raises(InputError):
            null_model(n_variants=n_variants, n_studies=n_studies)
