"""Smoke tests for the public API."""

import math

import mstat
from mstat import compute_m_statistics, null_model


def test_version_is_defined() -> None:
    assert isinstance(mstat.__version__, str)


def test_null_model_defaults() -> None:
    null = null_model(n_variants=4, n_studies=2)
    assert null.expected_mean == 0
    assert math.isclose(null.expected_sd, 0.5)
    assert null.alpha == 0.05


def test_compute_from_observation_models() -> None:
    # Three studies, two variants, study B consistently higher
    observations = [
        mstat.Observation(beta=b, se=0.1, variant_id=v, study_id=s)
        for v in ("rs1", "rs2")
        for s, b in (("A", 1.0), ("B", 1.5), ("C", 1.0))
    ]
    result = compute_m_statistics(observations, estimator="DL")
    assert result.n_studies == 3
    assert result.n_variants == 2
    m = result.studies.set_index("study_id")["M"]
    assert m["B"] > 0 > m["A"]


def test_classified_studies_in_rank_order() -> None:
    observations = [
        mstat.Observation(beta=b, se=0.1, variant_id=v, study_id=s)
        for v in ("rs1", "rs2", "rs3")
        for s, b in (("A", 1.0), ("B", 5.0), ("C", 1.0))
    ]
    result = compute_m_statistics(observations)
    classified = result.classified_studies()
    assert [c.rank for c in classified] == [1, 2, 3]
    assert classified[-1].study_id == "B"
    assert classified[-1].label is mstat.StudyLabel.INFLUENTIAL


def test_classified_studies_keep_interval() -> None:
    observations = [
        mstat.Observation(beta=b, se=0.1, variant_id=v, study_id=s)
        for v in ("rs1", "rs2", "rs3")
        for s, b in (("A", 1.0), ("B", 1.4), ("C", 0.9))
    ]
    result = compute_m_statistics(observations)
    studies = result.studies.set_index("study_id")
    for study in result.classified_studies():
        row = studies.loc[study.study_id]
        assert study.mean == row["M"]
        assert study.se == row["M_se"]
        assert study.sd == row["M_sd"]
        assert study.n == 3
        assert study.lower == row["lower_bound"]
        assert study.upper == row["upper_bound"]
        assert study.lower <= study.mean <= study.upper
