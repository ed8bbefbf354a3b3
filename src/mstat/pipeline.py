"""End-to-end computation of M statistics.

The pipeline is a split-apply-combine over two keys.  Observations are
first partitioned by variant; each variant is aligned, fitted and
diagnosed independently (optionally in a process pool) and the
standardized rows are concatenated in variant order.  The standardized
table is then partitioned by study to build the M statistics, which are
finally scored against the null model and broadcast back onto every
observation.

Usage:
    result = compute_m_statistics(df, estimator="REML", on_convergence_failure="exclude")
    result.studies            # one row per study
    result.influential        # study_id, M, bonferroni_p
    result.critical_threshold
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from .config.run_config import MStatConfig
from .core.errors import ConvergenceError
from .core.models import ExcludedVariant, MStatResult, Observation, StudyLabel, VariantFit
from .io.loaders import observations_to_frame
from .io.validation import validate_observations
from .meta.alignment import EffectAligner
from .meta.influence import InfluenceDiagnostics
from .meta.regression import MetaRegressionEngine
from .stats.aggregation import StudyAggregator
from .stats.classification import SignificanceClassifier
from .stats.null_model import null_model
from .stats.residuals import standardize_residuals
from .utils.logging import EventSink, emit_event, get_logger

logger = get_logger(__name__)

DATASET_COLUMNS = [
    "study_id", "beta", "se", "variant_id", "M", "M_sd", "M_se", "lower_bound", "upper_bound", "n",
    "z", "p_value", "bonferroni_p", "fdr_q", "label", "rank", "tau2", "I2", "Q", "xb", "xbse",
    "raw_residual", "uncond_se", "usta", "xbu", "stdxbu", "hat", "study_number", "variant_number",
    "beta_mean", "oddsratio", "beta_n",
]


@dataclass
class VariantOutcome:
    """Result of the per-variant stage.  ``error`` is set when REML failed."""

    variant_id: str
    frame: Optional[pd.DataFrame]
    fit: Optional[VariantFit]
    flipped: bool = False
    error: Optional[str] = None
    iterations: int = 0


def process_variant(payload: Tuple[str, pd.DataFrame, MStatConfig]) -> VariantOutcome:
    """Align, fit and diagnose one variant.

    Module-level so it can be shipped to worker processes.  A
    :class:`ConvergenceError` is returned in the outcome instead of
    raised; the caller applies the convergence policy.
    """
    variant_id, frame, config = payload
    engine = MetaRegressionEngine.from_config(config)
    try:
        aligned = EffectAligner(engine).align(frame, variant_id)
        fit = engine.fit_frame(aligned.frame, variant_id)
    except ConvergenceError as exc:
        return VariantOutcome(variant_id, None, None, error=str(exc), iterations=exc.iterations)
    InfluenceDiagnostics().compute(
        fit,
        aligned.frame["beta"].to_numpy(dtype=float),
        aligned.frame["se"].to_numpy(dtype=float),
    )
    return VariantOutcome(variant_id, aligned.frame, fit, flipped=aligned.flipped, iterations=fit.iterations)


def resolve_config(config: Optional[MStatConfig] = None, **overrides: Any) -> MStatConfig:
    """Combine an explicit config, the global settings and keyword overrides."""
    if config is None:
        return MStatConfig.from_settings(**overrides)
    if overrides:
        values = config.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return MStatConfig.create(**values)
    return config


def _as_frame(observations: Union[pd.DataFrame, Iterable[Observation]]) -> pd.DataFrame:
    if isinstance(observations, pd.DataFrame):
        return observations
    return observations_to_frame(observations)


def _number_levels(values: pd.Series) -> Dict[str, int]:
    """1-based index of each distinct value in sorted order."""
    return {level: i for i, level in enumerate(sorted(values.unique()), start=1)}


def _run_variants(
    groups: Dict[str, pd.DataFrame], config: MStatConfig
) -> List[VariantOutcome]:
    payloads = [(vid, groups[vid], config) for vid in sorted(groups)]
    if config.n_workers > 1 and len(payloads) > 1:
        with ProcessPoolExecutor(max_workers=config.n_workers) as pool:
            return list(pool.map(process_variant, payloads))
    return [process_variant(p) for p in payloads]


def compute_m_statistics(
    observations: Union[pd.DataFrame, Iterable[Observation]],
    config: Optional[MStatConfig] = None,
    sink: Optional[EventSink] = None,
    **overrides: Any,
) -> MStatResult:
    """Compute M statistics for every study in a meta-analysis.

    Args:
        observations: Table with ``beta, se, variant_id, study_id`` columns
            or an iterable of :class:`Observation`.
        config: Run configuration; built from settings when omitted.
        sink: Optional callable receiving structured progress events.
        **overrides: Config fields (``estimator``, ``alpha``, ...) that
            take precedence over ``config``.

    Returns:
        The merged dataset, per-study classification, significant-study
        tables, null model and the list of excluded variants.

    Raises:
        ConfigurationError: Invalid configuration.
        InputError: Invalid observations.
        ConvergenceError: REML failed for a variant and the policy is
            ``"abort"``, or every variant failed.
        NumericalAnomaly: A negative unconditional variance, or a study
            with a single observation.
    """
    config = resolve_config(config, **overrides)
    df = validate_observations(_as_frame(observations))
    study_numbers = _number_levels(df["study_id"])
    variant_numbers = _number_levels(df["variant_id"])
    logger.info(
        f"M statistics: {len(variant_numbers)} variants, {len(study_numbers)} studies, "
        f"estimator={config.estimator}, alpha={config.alpha}"
    )

    # Per-variant stage
    groups = {str(vid): grp.reset_index(drop=True) for vid, grp in df.groupby("variant_id", sort=True)}
    outcomes = _run_variants(groups, config)

    excluded: List[ExcludedVariant] = []
    standardized: List[pd.DataFrame] = []
    fit_rows: List[Dict[str, Any]] = []
    for outcome in outcomes:
        if outcome.error is not None:
            if config.on_convergence_failure == "abort":
                raise ConvergenceError(outcome.error, variant_id=outcome.variant_id, iterations=outcome.iterations)
            logger.warning(f"Excluding variant {outcome.variant_id}: {outcome.error}")
            excluded.append(
                ExcludedVariant(variant_id=outcome.variant_id, reason=outcome.error, iterations=outcome.iterations)
            )
            emit_event(sink, logger, "variant_excluded", variant_id=outcome.variant_id, reason=outcome.error)
            continue
        fit = outcome.fit
        if outcome.flipped:
            emit_event(sink, logger, "variant_aligned", variant_id=outcome.variant_id)
        emit_event(sink, logger, "variant_fit", **fit.summary())
        fit_rows.append({**fit.summary(), "flipped": outcome.flipped})
        standardized.append(standardize_residuals(outcome.frame, fit))

    if not standardized:
        raise ConvergenceError("No variant could be fitted; every variant failed to converge")

    data = pd.concat(standardized, ignore_index=True)
    n_variants = data["variant_id"].nunique()
    n_studies = data["study_id"].nunique()

    # Per-study stage
    aggregator = StudyAggregator(alpha=config.alpha, n_studies=n_studies, n_variants=n_variants)
    study_rows: List[Dict[str, Any]] = []
    for study_id, grp in data.groupby("study_id", sort=True):
        mstat = aggregator.aggregate(grp, str(study_id))
        row = {
            "study_id": mstat.study_id,
            "M": mstat.mean,
            "M_se": mstat.se,
            "M_sd": mstat.sd,
            "n": mstat.n,
            "lower_bound": mstat.lower,
            "upper_bound": mstat.upper,
            **aggregator.effect_size_summary(grp),
            "study_number": study_numbers[mstat.study_id],
        }
        emit_event(sink, logger, "study_aggregate", **row)
        study_rows.append(row)

    null = null_model(n_variants=n_variants, n_studies=n_studies, alpha=config.alpha)
    emit_event(sink, logger, "null_model", **null.model_dump())
    logger.info(
        f"Expected M mean = {null.expected_mean}; SD = {null.expected_sd:.6g}; "
        f"critical threshold = {null.critical_threshold:.6g}"
    )

    classifier = SignificanceClassifier(null)
    studies = classifier.classify(pd.DataFrame(study_rows))
    influential = classifier.select(studies, StudyLabel.INFLUENTIAL)
    underperforming = classifier.select(studies, StudyLabel.UNDERPERFORMING)
    logger.info(
        f"{len(influential)} influential and {len(underperforming)} underperforming studies "
        f"at alpha = {config.alpha}"
    )

    # Broadcast study-level fields onto every observation
    study_fields = studies[
        ["study_id", "M", "M_sd", "M_se", "lower_bound", "upper_bound", "n", "z", "p_value",
         "bonferroni_p", "fdr_q", "label", "rank", "study_number", "beta_mean", "oddsratio", "beta_n"]
    ]
    dataset = data.merge(study_fields, on="study_id", how="left", validate="many_to_one")
    dataset["variant_number"] = dataset["variant_id"].map(variant_numbers)
    dataset = dataset[DATASET_COLUMNS].sort_values(["study_id", "variant_id"], kind="mergesort")

    return MStatResult(
        dataset=dataset.reset_index(drop=True),
        studies=studies,
        influential=influential,
        underperforming=underperforming,
        variant_fits=pd.DataFrame(fit_rows),
        null_model=null,
        excluded_variants=excluded,
        config=config,
    )
