"""Loading observation tables from files and models."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from ..core.errors import InputError
from ..core.models import Observation
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Accepted spellings for each standard column, matched case-insensitively
COLUMN_ALIASES: Dict[str, List[str]] = {
    "beta": ["beta", "b", "effect", "effect_size", "log_odds", "beta_in"],
    "se": ["se", "stderr", "standard_error", "lambda_se", "se_in", "lambda_se_in"],
    "variant_id": ["variant_id", "variant", "snp", "rsid", "markername", "variant_names", "variant_names_in"],
    "study_id": ["study_id", "study", "cohort", "study_name", "study_names", "study_names_in"],
}


def map_columns(columns: Iterable[str], overrides: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Map actual column names to the standard names.

    Args:
        columns: Column names present in the input.
        overrides: Explicit ``{standard_name: actual_name}`` choices that
            take precedence over the aliases.

    Returns:
        ``{actual_name: standard_name}`` suitable for ``DataFrame.rename``.
    """
    overrides = {k: v for k, v in (overrides or {}).items() if v}
    lower = {c.lower(): c for c in columns}
    rename: Dict[str, str] = {}
    for standard, aliases in COLUMN_ALIASES.items():
        if standard in overrides:
            actual = overrides[standard]
            if actual not in columns:
                raise InputError(f"Column '{actual}' for {standard} not found in input")
            rename[actual] = standard
            continue
        for alias in aliases:
            if alias in lower:
                rename[lower[alias]] = standard
                break
    return rename


def read_observations(
    path: Path,
    beta_col: Optional[str] = None,
    se_col: Optional[str] = None,
    variant_col: Optional[str] = None,
    study_col: Optional[str] = None,
    sep: Optional[str] = None,
) -> pd.DataFrame:
    """Read a CSV/TSV of observations into the standard column layout.

    The separator is inferred from the suffix (``.tsv``/``.txt`` are tab
    separated) unless ``sep`` is given.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Observation file not found: {path}")
    if sep is None:
        sep = "\t" if path.suffix.lower() in {".tsv", ".txt"} else ","
    # Read as text so identifiers such as "01" survive; validation converts numbers
    df = pd.read_csv(path, sep=sep, dtype=str)
    rename = map_columns(
        df.columns,
        {"beta": beta_col, "se": se_col, "variant_id": variant_col, "study_id": study_col},
    )
    df = df.rename(columns=rename)
    logger.info(f"Loaded {len(df):,} observations from {path}")
    return df


def observations_to_frame(observations: Iterable[Observation]) -> pd.DataFrame:
    """Build the standard observation table from :class:`Observation` models."""
    rows = [obs.model_dump() for obs in observations]
    return pd.DataFrame(rows, columns=["beta", "se", "variant_id", "study_id"])
