"""Up-front validation of observation tables.

This module provides an :class:`ObservationValidator` that checks an
observation table before any model is fitted, along with a helper
function :func:`validate_observations` that runs every check and raises
a single :class:`~mstat.core.errors.InputError` listing all problems.
Validation covers required columns, effect-size and standard-error
values, duplicate (variant, study) pairs and the minimum number of
studies per variant.
"""

from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd  # type: ignore

from ..core.errors import InputError
from ..utils.logging import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ["beta", "se", "variant_id", "study_id"]

# Number of offending rows quoted per problem
_MAX_EXAMPLES = 5


class ObservationValidator:
    """
    Validate an observation table.

    Validators accumulate errors and can summarise them after performing
    checks.  Each ``validate_*`` method returns ``True`` when its check
    passed.
    """

    def __init__(self) -> None:
        self.errors: List[str] = []

    def validate_columns(self, df: pd.DataFrame) -> bool:
        """Check that all required columns are present."""
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            self.errors.append(f"Missing required column(s): {', '.join(missing)}")
            return False
        return True

    def validate_values(self, df: pd.DataFrame) -> bool:
        """Check that beta is finite and se is finite and positive."""
        ok = True
        beta = pd.to_numeric(df["beta"], errors="coerce").to_numpy(dtype=float)
        se = pd.to_numeric(df["se"], errors="coerce").to_numpy(dtype=float)
        bad_beta = ~np.isfinite(beta)
        if bad_beta.any():
            ok = False
            self.errors.append(
                f"{int(bad_beta.sum())} non-finite beta value(s), e.g. {self._examples(df, bad_beta)}"
            )
        bad_se = ~(np.isfinite(se) & (se > 0))
        if bad_se.any():
            ok = False
            self.errors.append(
                f"{int(bad_se.sum())} non-positive or non-finite se value(s), e.g. {self._examples(df, bad_se)}"
            )
        missing_ids = df["variant_id"].isna() | df["study_id"].isna()
        if missing_ids.any():
            ok = False
            self.errors.append(f"{int(missing_ids.sum())} row(s) without a variant_id or study_id")
        return ok

    def validate_duplicates(self, df: pd.DataFrame) -> bool:
        """Check that each (variant, study) pair appears once."""
        dup = df.duplicated(subset=["variant_id", "study_id"], keep=False).to_numpy()
        if dup.any():
            self.errors.append(
                f"{int(dup.sum())} row(s) share a (variant, study) pair, e.g. {self._examples(df, dup)}"
            )
            return False
        return True

    def validate_variant_sizes(self, df: pd.DataFrame) -> bool:
        """Check that every variant is measured in at least two studies."""
        counts = df.groupby("variant_id", sort=True)["study_id"].nunique()
        small = counts[counts < 2]
        if len(small):
            names = ", ".join(str(v) for v in small.index[:_MAX_EXAMPLES])
            self.errors.append(
                f"{len(small)} variant(s) measured in fewer than 2 studies: {names}"
            )
            return False
        return True

    @staticmethod
    def _examples(df: pd.DataFrame, mask: np.ndarray) -> str:
        rows = df.loc[mask, ["variant_id", "study_id"]].head(_MAX_EXAMPLES)
        return ", ".join(f"({r.variant_id}, {r.study_id})" for r in rows.itertuples(index=False))


def validate_observations(df: pd.DataFrame) -> pd.DataFrame:
    """Validate an observation table and return a normalised copy.

    The copy keeps only the required columns, with ``beta`` and ``se`` as
    floats and the identifiers as strings.

    Raises:
        InputError: Listing every problem found.
    """
    if df is None or len(df) == 0:
        raise InputError("No observations provided", problems=["empty input"])
    validator = ObservationValidator()
    if not validator.validate_columns(df):
        raise InputError(validator.errors[0], problems=validator.errors)

    values_ok = validator.validate_values(df)
    if values_ok:
        df = df[REQUIRED_COLUMNS].copy()
        df["beta"] = pd.to_numeric(df["beta"]).astype(float)
        df["se"] = pd.to_numeric(df["se"]).astype(float)
        df["variant_id"] = df["variant_id"].astype(str).str.strip()
        df["study_id"] = df["study_id"].astype(str).str.strip()
        validator.validate_duplicates(df)
        validator.validate_variant_sizes(df)

    if validator.errors:
        for err in validator.errors:
            logger.error(err)
        raise InputError(
            f"Invalid observations ({len(validator.errors)} problem(s)): " + "; ".join(validator.errors),
            problems=validator.errors,
        )
    return df.reset_index(drop=True)
