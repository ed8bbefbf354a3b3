"""Standardized predicted random effects (usta)."""

from __future__ import annotations

import numpy as np
import pandas as pd

from ..core.errors import NumericalAnomaly
from ..core.models import VariantFit


def standardize_residuals(frame: pd.DataFrame, fit: VariantFit) -> pd.DataFrame:
    """Attach fit fields and standardized residuals to one variant's rows.

    ``usta = (beta - xb) / sqrt(se^2 + tau2 - xbse^2)`` following
    Harbord & Higgins, "Meta-regression in Stata", Stata Journal 8(4).

    Args:
        frame: The variant's aligned observations, in the row order used to fit.
        fit: The variant's fit with diagnostics filled in.

    Returns:
        A copy of ``frame`` with the columns ``tau2, I2, Q, xb, xbse, xbu,
        stdxbu, hat, raw_residual, uncond_se, usta``.

    Raises:
        NumericalAnomaly: The unconditional variance of an observation is
            not positive.
    """
    out = frame.copy()
    out["tau2"] = fit.tau2
    out["I2"] = fit.I2
    out["Q"] = fit.Q
    out["xb"] = fit.predicted_fixed
    out["xbse"] = fit.predicted_fixed_se
    out["xbu"] = fit.predicted_shrunken
    out["stdxbu"] = fit.predicted_shrunken_se
    out["hat"] = fit.leverage

    se = out["se"].to_numpy(dtype=float)
    radicand = se ** 2 + fit.tau2 - fit.predicted_fixed_se ** 2
    bad = np.flatnonzero(~(radicand > 0.0))
    if bad.size:
        i = int(bad[0])
        study_id = str(out["study_id"].iloc[i])
        raise NumericalAnomaly(
            f"Unconditional variance se^2 + tau2 - xbse^2 = {radicand[i]:.6g} is not positive "
            f"for variant {fit.variant_id}, study {study_id}",
            variant_id=fit.variant_id,
            study_id=study_id,
            value=float(radicand[i]),
        )
    out["raw_residual"] = out["beta"] - out["xb"]
    out["uncond_se"] = np.sqrt(radicand)
    out["usta"] = out["raw_residual"] / out["uncond_se"]
    return out
