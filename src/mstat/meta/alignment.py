"""Sign alignment of study effects within a variant."""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from ..utils.logging import get_logger
from .regression import MetaRegressionEngine

logger = get_logger(__name__)


@dataclass
class AlignedVariant:
    """A variant's observations after alignment."""

    variant_id: str
    frame: pd.DataFrame
    flipped: bool
    beta_fixed: float


class EffectAligner:
    """Orient each variant so its pooled effect is non-negative.

    Allele coding is arbitrary, so a variant whose pooled estimate is
    negative has every study's ``beta`` negated.  After alignment a
    positive standardized residual always means the study deviates in the
    direction of the pooled effect.  ``se`` is never changed, and aligning
    an already aligned variant leaves it untouched.
    """

    def __init__(self, engine: MetaRegressionEngine) -> None:
        self.engine = engine

    def align(self, frame: pd.DataFrame, variant_id: str) -> AlignedVariant:
        """Return an aligned copy of ``frame`` (one variant's rows)."""
        fit = self.engine.fit_frame(frame, variant_id)
        aligned = frame.copy()
        flipped = fit.beta_fixed < 0
        beta_fixed = fit.beta_fixed
        if flipped:
            logger.debug("Aligning study effects in variant: %s", variant_id)
            aligned["beta"] = -aligned["beta"]
            beta_fixed = -beta_fixed
        return AlignedVariant(variant_id=variant_id, frame=aligned, flipped=flipped, beta_fixed=beta_fixed)
