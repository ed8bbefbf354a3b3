"""Shared observation tables for end-to-end tests."""

import numpy as np
import pandas as pd
import pytest


def grid(effects: dict, n_variants: int, se: float = 0.1) -> pd.DataFrame:
    """Every study measured in every variant with a fixed effect per study."""
    rows = [
        {"beta": beta, "se": se, "variant_id": f"rs{v}", "study_id": study}
        for v in range(1, n_variants + 1)
        for study, beta in effects.items()
    ]
    return pd.DataFrame(rows)


@pytest.fixture
def outlier_study() -> pd.DataFrame:
    """Three studies and five variants; study B is always 4 units higher."""
    return grid({"A": 1.0, "B": 5.0, "C": 1.0}, n_variants=5)


@pytest.fixture
def random_observations() -> pd.DataFrame:
    """Eight variants in six studies with mixed signs and precisions."""
    rng = np.random.default_rng(2024)
    rows = []
    for v in range(8):
        effect = rng.normal(0, 0.3)
        for s in range(6):
            rows.append({
                "beta": effect + rng.normal(0, 0.15),
                "se": rng.uniform(0.05, 0.2),
                "variant_id": f"rs{v:02d}",
                "study_id": f"study{s}",
            })
    return pd.DataFrame(rows)
