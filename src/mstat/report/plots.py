"""Figures for M statistics.

This module draws the two standard figures with matplotlib: a
histogram of the study M statistics, and a scatter of each study's M
against its average variant effect size (odds ratio scale) with the
critical threshold marked.  Both read a finished
:class:`~mstat.core.models.MStatResult` and never modify it.
"""

from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
from pathlib import Path  # noqa: E402

import numpy as np  # noqa: E402

from ..core.models import MStatResult  # noqa: E402
from ..utils.logging import get_logger  # noqa: E402

logger = get_logger(__name__)


def plot_histogram(result: MStatResult, output_file: Path) -> Path:
    """Histogram of the per-study M statistics."""
    fig, ax = plt.subplots(figsize=(6.8, 9.2))
    ax.hist(result.studies["M"].to_numpy(dtype=float), bins="auto", color="#4c72b0", edgecolor="white")
    ax.set_title("Histogram of M statistics")
    ax.set_xlabel("M statistics")
    ax.set_ylabel("Frequency")
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_file, dpi=300, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Histogram saved to {output_file}")
    return output_file


def plot_m_vs_effect_size(result: MStatResult, output_file: Path) -> Path:
    """Scatter of M against average variant effect size.

    The x axis is the study's mean aligned beta, labelled as odds
    ratios.  Dashed lines mark ``±critical_threshold`` and a solid line
    marks zero.
    """
    studies = result.studies
    x = studies["beta_mean"].to_numpy(dtype=float)
    m = studies["M"].to_numpy(dtype=float)
    threshold = result.critical_threshold

    fig, ax = plt.subplots(figsize=(9.2, 6.8))
    points = ax.scatter(x, m, c=m, cmap="rainbow", s=60, zorder=3)
    for xi, mi, number in zip(x, m, studies["study_number"]):
        ax.annotate(str(number), (xi, mi), textcoords="offset points", xytext=(-6, 5),
                    fontsize=7, color="#6e7b8b")
    for y in (-threshold, threshold):
        ax.axhline(y, color="grey", linestyle="--", linewidth=0.8)
    ax.axhline(0.0, color="grey", linestyle="-", linewidth=0.8)

    ticks = ax.get_xticks()
    ax.set_xticks(ticks)
    ax.set_xticklabels([f"{np.exp(t):.2f}" for t in ticks])
    ax.set_xlabel("Average effect size (odds ratio)")
    ax.set_ylabel("M statistic")
    fig.colorbar(points, ax=ax, orientation="horizontal", label="M statistic", pad=0.12)

    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_file, dpi=300, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Scatterplot saved to {output_file}")
    return output_file
