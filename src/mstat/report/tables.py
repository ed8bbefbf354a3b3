"""Console and LaTeX tables of M statistics."""

from __future__ import annotations

from typing import Optional

import pandas as pd
from rich.table import Table

from ..core.models import MStatResult

INFLUENTIAL_TITLE = (
    "M statistics and Bonferroni p-values showing systematically stronger studies "
    "at the {pct:g} percent significance level."
)
UNDERPERFORMING_TITLE = (
    "M statistics and Bonferroni p-values showing systematically weaker studies "
    "at the {pct:g} percent significance level."
)


def studies_table(result: MStatResult, title: str = "M statistics") -> Table:
    """Rich table with one row per study in rank order."""
    table = Table(title=title)
    table.add_column("Rank", justify="right")
    table.add_column("Study", style="cyan")
    table.add_column("M", justify="right")
    table.add_column("95% CI (Bonferroni)", justify="right")
    table.add_column("Bonferroni p", justify="right")
    table.add_column("q", justify="right")
    table.add_column("Label")
    styles = {"influential": "green", "underperforming": "red", "neutral": "white"}
    for row in result.studies.itertuples(index=False):
        table.add_row(
            str(row.rank),
            row.study_id,
            f"{row.M:.4f}",
            f"[{row.lower_bound:.3f}, {row.upper_bound:.3f}]",
            f"{row.bonferroni_p:.3g}",
            f"{row.fdr_q:.3g}",
            f"[{styles[row.label]}]{row.label}[/{styles[row.label]}]",
        )
    return table


def summary_table(result: MStatResult) -> Table:
    """Rich table of the null model scalars."""
    table = Table(title="Null model")
    table.add_column("Quantity", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Variants", str(result.n_variants))
    table.add_row("Studies", str(result.n_studies))
    table.add_row("Expected mean", f"{result.expected_mean:g}")
    table.add_row("Expected SD", f"{result.expected_sd:.6g}")
    table.add_row("Critical threshold", f"{result.critical_threshold:.6g}")
    if result.excluded_variants:
        table.add_row("Excluded variants", str(len(result.excluded_variants)))
    return table


def to_latex(rows: pd.DataFrame, caption: str) -> Optional[str]:
    """LaTeX tabular for a significant-study table, or ``None`` if it is empty."""
    if rows.empty:
        return None
    renamed = rows.rename(columns={"study_id": "Study", "bonferroni_p": "Bonferroni\\_pvalue"})
    return renamed.to_latex(index=False, caption=caption, float_format="%.4g")


def significant_latex(result: MStatResult) -> dict:
    """LaTeX for the influential and underperforming tables."""
    pct = 100 * result.null_model.alpha
    return {
        "influential": to_latex(result.influential, INFLUENTIAL_TITLE.format(pct=pct)),
        "underperforming": to_latex(result.underperforming, UNDERPERFORMING_TITLE.format(pct=pct)),
    }
