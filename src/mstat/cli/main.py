"""CLI application using Typer for the M statistics pipeline."""

from pathlib import Path
from typing import Optional
import typer
from rich.console import Console

from ..config.run_config import MStatConfig
from ..config.settings import settings
from ..core.errors import MStatError
from ..io.loaders import read_observations
from ..io.writers import create_output_dir, write_results
from ..pipeline import compute_m_statistics
from ..report.tables import significant_latex, studies_table, summary_table
from ..stats.null_model import null_model
from ..utils.logging import get_logger

app = typer.Typer(
    name="mstat",
    help="M statistics - detect systematic heterogeneity in GWAS meta-analysis",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


@app.command()
def version() -> None:
    """Show version information."""
    from .. import __version__
    console.print(f"mstat v{__version__}")


@app.command()
def compute(
    input_file: Path = typer.Argument(..., help="CSV/TSV with one row per (variant, study)", exists=True),
    beta_col: Optional[str] = typer.Option(None, "--beta-col", help="Column with effect sizes"),
    se_col: Optional[str] = typer.Option(None, "--se-col", help="Column with standard errors"),
    variant_col: Optional[str] = typer.Option(None, "--variant-col", help="Column with variant identifiers"),
    study_col: Optional[str] = typer.Option(None, "--study-col", help="Column with study identifiers"),
    estimator: str = typer.Option(settings.estimator, "--estimator", "-e", help="tau2 estimator: DL or REML"),
    alpha: float = typer.Option(settings.alpha, "--alpha", help="Family-wise significance level"),
    on_convergence_failure: str = typer.Option(
        settings.on_convergence_failure,
        "--on-convergence-failure",
        help="What to do when REML does not converge for a variant: abort or exclude",
    ),
    workers: int = typer.Option(settings.n_workers, "--workers", "-j", help="Processes for per-variant fits"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Directory for result files"),
    save: bool = typer.Option(False, "--save/--no-save", help="Write results (timestamped dir if --output absent)"),
    plots: bool = typer.Option(False, "--plots/--no-plots", help="Save histogram and scatterplot"),
    latex: bool = typer.Option(False, "--latex/--no-latex", help="Print LaTeX tables of significant studies"),
) -> None:
    """
    Compute M statistics for every study in a meta-analysis.

    Examples:
        mstat compute effects.csv
        mstat compute effects.tsv -e REML --on-convergence-failure exclude -o results/
    """
    console.print("[bold blue]Computing M statistics[/bold blue]")
    try:
        config = MStatConfig.create(
            estimator=estimator,
            alpha=alpha,
            on_convergence_failure=on_convergence_failure,
            reml_tol=settings.reml_tol,
            reml_max_iter=settings.reml_max_iter,
            reml_step_adj=settings.reml_step_adj,
            n_workers=workers,
        )
        df = read_observations(
            input_file, beta_col=beta_col, se_col=se_col, variant_col=variant_col, study_col=study_col
        )
        result = compute_m_statistics(df, config=config)
    except MStatError as exc:
        console.print(f"[red]Error ({exc.error_type.value}): {exc}[/red]")
        raise typer.Exit(1)

    console.print(summary_table(result))
    console.print(studies_table(result))
    for excluded in result.excluded_variants:
        console.print(f"[yellow]⚠ Excluded variant {excluded.variant_id}: {excluded.reason}[/yellow]")
    if result.influential.empty:
        console.print(f"No influential studies found at alpha = {config.alpha}")
    if result.underperforming.empty:
        console.print(f"No underperforming studies found at alpha = {config.alpha}")

    if latex:
        for name, tex in significant_latex(result).items():
            if tex is None:
                console.print(f"LaTeX table not generated as there were no {name} studies")
            else:
                console.print(tex, markup=False, highlight=False)

    if save or output_dir is not None or plots:
        if output_dir is None:
            output_dir = create_output_dir("mstat")
        paths = write_results(result, output_dir)
        if plots:
            from ..report.plots import plot_histogram, plot_m_vs_effect_size
            tag = f"{result.n_studies}studies_{result.n_variants}snps"
            paths["histogram"] = plot_histogram(result, output_dir / f"histogram_mstatistics_{tag}.png")
            paths["scatter"] = plot_m_vs_effect_size(
                result, output_dir / f"mstatistics_vs_average_variant_effectsize_{tag}.png"
            )
        console.print(f"[green]✓ Results saved to {output_dir}[/green]")


@app.command()
def threshold(
    n_variants: int = typer.Option(..., "--variants", "-v", help="Number of variants"),
    n_studies: int = typer.Option(..., "--studies", "-s", help="Number of studies"),
    alpha: float = typer.Option(settings.alpha, "--alpha", help="Family-wise significance level"),
) -> None:
    """Show the null mean, SD and critical M threshold."""
    try:
        null = null_model(n_variants=n_variants, n_studies=n_studies, alpha=alpha)
    except MStatError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)
    console.print(f"Expected mean: {null.expected_mean:g}")
    console.print(f"Expected SD: {null.expected_sd:.6g}")
    console.print(f"Critical threshold: {null.critical_threshold:.6g}")


if __name__ == "__main__":
    app()
