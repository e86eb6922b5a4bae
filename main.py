from pathlib import Path
from typing import List, Optional, cast

import pandas as pd
import typer

from experiments.plots import FunnelOutputConfig, plot_funnel
from src.funnel import FunnelConfig, FunnelInputError, PlotConfig, funnel_limits
from src.funnel.config import DataType, LimitLevel, SRMethod

app = typer.Typer()


@app.callback()
def cli() -> None:
    """Funnel-plot control limits for comparing institutional performance."""


@app.command()
def funnel(
    csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV file with one row per unit."),
    numerator: str = typer.Option(..., "--numerator", help="Column holding observed events/counts."),
    denominator: str = typer.Option(..., "--denominator", help="Column holding expected counts or population."),
    group: str = typer.Option(..., "--group", help="Column identifying the group to aggregate by."),
    data_type: str = typer.Option("SR", "--data-type", help="SR, PR or RC."),
    sr_method: str = typer.Option("SHMI", "--sr-method", help="SHMI or CQC (only used for SR)."),
    limit: int = typer.Option(99, "--limit", help="95 or 99 (99.8% limits)."),
    od_adjust: bool = typer.Option(True, "--od-adjust/--no-od-adjust", help="Adjust limits for overdispersion."),
    poisson_limits: bool = typer.Option(False, "--poisson-limits", help="Also draw Poisson limits."),
    trim_by: float = typer.Option(0.1, "--trim-by", help="Winsorisation/truncation proportion per tail."),
    multiplier: float = typer.Option(1.0, "--multiplier", help="Scale ratios and limits by this factor."),
    highlight: List[str] = typer.Option([], "--highlight", help="Group(s) to highlight."),
    title: str = typer.Option("Untitled Funnel Plot", "--title", help="Plot title."),
    output_dir: Path = typer.Option(
        Path("outputs/funnel"),
        "--output-dir",
        file_okay=False,
        dir_okay=True,
        writable=True,
        help="Directory where tables and plots are written.",
    ),
    run_tag: Optional[str] = typer.Option(None, "--run-tag", help="Folder suffix for this run (defaults to timestamp)."),
    plot: bool = typer.Option(True, "--plot/--no-plot", help="Render the funnel plot."),
    save_static: bool = typer.Option(True, help="Write a static PNG when plotting."),
    save_html: bool = typer.Option(True, help="Write an interactive HTML plot when plotting."),
) -> None:
    """
    Compute funnel limits for a CSV of units and write the aggregated data and limits lookup.
    """
    if numerator == denominator:
        raise typer.BadParameter("Numerator and denominator are the same column. Please check your inputs.")
    frame = pd.read_csv(csv_path)
    missing = [column for column in (numerator, denominator, group) if column not in frame.columns]
    if missing:
        raise typer.BadParameter(f"Column(s) not found in {csv_path}: {', '.join(missing)}")

    config = FunnelConfig(
        data_type=cast(DataType, data_type),
        sr_method=cast(SRMethod, sr_method),
        limit=cast(LimitLevel, limit),
        highlight=tuple(highlight),
        poisson_limits=poisson_limits,
        od_adjust=od_adjust,
        trim_by=trim_by,
        multiplier=multiplier,
    )
    try:
        result = funnel_limits(frame[numerator], frame[denominator], frame[group].astype(str), config)
    except FunnelInputError as exc:
        raise typer.BadParameter(str(exc)) from exc

    destinations = FunnelOutputConfig(
        base_dir=output_dir, run_tag=run_tag, save_static=save_static, save_html=save_html
    ).for_run()
    destinations.write_tables(result)
    print(
        f"[funnel] {len(result.aggregated)} groups, {len(result.outliers)} outlier(s); "
        f"phi={result.phi:.4f} tau2={result.tau2:.6f}"
    )
    print(f"[funnel] Saved tables under {destinations.directory}")

    if plot:
        plot_funnel(result, PlotConfig(title=title), save_to=destinations)


if __name__ == "__main__":
    app()
