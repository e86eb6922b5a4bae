"""Tests for the Plotly renderer and the Typer CLI."""

from __future__ import annotations

from pathlib import Path
import sys

import pandas as pd
import plotly.graph_objects as go
from typer.testing import CliRunner

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from experiments.plots import FunnelOutputConfig, build_funnel_figure
from main import app
from src.funnel import FunnelConfig, PlotConfig, funnel_limits


# ---------------------------------------------------------------------------
# Renderer


def test_build_funnel_figure_draws_active_limits_and_points() -> None:
    result = funnel_limits([10, 10, 100], [10, 10, 10], ["A", "B", "C"], FunnelConfig(n_points=20))
    fig = build_funnel_figure(result, PlotConfig(title="Example"))

    assert isinstance(fig, go.Figure)
    names = [trace.name for trace in fig.data]
    assert "95% Lower Poisson" in names
    assert "99.8% Upper Poisson" in names
    assert not any("Overdispersed" in name for name in names)
    points = next(trace for trace in fig.data if trace.name == "Groups")
    assert list(points.text) == ["", "", "C"]
    assert fig.layout.title.text == "Example"


def test_build_funnel_figure_separates_highlighted_groups() -> None:
    config = FunnelConfig(highlight=("B",), label="both", n_points=20)
    result = funnel_limits([10, 10, 100], [10, 10, 10], ["A", "B", "C"], config)
    fig = build_funnel_figure(result)

    highlighted = next(trace for trace in fig.data if trace.name == "Highlighted")
    assert list(highlighted.text) == ["B"]


def test_output_config_paths(tmp_path: Path) -> None:
    outputs = FunnelOutputConfig(base_dir=tmp_path, run_tag="run1").for_run()
    assert outputs.png_path == tmp_path / "run1" / "funnel.png"
    assert outputs.limits_csv == tmp_path / "run1" / "funnel_limits.csv"
    assert outputs.aggregated_csv == tmp_path / "run1" / "funnel_aggregated.csv"


def test_output_config_defaults_to_timestamped_run(tmp_path: Path) -> None:
    outputs = FunnelOutputConfig(base_dir=tmp_path).for_run("trusts")
    assert outputs.directory.parent == tmp_path
    assert outputs.directory.name
    assert outputs.html_path.name == "trusts.html"


def test_write_tables_creates_both_csv_files(tmp_path: Path) -> None:
    result = funnel_limits([10, 10, 100], [10, 10, 10], ["A", "B", "C"], FunnelConfig(n_points=5))
    outputs = FunnelOutputConfig(base_dir=tmp_path, run_tag="tables").for_run()
    outputs.write_tables(result)

    assert list(pd.read_csv(outputs.aggregated_csv)["group"]) == ["A", "B", "C"]
    assert len(pd.read_csv(outputs.limits_csv)) == 5


# ---------------------------------------------------------------------------
# CLI


def _write_units(tmp_path: Path) -> Path:
    csv_path = tmp_path / "units.csv"
    pd.DataFrame(
        {
            "trust": ["A", "A", "B", "C", "D"],
            "observed": [6, 4, 10, 100, 12],
            "expected": [5.0, 5.0, 10.0, 10.0, 11.0],
        }
    ).to_csv(csv_path, index=False)
    return csv_path


def test_cli_writes_tables(tmp_path: Path) -> None:
    runner = CliRunner()
    out_dir = tmp_path / "out"
    result = runner.invoke(
        app,
        [
            "funnel",
            str(_write_units(tmp_path)),
            "--numerator",
            "observed",
            "--denominator",
            "expected",
            "--group",
            "trust",
            "--output-dir",
            str(out_dir),
            "--run-tag",
            "test",
            "--no-plot",
        ],
    )

    assert result.exit_code == 0, result.output
    aggregated = pd.read_csv(out_dir / "test" / "funnel_aggregated.csv")
    assert list(aggregated["group"]) == ["A", "B", "C", "D"]
    assert aggregated.set_index("group").loc["C", "outlier"]
    assert (out_dir / "test" / "funnel_limits.csv").exists()
    assert "[funnel]" in result.output


def test_cli_rejects_invalid_configuration(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "funnel",
            str(_write_units(tmp_path)),
            "--numerator",
            "observed",
            "--denominator",
            "expected",
            "--group",
            "trust",
            "--data-type",
            "XX",
            "--no-plot",
        ],
    )
    assert result.exit_code != 0


def test_cli_rejects_same_numerator_and_denominator(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "funnel",
            str(_write_units(tmp_path)),
            "--numerator",
            "observed",
            "--denominator",
            "observed",
            "--group",
            "trust",
            "--no-plot",
        ],
    )
    assert result.exit_code != 0
