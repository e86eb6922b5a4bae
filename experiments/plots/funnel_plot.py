"""Plotly renderer for funnel-limit results."""

from __future__ import annotations

from typing import List, Optional

import pandas as pd
import plotly.graph_objects as go

from src.funnel import FunnelResult, PlotConfig
from src.funnel.records import LimitCurve
from .outputs import FunnelRunOutputs

FAMILY_TITLES = {"poisson": "Poisson", "overdispersed": "Overdispersed"}


def _plotly_colour(colour: str) -> str:
    # Plotly rejects 8-digit hex colours, so drop the alpha channel.
    if colour.startswith("#") and len(colour) == 9:
        return colour[:7]
    return colour


def _limit_traces(curve: LimitCurve, colours: dict[str, str]) -> List[go.Scatter]:
    frame = curve.to_frame()
    family = FAMILY_TITLES[curve.family]
    traces = []
    for column, level, side in (
        ("lower_95", "95%", "Lower"),
        ("upper_95", "95%", "Upper"),
        ("lower_99_8", "99.8%", "Lower"),
        ("upper_99_8", "99.8%", "Upper"),
    ):
        name = f"{level} {side} {family}"
        traces.append(
            go.Scatter(
                x=frame["denominator"],
                y=frame[column],
                mode="lines",
                name=name,
                line=dict(color=_plotly_colour(colours[name]), dash="dash" if level == "95%" else "solid"),
            )
        )
    return traces


def build_funnel_figure(result: FunnelResult, plot_config: Optional[PlotConfig] = None) -> go.Figure:
    """Assemble the funnel figure from a pipeline result."""
    cfg = plot_config or PlotConfig()
    colours = cfg.colour_map()
    x_label, y_label = cfg.resolve_labels(result.config.data_type)
    df: pd.DataFrame = result.to_frame()

    fig = go.Figure()
    families = []
    if result.poisson_limits:
        families.append("poisson")
    if result.od_adjust:
        families.append("overdispersed")
    for family in families:
        for trace in _limit_traces(result.limits[family], colours):
            fig.add_trace(trace)

    markers = (
        (False, dict(color="black", size=7)),
        (True, dict(color="red", size=9, symbol="diamond")),
    )
    for highlighted, marker in markers:
        subset = df[df["highlight"] == highlighted]
        if subset.empty:
            continue
        fig.add_trace(
            go.Scatter(
                x=subset["denominator"],
                y=subset["rate"],
                mode="markers+text",
                marker=marker,
                text=[str(group) if labelled else "" for group, labelled in zip(subset["group"], subset["label"])],
                textposition="top center",
                name="Highlighted" if highlighted else "Groups",
                hovertext=[str(group) for group in subset["group"]],
                hovertemplate="%{hovertext}<br>ratio=%{y:.3f}<br>denominator=%{x:.2f}<extra></extra>",
            )
        )

    axis = result.axis_range
    fig.add_hline(y=result.target * result.config.multiplier, line=dict(color="grey", width=1))
    fig.update_layout(
        title=cfg.title,
        xaxis=dict(title=x_label, range=[0, axis.max_x * 1.05]),
        yaxis=dict(title=y_label, range=[axis.min_y, axis.max_y]),
        template="simple_white",
    )
    return fig


def plot_funnel(
    result: FunnelResult,
    plot_config: Optional[PlotConfig] = None,
    save_to: Optional[FunnelRunOutputs] = None,
) -> go.Figure:
    """Render the funnel plot and either save it or show it."""
    fig = build_funnel_figure(result, plot_config)

    if save_to:
        save_to.directory.mkdir(parents=True, exist_ok=True)
        if save_to.save_static:
            fig.write_image(str(save_to.png_path), engine="kaleido")
        if save_to.save_html:
            fig.write_html(
                str(save_to.html_path),
                include_plotlyjs="cdn",
                full_html=True,
            )
    else:
        fig.show()
    return fig


__all__ = ["build_funnel_figure", "plot_funnel"]
