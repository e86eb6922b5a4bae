"""Plotting utilities for funnel-limit results."""

from .funnel_plot import build_funnel_figure, plot_funnel
from .outputs import FunnelOutputConfig, FunnelRunOutputs

__all__ = [
    "build_funnel_figure",
    "plot_funnel",
    "FunnelOutputConfig",
    "FunnelRunOutputs",
]
