"""Configuration objects for funnel-limit computation and rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Hashable, Literal, Optional, Tuple, get_args

import numpy as np

from .errors import FunnelInputError

DataType = Literal["SR", "PR", "RC"]
SRMethod = Literal["CQC", "SHMI"]
LabelMode = Literal[
    "outlier",
    "outlier_lower",
    "outlier_upper",
    "highlight",
    "both",
    "both_lower",
    "both_upper",
]
LimitLevel = Literal[95, 99]

# Colour order: 95% Poisson lower/upper, 99.8% Poisson lower/upper,
# 95% OD lower/upper, 99.8% OD lower/upper.
DEFAULT_LIMIT_COLOURS: Tuple[str, ...] = (
    "#FF7F0EFF",
    "#FF7F0EFF",
    "#1F77B4FF",
    "#1F77B4FF",
    "#9467BDFF",
    "#9467BDFF",
    "#2CA02CFF",
    "#2CA02CFF",
)
LIMIT_COLOUR_KEYS: Tuple[str, ...] = (
    "95% Lower Poisson",
    "95% Upper Poisson",
    "99.8% Lower Poisson",
    "99.8% Upper Poisson",
    "95% Lower Overdispersed",
    "95% Upper Overdispersed",
    "99.8% Lower Overdispersed",
    "99.8% Upper Overdispersed",
)


@dataclass(frozen=True)
class FunnelConfig:
    """Parameters for `funnel_limits`."""

    data_type: DataType = "SR"
    sr_method: SRMethod = "SHMI"
    limit: LimitLevel = 99
    label: Optional[LabelMode] = "outlier"
    highlight: Tuple[Hashable, ...] = ()
    poisson_limits: bool = False
    od_adjust: bool = True
    trim_by: float = 0.1
    multiplier: float = 1.0
    x_range: Optional[Tuple[float, float]] = None
    y_range: Optional[Tuple[float, float]] = None
    n_points: int = 1000

    def validate(self) -> None:
        if self.data_type not in get_args(DataType):
            raise FunnelInputError(f"data_type must be one of {get_args(DataType)}, got {self.data_type!r}.")
        if self.sr_method not in get_args(SRMethod):
            raise FunnelInputError(f"sr_method must be one of {get_args(SRMethod)}, got {self.sr_method!r}.")
        if self.limit not in get_args(LimitLevel):
            raise FunnelInputError(f"limit must be 95 or 99, got {self.limit!r}.")
        if self.label is not None and self.label not in get_args(LabelMode):
            raise FunnelInputError("No permitted label mode.")
        if not 0.0 < self.trim_by < 0.5:
            raise FunnelInputError("trim_by must fall within (0, 0.5).")
        if not np.isfinite(self.multiplier) or self.multiplier <= 0:
            raise FunnelInputError("multiplier must be a positive finite number.")
        if self.n_points < 2:
            raise FunnelInputError("n_points must be at least 2.")
        for name, bounds in (("x_range", self.x_range), ("y_range", self.y_range)):
            if bounds is not None and (len(bounds) != 2 or bounds[0] > bounds[1]):
                raise FunnelInputError(f"{name} must be a (min, max) pair with min <= max.")


@dataclass(frozen=True)
class AxisRange:
    """Plot window suggested for the renderer."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float


@dataclass(frozen=True)
class PlotConfig:
    """Presentation settings handed to the renderer; never read by the core."""

    title: str = "Untitled Funnel Plot"
    x_label: Optional[str] = None
    y_label: Optional[str] = None
    limit_colours: Tuple[str, ...] = field(default_factory=lambda: DEFAULT_LIMIT_COLOURS)

    def validate(self) -> None:
        if len(self.limit_colours) < 4:
            raise FunnelInputError(
                "Please supply at least 4 colours for funnel limits, in order: 95% Poisson, "
                "99.8% Poisson, 95% OD-adjusted, 99.8% OD-adjusted."
            )

    def resolve_labels(self, data_type: DataType) -> Tuple[str, str]:
        """Axis titles, falling back to defaults for the data type."""
        x_label = self.x_label or ("Expected" if data_type == "SR" else "n")
        if self.y_label:
            y_label = self.y_label
        elif data_type == "SR":
            y_label = "Standardised Ratio"
        elif data_type == "PR":
            y_label = "Proportion"
        else:
            y_label = "Ratio"
        return x_label, y_label

    def colour_map(self) -> dict[str, str]:
        """Map limit series names to colours, cycling when fewer than 8 are supplied."""
        self.validate()
        colours = [self.limit_colours[idx % len(self.limit_colours)] for idx in range(len(LIMIT_COLOUR_KEYS))]
        return dict(zip(LIMIT_COLOUR_KEYS, colours))


__all__ = [
    "AxisRange",
    "DEFAULT_LIMIT_COLOURS",
    "DataType",
    "FunnelConfig",
    "LIMIT_COLOUR_KEYS",
    "LabelMode",
    "LimitLevel",
    "PlotConfig",
    "SRMethod",
]
