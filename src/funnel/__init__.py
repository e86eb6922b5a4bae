"""Spiegelhalter funnel-plot control limits with overdispersion adjustment."""

from .config import AxisRange, FunnelConfig, PlotConfig
from .errors import FunnelComputationError, FunnelInputError
from .limits import LimitsCalculator
from .pipeline import funnel_limits
from .records import AnnotatedGroup, FunnelResult, GroupRecord, LimitBand, LimitCurve, RawObservation

__all__ = [
    "AnnotatedGroup",
    "AxisRange",
    "FunnelComputationError",
    "FunnelConfig",
    "FunnelInputError",
    "FunnelResult",
    "GroupRecord",
    "LimitBand",
    "LimitCurve",
    "LimitsCalculator",
    "PlotConfig",
    "RawObservation",
    "funnel_limits",
]
