"""Shared data records for the funnel-limit pipeline.

Every stage consumes one record type and returns a new tuple of a distinct
record type, so properties such as "the trimmed score may be missing" are
visible in the type rather than carried as sentinel values.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, Dict, Hashable, Literal, Optional, Sequence, Tuple, Type, TypeVar

import pandas as pd

if TYPE_CHECKING:
    from .config import AxisRange, FunnelConfig

GroupKey = Hashable
LimitFamily = Literal["poisson", "overdispersed"]
Coverage = Literal[95, 99]
OutlierSide = Literal["lower", "upper"]


@dataclass(frozen=True)
class RawObservation:
    """Single unit-level numerator/denominator pair."""

    numerator: float
    denominator: float
    group: GroupKey


@dataclass(frozen=True)
class GroupRecord:
    """Numerator and denominator summed over one group."""

    group: GroupKey
    numerator: float
    denominator: float

    @property
    def ratio(self) -> float:
        return self.numerator / self.denominator


@dataclass(frozen=True)
class TransformedRecord(GroupRecord):
    """Group record with its variance-stabilised score.

    ``z`` is standardised against the target so that its null variance is one;
    ``s`` is the null standard error of the transformed value.
    """

    z: float = 0.0
    s: float = 0.0


@dataclass(frozen=True)
class TrimmedRecord(TransformedRecord):
    """Transformed record after winsorisation or truncation.

    ``trimmed_z`` is ``None`` when truncation excluded the record from the
    dispersion estimate; the record itself is still kept for display.
    """

    trimmed_z: Optional[float] = None
    trimmed: bool = False

    @property
    def retained(self) -> bool:
        return self.trimmed_z is not None


@dataclass(frozen=True)
class LimitBand:
    """Lower/upper control limits at both coverage levels for one denominator."""

    lower_95: float
    upper_95: float
    lower_99_8: float
    upper_99_8: float

    def at(self, coverage: Coverage) -> Tuple[float, float]:
        if coverage == 95:
            return self.lower_95, self.upper_95
        return self.lower_99_8, self.upper_99_8


@dataclass(frozen=True)
class LimitPoint:
    denominator: float
    band: LimitBand


@dataclass(frozen=True)
class LimitCurve:
    """Limits for one family sampled over the denominator range."""

    family: LimitFamily
    points: Tuple[LimitPoint, ...]

    def __len__(self) -> int:
        return len(self.points)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "denominator": [point.denominator for point in self.points],
                "lower_95": [point.band.lower_95 for point in self.points],
                "upper_95": [point.band.upper_95 for point in self.points],
                "lower_99_8": [point.band.lower_99_8 for point in self.points],
                "upper_99_8": [point.band.upper_99_8 for point in self.points],
            }
        )


@dataclass(frozen=True)
class AnnotatedGroup(TrimmedRecord):
    """Trimmed record annotated with its limits and flags at its own denominator."""

    rate: float = 0.0
    lower: float = 0.0
    upper: float = 0.0
    outlier: bool = False
    outlier_side: Optional[OutlierSide] = None
    highlight: bool = False
    label: bool = False


@dataclass(frozen=True)
class FunnelResult:
    """Everything a renderer or report needs from one pipeline run."""

    aggregated: Tuple[AnnotatedGroup, ...]
    limits: Dict[LimitFamily, LimitCurve]
    phi: float
    tau2: float
    od_adjust: bool
    poisson_limits: bool
    target: float
    axis_range: "AxisRange"
    config: "FunnelConfig"
    notices: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def outliers(self) -> Tuple[AnnotatedGroup, ...]:
        return tuple(record for record in self.aggregated if record.outlier)

    @property
    def active_family(self) -> LimitFamily:
        return "overdispersed" if self.od_adjust else "poisson"

    def to_frame(self, records: Optional[Sequence[AnnotatedGroup]] = None) -> pd.DataFrame:
        """Aggregated dataset as a DataFrame, one row per group."""
        rows = self.aggregated if records is None else records
        return pd.DataFrame(
            {
                "group": [record.group for record in rows],
                "numerator": [record.numerator for record in rows],
                "denominator": [record.denominator for record in rows],
                "ratio": [record.ratio for record in rows],
                "rate": [record.rate for record in rows],
                "z": [record.z for record in rows],
                "s": [record.s for record in rows],
                "trimmed_z": [record.trimmed_z for record in rows],
                "trimmed": [record.trimmed for record in rows],
                "lower": [record.lower for record in rows],
                "upper": [record.upper for record in rows],
                "outlier": [record.outlier for record in rows],
                "outlier_side": [record.outlier_side for record in rows],
                "highlight": [record.highlight for record in rows],
                "label": [record.label for record in rows],
            }
        )

    def outliers_frame(self) -> pd.DataFrame:
        return self.to_frame(self.outliers)

    def limits_frame(self) -> pd.DataFrame:
        """Lookup table with one column block per limit family."""
        # Both families are sampled on the same denominator grid.
        curves = list(self.limits.values())
        frames = [curves[0].to_frame()[["denominator"]]]
        for family, curve in self.limits.items():
            frames.append(curve.to_frame().drop(columns="denominator").add_prefix(f"{family}_"))
        return pd.concat(frames, axis=1)


RecordT = TypeVar("RecordT", bound=GroupRecord)


def promote(record: GroupRecord, cls: Type[RecordT], **extra: Any) -> RecordT:
    """Copy ``record`` into the richer record type ``cls`` with extra fields set."""
    values = {f.name: getattr(record, f.name) for f in fields(record)}
    values.update(extra)
    return cls(**values)
