"""Variance-stabilising transforms keyed by data type and SR method.

Each strategy maps a group's ratio onto a scale where its null-model standard
error ``s`` depends only on the group size, and reports the standardised score
``z = (Y - Y_target) / s``.  The same strategy back-transforms
``Y_target ± z_crit * sqrt(s² + τ²)`` into overdispersion-adjusted limits.

Formulas follow Spiegelhalter (2005, Table I) for CQC, proportions and ratios
of counts, and the NHS Digital SHMI methodology for log-transformed SHMI.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Literal, Optional, Protocol, Sequence, Tuple

import numpy as np

from .config import DataType, SRMethod
from .errors import FunnelComputationError, FunnelInputError
from .records import GroupRecord, TransformedRecord

TrimPolicy = Literal["winsorise", "truncate"]
CountModel = Literal["poisson", "binomial"]
TransformKey = Tuple[DataType, Optional[SRMethod]]


class TransformStrategy(Protocol):
    """Closed set of transform variants used by the pipeline."""

    name: str
    trim_policy: TrimPolicy
    count_model: CountModel

    def prepare(self, records: Sequence[GroupRecord]) -> Tuple[GroupRecord, ...]:
        """Adjust aggregated records before the target is computed."""
        return tuple(records)

    def transform(
        self, numerator: np.ndarray, denominator: np.ndarray, target: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(z, s)`` arrays."""
        ...

    def od_bounds(
        self, denominator: np.ndarray, target: float, z_crit: float, tau2: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Lower/upper overdispersed limits on the ratio scale."""
        ...


@dataclass(frozen=True)
class SquareRootTransform:
    """CQC (Spiegelhalter) transform for standardised ratios: Y = sqrt(O/E)."""

    name: str = "SR/CQC"
    trim_policy: TrimPolicy = "winsorise"
    count_model: CountModel = "poisson"

    def prepare(self, records: Sequence[GroupRecord]) -> Tuple[GroupRecord, ...]:
        return tuple(records)

    def transform(
        self, numerator: np.ndarray, denominator: np.ndarray, target: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        s = 1.0 / (2.0 * np.sqrt(denominator))
        z = (np.sqrt(numerator / denominator) - np.sqrt(target)) / s
        return z, s

    def od_bounds(
        self, denominator: np.ndarray, target: float, z_crit: float, tau2: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        s = 1.0 / (2.0 * np.sqrt(denominator))
        spread = z_crit * np.sqrt(s**2 + tau2)
        centre = np.sqrt(target)
        # A negative lower arm would square back to a spurious positive limit.
        lower = np.maximum(centre - spread, 0.0) ** 2
        upper = (centre + spread) ** 2
        return lower, upper


@dataclass(frozen=True)
class LogRatioTransform:
    """SHMI transform for standardised ratios: Y = log(O/E), s = 1/sqrt(E).

    Denominators are rounded to ``round_digits`` decimals before transforming,
    as in the published SHMI methodology.
    """

    name: str = "SR/SHMI"
    trim_policy: TrimPolicy = "truncate"
    count_model: CountModel = "poisson"
    round_digits: int = 2

    def prepare(self, records: Sequence[GroupRecord]) -> Tuple[GroupRecord, ...]:
        prepared = []
        for record in records:
            rounded = round(record.denominator, self.round_digits)
            if rounded <= 0:
                raise FunnelComputationError(
                    f"Group {record.group!r} has a denominator that rounds to zero ({record.denominator})."
                )
            prepared.append(replace(record, denominator=rounded))
        return tuple(prepared)

    def transform(
        self, numerator: np.ndarray, denominator: np.ndarray, target: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        s = 1.0 / np.sqrt(denominator)
        with np.errstate(divide="ignore"):
            z = (np.log(numerator / denominator) - np.log(target)) / s
        return z, s

    def od_bounds(
        self, denominator: np.ndarray, target: float, z_crit: float, tau2: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        s = 1.0 / np.sqrt(denominator)
        spread = z_crit * np.sqrt(s**2 + tau2)
        centre = np.log(target)
        return np.exp(centre - spread), np.exp(centre + spread)


@dataclass(frozen=True)
class ArcsineTransform:
    """Proportions: Y = asin(sqrt(p)), s = 1 / (2 sqrt(n))."""

    name: str = "PR"
    trim_policy: TrimPolicy = "winsorise"
    count_model: CountModel = "binomial"

    def prepare(self, records: Sequence[GroupRecord]) -> Tuple[GroupRecord, ...]:
        over = [record.group for record in records if record.numerator > record.denominator]
        if over:
            joined = ", ".join(repr(group) for group in over)
            raise FunnelComputationError(f"Proportions above 1 for group(s): {joined}")
        return tuple(records)

    def transform(
        self, numerator: np.ndarray, denominator: np.ndarray, target: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        s = 1.0 / (2.0 * np.sqrt(denominator))
        with np.errstate(invalid="ignore"):
            z = (np.arcsin(np.sqrt(numerator / denominator)) - np.arcsin(np.sqrt(target))) / s
        return z, s

    def od_bounds(
        self, denominator: np.ndarray, target: float, z_crit: float, tau2: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        s = 1.0 / (2.0 * np.sqrt(denominator))
        spread = z_crit * np.sqrt(s**2 + tau2)
        centre = np.arcsin(np.sqrt(target))
        lower = np.sin(np.clip(centre - spread, 0.0, np.pi / 2)) ** 2
        upper = np.sin(np.clip(centre + spread, 0.0, np.pi / 2)) ** 2
        return lower, upper


@dataclass(frozen=True)
class CountRatioTransform:
    """Ratio of two counts: Y = log(n1/n2), s = sqrt(1/n1 + 1/n2)."""

    name: str = "RC"
    trim_policy: TrimPolicy = "winsorise"
    count_model: CountModel = "poisson"

    def prepare(self, records: Sequence[GroupRecord]) -> Tuple[GroupRecord, ...]:
        return tuple(records)

    def transform(
        self, numerator: np.ndarray, denominator: np.ndarray, target: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        with np.errstate(divide="ignore", invalid="ignore"):
            s = np.sqrt(1.0 / numerator + 1.0 / denominator)
            z = (np.log(numerator / denominator) - np.log(target)) / s
        return z, s

    def od_bounds(
        self, denominator: np.ndarray, target: float, z_crit: float, tau2: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        # Expected numerator at this denominator is target * denominator.
        s = np.sqrt(1.0 / (target * denominator) + 1.0 / denominator)
        spread = z_crit * np.sqrt(s**2 + tau2)
        centre = np.log(target)
        return np.exp(centre - spread), np.exp(centre + spread)


TRANSFORMS: Dict[TransformKey, TransformStrategy] = {
    ("SR", "CQC"): SquareRootTransform(),
    ("SR", "SHMI"): LogRatioTransform(),
    ("PR", None): ArcsineTransform(),
    ("RC", None): CountRatioTransform(),
}


def resolve_transform(data_type: DataType, sr_method: SRMethod = "SHMI") -> TransformStrategy:
    """Look up the strategy; ``sr_method`` only matters for standardised ratios."""
    key: TransformKey = (data_type, sr_method if data_type == "SR" else None)
    try:
        return TRANSFORMS[key]
    except KeyError as exc:
        raise FunnelInputError(
            f"No transform registered for data_type={data_type!r}, sr_method={sr_method!r}"
        ) from exc


def compute_target(records: Sequence[GroupRecord], data_type: DataType) -> float:
    """Reference value: 1 for standardised ratios, else the pooled rate."""
    if data_type == "SR":
        return 1.0
    total_den = sum(record.denominator for record in records)
    return sum(record.numerator for record in records) / total_den


def transform_groups(
    records: Sequence[GroupRecord], strategy: TransformStrategy, target: float
) -> Tuple[TransformedRecord, ...]:
    """Attach ``z`` and ``s`` to every group record.

    A zero count on a log scale yields a non-finite score; the record is kept
    and trimming leaves it out of the dispersion estimate.
    """
    numerator = np.asarray([record.numerator for record in records], dtype=float)
    denominator = np.asarray([record.denominator for record in records], dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        z, s = strategy.transform(numerator, denominator, target)

    return tuple(
        TransformedRecord(
            group=record.group,
            numerator=record.numerator,
            denominator=record.denominator,
            z=float(z_i),
            s=float(s_i),
        )
        for record, z_i, s_i in zip(records, z, s)
    )


__all__ = [
    "ArcsineTransform",
    "CountRatioTransform",
    "LogRatioTransform",
    "SquareRootTransform",
    "TRANSFORMS",
    "TransformStrategy",
    "compute_target",
    "resolve_transform",
    "transform_groups",
]
