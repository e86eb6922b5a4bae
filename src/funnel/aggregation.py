"""Input coercion and per-group aggregation."""

from __future__ import annotations

from typing import Dict, Hashable, Iterable, List, Sequence, Tuple

import numpy as np

from .errors import FunnelComputationError, FunnelInputError
from .records import GroupRecord, RawObservation


def build_observations(
    numerator: Sequence[float],
    denominator: Sequence[float],
    group: Sequence[Hashable],
) -> Tuple[RawObservation, ...]:
    """Validate three parallel sequences and zip them into observations."""
    if numerator is None:
        raise FunnelInputError("Need to supply numerator.")
    if denominator is None:
        raise FunnelInputError("Need to specify model denominator.")
    if group is None:
        raise FunnelInputError("Need to supply group.")
    if numerator is denominator:
        raise FunnelInputError("Numerator and denominator are the same. Please check your inputs.")

    num = np.asarray(numerator, dtype=float).ravel()
    den = np.asarray(denominator, dtype=float).ravel()
    groups = list(group)

    if num.size == 0:
        raise FunnelInputError("numerator cannot be empty.")
    if not num.size == den.size == len(groups):
        raise FunnelInputError(
            f"numerator ({num.size}), denominator ({den.size}) and group ({len(groups)}) must have equal length."
        )
    if not np.all(np.isfinite(num)) or not np.all(np.isfinite(den)):
        raise FunnelInputError("numerator and denominator must contain only finite values.")
    if np.any(num < 0):
        raise FunnelInputError("numerator must be non-negative.")
    if np.any(den < 0):
        raise FunnelInputError("denominator must be non-negative.")

    return tuple(
        RawObservation(numerator=float(n), denominator=float(d), group=g) for n, d, g in zip(num, den, groups)
    )


def aggregate_groups(observations: Iterable[RawObservation]) -> Tuple[GroupRecord, ...]:
    """Sum numerator and denominator per group, keeping first-seen order."""
    sums: Dict[Hashable, List[float]] = {}
    for obs in observations:
        totals = sums.setdefault(obs.group, [0.0, 0.0])
        totals[0] += obs.numerator
        totals[1] += obs.denominator

    if not sums:
        raise FunnelInputError("No observations supplied for aggregation.")

    records: List[GroupRecord] = []
    for key, (num_total, den_total) in sums.items():
        if den_total <= 0:
            raise FunnelComputationError(f"Group {key!r} has a zero total denominator.")
        records.append(GroupRecord(group=key, numerator=num_total, denominator=den_total))
    return tuple(records)


__all__ = ["aggregate_groups", "build_observations"]
