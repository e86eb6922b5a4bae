"""Winsorisation and truncation of transformed scores.

Quantiles use the Hyndman & Fan type 7 estimator (numpy ``method="linear"``),
which is also R's default, so trimmed scores match published SHMI/CQC output.
Non-finite scores never enter the quantiles and are always left out of the
dispersion estimate.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

from .errors import FunnelComputationError, FunnelInputError
from .records import TransformedRecord, TrimmedRecord, promote
from .transforms import TrimPolicy


def trim_quantiles(scores: Sequence[float], trim_by: float) -> Tuple[float, float]:
    """Return the ``trim_by`` and ``1 - trim_by`` quantiles of ``scores``."""
    if not 0.0 < trim_by < 0.5:
        raise FunnelInputError("trim_by must fall within (0, 0.5).")
    values = np.asarray(scores, dtype=float)
    if values.size < 2:
        raise FunnelComputationError(f"At least two groups are needed to trim scores, got {values.size}.")
    lower, upper = np.quantile(values, [trim_by, 1.0 - trim_by], method="linear")
    return float(lower), float(upper)


def _finite_bounds(records: Sequence[TransformedRecord], trim_by: float) -> Tuple[float, float]:
    return trim_quantiles([record.z for record in records if math.isfinite(record.z)], trim_by)


def _excluded(record: TransformedRecord) -> TrimmedRecord:
    return promote(record, TrimmedRecord, trimmed_z=None, trimmed=True)


def winsorise(records: Sequence[TransformedRecord], trim_by: float) -> Tuple[TrimmedRecord, ...]:
    """Cap scores at the quantile bounds; every finite score is kept."""
    lower, upper = _finite_bounds(records, trim_by)
    trimmed = []
    for record in records:
        if not math.isfinite(record.z):
            trimmed.append(_excluded(record))
            continue
        capped = min(max(record.z, lower), upper)
        trimmed.append(promote(record, TrimmedRecord, trimmed_z=capped, trimmed=capped != record.z))
    return tuple(trimmed)


def truncate(records: Sequence[TransformedRecord], trim_by: float) -> Tuple[TrimmedRecord, ...]:
    """Drop scores outside the quantile bounds from estimation, keeping the records."""
    lower, upper = _finite_bounds(records, trim_by)
    trimmed = []
    for record in records:
        if not math.isfinite(record.z):
            trimmed.append(_excluded(record))
            continue
        outside = record.z < lower or record.z > upper
        trimmed.append(
            promote(record, TrimmedRecord, trimmed_z=None if outside else record.z, trimmed=outside)
        )
    return tuple(trimmed)


def untrimmed(records: Sequence[TransformedRecord]) -> Tuple[TrimmedRecord, ...]:
    """Carry scores through unchanged when no dispersion estimate is wanted."""
    return tuple(
        promote(record, TrimmedRecord, trimmed_z=record.z if math.isfinite(record.z) else None)
        for record in records
    )


def trim_scores(
    records: Sequence[TransformedRecord], policy: TrimPolicy, trim_by: float
) -> Tuple[TrimmedRecord, ...]:
    if policy == "winsorise":
        return winsorise(records, trim_by)
    if policy == "truncate":
        return truncate(records, trim_by)
    raise FunnelInputError(f"Unknown trim policy '{policy}'")


__all__ = ["trim_quantiles", "trim_scores", "truncate", "untrimmed", "winsorise"]
