"""Outlier classification, highlighting and label selection."""

from __future__ import annotations

from dataclasses import replace
from typing import Collection, Hashable, Optional, Sequence, Tuple

from .config import LabelMode
from .limits import LimitsCalculator
from .records import AnnotatedGroup, Coverage, LimitFamily, OutlierSide, TrimmedRecord, promote


def classify_outliers(
    records: Sequence[TrimmedRecord],
    calculator: LimitsCalculator,
    family: LimitFamily,
    coverage: Coverage,
    highlight: Collection[Hashable] = (),
) -> Tuple[AnnotatedGroup, ...]:
    """Flag each group whose rate falls strictly outside its own limits."""
    highlighted = set(highlight)
    annotated = []
    for record in records:
        lower, upper = calculator.evaluate(record.denominator, family).at(coverage)
        rate = record.ratio * calculator.multiplier
        side: Optional[OutlierSide] = None
        if rate < lower:
            side = "lower"
        elif rate > upper:
            side = "upper"
        annotated.append(
            promote(
                record,
                AnnotatedGroup,
                rate=rate,
                lower=lower,
                upper=upper,
                outlier=side is not None,
                outlier_side=side,
                highlight=record.group in highlighted,
            )
        )
    return tuple(annotated)


def _wants_label(record: AnnotatedGroup, label: Optional[LabelMode]) -> bool:
    if label is None:
        return False
    if label == "highlight":
        return record.highlight
    with_highlight = label.startswith("both")
    if label.endswith("_lower"):
        flagged = record.outlier_side == "lower"
    elif label.endswith("_upper"):
        flagged = record.outlier_side == "upper"
    else:
        flagged = record.outlier
    return flagged or (with_highlight and record.highlight)


def select_labels(records: Sequence[AnnotatedGroup], label: Optional[LabelMode]) -> Tuple[AnnotatedGroup, ...]:
    """Mark which groups a renderer should label under the given label mode."""
    return tuple(replace(record, label=_wants_label(record, label)) for record in records)


__all__ = ["classify_outliers", "select_labels"]
