"""End-to-end funnel-limit computation."""

from __future__ import annotations

import math
from typing import Hashable, Optional, Sequence, Tuple, Union

from .aggregation import aggregate_groups, build_observations
from .config import AxisRange, FunnelConfig
from .dispersion import estimate_dispersion
from .errors import FunnelInputError
from .limits import LimitsCalculator, build_limit_curves, resolve_limit_policy
from .outliers import classify_outliers, select_labels
from .records import FunnelResult, GroupRecord
from .transforms import compute_target, resolve_transform, transform_groups
from .trimming import trim_scores, untrimmed


def funnel_limits(
    numerator: Sequence[float],
    denominator: Sequence[float],
    group: Sequence[Hashable],
    config: Optional[FunnelConfig] = None,
) -> FunnelResult:
    """Aggregate by group, estimate overdispersion, build limits and flag outliers.

    Args:
        numerator: Observed events/counts per unit.
        denominator: Expected counts, population or trials per unit.
        group: Group identifier per unit; units sharing a group are summed.
        config: Optional configuration overriding defaults.

    Returns:
        FunnelResult with the annotated groups, both limit curves, φ, τ² and the
        resolved limit policy.
    """
    cfg = config or FunnelConfig()
    cfg.validate()

    observations = build_observations(numerator, denominator, group)
    highlight = _resolve_highlight(cfg.highlight, [obs.group for obs in observations])

    strategy = resolve_transform(cfg.data_type, cfg.sr_method)
    groups = strategy.prepare(aggregate_groups(observations))
    target = compute_target(groups, cfg.data_type)

    transformed = transform_groups(groups, strategy, target)
    if cfg.od_adjust:
        trimmed = trim_scores(transformed, strategy.trim_policy, cfg.trim_by)
        phi, tau2 = estimate_dispersion(trimmed)
    else:
        trimmed = untrimmed(transformed)
        phi, tau2 = 0.0, 0.0

    policy = resolve_limit_policy(cfg.od_adjust, cfg.poisson_limits, tau2)
    for notice in policy.notices:
        print(f"[funnel] {notice}")

    calculator = LimitsCalculator(strategy=strategy, target=target, multiplier=cfg.multiplier, tau2=tau2)
    axis_range = resolve_axis_range(groups, target, cfg)
    curves = build_limit_curves(calculator, axis_range.min_x, axis_range.max_x, cfg.n_points)

    family = "overdispersed" if policy.od_adjust else "poisson"
    annotated = classify_outliers(trimmed, calculator, family, cfg.limit, highlight)
    annotated = select_labels(annotated, cfg.label)

    return FunnelResult(
        aggregated=annotated,
        limits=curves,
        phi=phi,
        tau2=tau2,
        od_adjust=policy.od_adjust,
        poisson_limits=policy.poisson_limits,
        target=target,
        axis_range=axis_range,
        config=cfg,
        notices=policy.notices,
    )


def resolve_axis_range(groups: Sequence[GroupRecord], target: float, config: FunnelConfig) -> AxisRange:
    """Default plot window: denominators rounded up, ratios padded around the target."""
    if config.x_range is not None:
        min_x, max_x = config.x_range
    else:
        min_x = float(math.ceil(min(record.denominator for record in groups)))
        max_x = float(math.ceil(max(record.denominator for record in groups)))

    if config.y_range is not None:
        min_y, max_y = config.y_range
    else:
        m = config.multiplier
        ratios = [record.ratio for record in groups]
        max_y = max(1.3 * target * m, m * 1.1 * max(ratios))
        min_y = min(0.7 * target * m, m * 0.9 * min(ratios))

    return AxisRange(min_x=float(min_x), max_x=float(max_x), min_y=float(min_y), max_y=float(max_y))


def _resolve_highlight(
    highlight: Union[str, Sequence[Hashable], None], groups: Sequence[Hashable]
) -> Tuple[Hashable, ...]:
    values: Tuple[Hashable, ...] = (highlight,) if isinstance(highlight, str) else tuple(highlight or ())
    known = set(groups)
    missing = [value for value in values if value not in known]
    if missing:
        joined = ", ".join(repr(value) for value in missing)
        raise FunnelInputError(f"Value(s) specified to `highlight` not found in `group` variable: {joined}")
    return values


__all__ = ["funnel_limits", "resolve_axis_range"]
