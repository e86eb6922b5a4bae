"""Poisson and overdispersion-adjusted control limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
from scipy import stats

from .records import Coverage, LimitBand, LimitCurve, LimitFamily, LimitPoint
from .transforms import TransformStrategy

# Two-sided tail probabilities for 95% and 99.8% coverage.
TAIL_PROBABILITY: Dict[Coverage, float] = {95: 0.025, 99: 0.001}
Z_CRITICAL: Dict[Coverage, float] = {
    coverage: float(stats.norm.ppf(1.0 - tail)) for coverage, tail in TAIL_PROBABILITY.items()
}

OD_DISABLED_NOTICE = "OD_adjust set to FALSE, plotting using Poisson limits"
NO_OVERDISPERSION_NOTICE = "No overdispersion detected, or OD_adjust to FALSE, plotting using Poisson limits"


@dataclass(frozen=True)
class LimitPolicy:
    """Which limit families are active after any automatic downgrade."""

    od_adjust: bool
    poisson_limits: bool
    notices: Tuple[str, ...] = ()


def resolve_limit_policy(od_adjust: bool, poisson_limits: bool, tau2: float) -> LimitPolicy:
    """Fall back to Poisson limits when OD is disabled or no overdispersion was found."""
    if not od_adjust:
        return LimitPolicy(od_adjust=False, poisson_limits=True, notices=(OD_DISABLED_NOTICE,))
    if tau2 == 0:
        return LimitPolicy(od_adjust=False, poisson_limits=True, notices=(NO_OVERDISPERSION_NOTICE,))
    return LimitPolicy(od_adjust=True, poisson_limits=poisson_limits)


@dataclass(frozen=True)
class LimitsCalculator:
    """Evaluates both limit families at arbitrary denominators.

    All limits are returned on the multiplied scale, i.e. comparable with
    ``ratio * multiplier``.
    """

    strategy: TransformStrategy
    target: float
    multiplier: float = 1.0
    tau2: float = 0.0

    def poisson_bounds(self, denominator: np.ndarray, coverage: Coverage) -> Tuple[np.ndarray, np.ndarray]:
        d = np.asarray(denominator, dtype=float)
        tail = TAIL_PROBABILITY[coverage]
        if self.strategy.count_model == "binomial":
            spread = Z_CRITICAL[coverage] * np.sqrt(self.target * (1.0 - self.target) / d)
            lower = np.clip(self.target - spread, 0.0, 1.0)
            upper = np.clip(self.target + spread, 0.0, 1.0)
        else:
            # Exact Poisson limits for a count with expectation target * d.
            expected = self.target * d
            lower = stats.chi2.ppf(tail, 2.0 * expected) / (2.0 * d)
            upper = stats.chi2.ppf(1.0 - tail, 2.0 * expected + 2.0) / (2.0 * d)
        return self.multiplier * lower, self.multiplier * upper

    def od_bounds(self, denominator: np.ndarray, coverage: Coverage) -> Tuple[np.ndarray, np.ndarray]:
        d = np.asarray(denominator, dtype=float)
        lower, upper = self.strategy.od_bounds(d, self.target, Z_CRITICAL[coverage], self.tau2)
        return self.multiplier * lower, self.multiplier * upper

    def bounds(
        self, denominator: np.ndarray, family: LimitFamily, coverage: Coverage
    ) -> Tuple[np.ndarray, np.ndarray]:
        if family == "poisson":
            return self.poisson_bounds(denominator, coverage)
        if family == "overdispersed":
            return self.od_bounds(denominator, coverage)
        raise ValueError(f"Unknown limit family '{family}'")

    def evaluate(self, denominator: float, family: LimitFamily) -> LimitBand:
        """Limits at a single denominator for both coverage levels."""
        d = np.asarray([denominator], dtype=float)
        lower_95, upper_95 = self.bounds(d, family, 95)
        lower_998, upper_998 = self.bounds(d, family, 99)
        return LimitBand(
            lower_95=float(lower_95[0]),
            upper_95=float(upper_95[0]),
            lower_99_8=float(lower_998[0]),
            upper_99_8=float(upper_998[0]),
        )

    def poisson(self, denominator: float) -> LimitBand:
        return self.evaluate(denominator, "poisson")

    def overdispersed(self, denominator: float) -> LimitBand:
        return self.evaluate(denominator, "overdispersed")

    def curve(self, denominators: np.ndarray, family: LimitFamily) -> LimitCurve:
        d = np.asarray(denominators, dtype=float)
        lower_95, upper_95 = self.bounds(d, family, 95)
        lower_998, upper_998 = self.bounds(d, family, 99)
        points = tuple(
            LimitPoint(
                denominator=float(d[idx]),
                band=LimitBand(
                    lower_95=float(lower_95[idx]),
                    upper_95=float(upper_95[idx]),
                    lower_99_8=float(lower_998[idx]),
                    upper_99_8=float(upper_998[idx]),
                ),
            )
            for idx in range(d.shape[0])
        )
        return LimitCurve(family=family, points=points)


def denominator_grid(min_x: float, max_x: float, n_points: int = 1000) -> np.ndarray:
    """Evenly spaced denominators over ``[min_x, max_x]``, kept strictly positive."""
    if max_x <= 0:
        raise ValueError("max_x must be positive to sample limits.")
    start = min_x if min_x > 0 else max_x / n_points
    return np.linspace(start, max_x, n_points)


def build_limit_curves(
    calculator: LimitsCalculator, min_x: float, max_x: float, n_points: int = 1000
) -> Dict[LimitFamily, LimitCurve]:
    """Sample both limit families on the same denominator grid."""
    grid = denominator_grid(min_x, max_x, n_points)
    return {
        "poisson": calculator.curve(grid, "poisson"),
        "overdispersed": calculator.curve(grid, "overdispersed"),
    }


__all__ = [
    "LimitPolicy",
    "LimitsCalculator",
    "NO_OVERDISPERSION_NOTICE",
    "OD_DISABLED_NOTICE",
    "TAIL_PROBABILITY",
    "Z_CRITICAL",
    "build_limit_curves",
    "denominator_grid",
    "resolve_limit_policy",
]
