"""Unit tests for the dispersion ratio and between-group variance."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.funnel.dispersion import estimate_dispersion, phi_func, tau_func
from src.funnel.errors import FunnelComputationError
from src.funnel.records import TrimmedRecord


# ---------------------------------------------------------------------------
# phi


def test_phi_is_sample_variance_of_scores() -> None:
    # mean 2, squared deviations 1 + 0 + 1 over n - 1 = 2
    assert phi_func(3, [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_phi_is_zero_for_identical_scores() -> None:
    assert phi_func(4, [0.0, 0.0, 0.0, 0.0]) == pytest.approx(0.0)
    assert phi_func(4, [2.5, 2.5, 2.5, 2.5]) == pytest.approx(0.0, abs=1e-12)


def test_phi_of_single_score_is_zero() -> None:
    assert phi_func(1, [4.0]) == 0.0


def test_phi_requires_scores() -> None:
    with pytest.raises(FunnelComputationError):
        phi_func(0, [])


def test_phi_checks_count() -> None:
    with pytest.raises(ValueError):
        phi_func(2, [1.0, 2.0, 3.0])


# ---------------------------------------------------------------------------
# tau2


def test_tau_matches_moment_estimator() -> None:
    # w = 1 each: sum(w) - sum(w^2)/sum(w) = 3 - 1 = 2; (3 * 3 - 2) / 2
    assert tau_func(3, 3.0, [1.0, 1.0, 1.0]) == pytest.approx(3.5)


def test_tau_uses_inverse_variance_weights() -> None:
    s = [0.5, 1.0]
    weights = [4.0, 1.0]
    scale = sum(weights) - sum(w**2 for w in weights) / sum(weights)
    assert tau_func(2, 2.0, s) == pytest.approx((2 * 2.0 - 1) / scale)


def test_tau_is_zero_without_overdispersion() -> None:
    assert tau_func(3, 0.5, [1.0, 1.0, 1.0]) == 0.0
    assert tau_func(5, 0.0, [0.1] * 5) == 0.0


def test_tau_rejects_single_group() -> None:
    with pytest.raises(FunnelComputationError):
        tau_func(1, 4.0, [1.0])


# ---------------------------------------------------------------------------
# Combined estimate


def _trimmed(values: list[float | None]) -> list[TrimmedRecord]:
    return [
        TrimmedRecord(group=idx, numerator=1.0, denominator=1.0, z=value or 9.0, s=1.0, trimmed_z=value)
        for idx, value in enumerate(values)
    ]


def test_estimate_dispersion_ignores_truncated_records() -> None:
    phi, tau2 = estimate_dispersion(_trimmed([1.0, None, 4.0, 7.0, None]))
    # retained [1, 4, 7]: phi = 18 / 2; tau2 = (3 * 9 - 2) / 2
    assert phi == pytest.approx(9.0)
    assert tau2 == pytest.approx(12.5)


def test_estimate_dispersion_fails_when_everything_truncated() -> None:
    with pytest.raises(FunnelComputationError):
        estimate_dispersion(_trimmed([None, None]))
