"""Dispersion ratio (φ) and between-group variance (τ²) estimators."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .errors import FunnelComputationError
from .records import TrimmedRecord


def phi_func(n: int, zscores: Sequence[float]) -> float:
    """Dispersion ratio φ = (1/(n-1)) Σ (Wz - mean Wz)² over the retained trimmed scores.

    Transformed scores have unit null variance, so φ is the ratio of observed
    to expected variance.  It is not floored: values below one simply lead to
    τ² = 0.  A single retained score shows no spread and gives φ = 0.
    """
    values = np.asarray(zscores, dtype=float)
    if n <= 0 or values.size == 0:
        raise FunnelComputationError("No trimmed scores remain to estimate the dispersion ratio.")
    if values.size != n:
        raise ValueError(f"Expected {n} scores, received {values.size}.")
    if n == 1:
        return 0.0
    return float(np.sum((values - values.mean()) ** 2) / (n - 1))


def tau_func(n: int, phi: float, s: Sequence[float]) -> float:
    """DerSimonian–Laird moment estimate of τ² from φ and the null standard errors.

    Only the standard errors of records retained after trimming should be passed.
    """
    if n * phi <= n - 1:
        return 0.0

    weights = 1.0 / np.asarray(s, dtype=float) ** 2
    if weights.size != n:
        raise ValueError(f"Expected {n} standard errors, received {weights.size}.")
    scale = np.sum(weights) - np.sum(weights**2) / np.sum(weights)
    if not scale > 0:
        raise FunnelComputationError(
            f"Between-group variance is undefined for {n} retained group(s); need at least two."
        )
    return max(0.0, float((n * phi - (n - 1)) / scale))


def estimate_dispersion(records: Sequence[TrimmedRecord]) -> Tuple[float, float]:
    """Compute (φ, τ²) from the retained subset of trimmed records."""
    retained = [record for record in records if record.retained]
    n = len(retained)
    phi = phi_func(n, [record.trimmed_z for record in retained])
    tau2 = tau_func(n, phi, [record.s for record in retained])
    return phi, tau2


__all__ = ["estimate_dispersion", "phi_func", "tau_func"]
