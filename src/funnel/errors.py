"""Exceptions raised by the funnel-limit pipeline."""

from __future__ import annotations


class FunnelInputError(ValueError):
    """Inputs or configuration were rejected before any computation started."""


class FunnelComputationError(RuntimeError):
    """Limits cannot be well-defined for the supplied data."""


__all__ = ["FunnelComputationError", "FunnelInputError"]
