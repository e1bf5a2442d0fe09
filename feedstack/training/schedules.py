"""Learning-rate schedules: pure functions from round index to step size."""

from __future__ import annotations

from typing import Mapping

from ..core.types import Schedule


def constant(factor: float) -> Schedule:
    """``schedule(r) = factor``."""

    factor = float(factor)
    if factor <= 0.0:
        raise ValueError(f"Schedule factor must be positive, got {factor}")

    def schedule(round_index: int) -> float:
        return factor

    return schedule


def exponential(factor: float, base: float) -> Schedule:
    """``schedule(r) = factor * base ** r``."""

    factor = float(factor)
    base = float(base)
    if factor <= 0.0 or base <= 0.0:
        raise ValueError(f"Schedule factor and base must be positive, got {factor}, {base}")

    def schedule(round_index: int) -> float:
        return factor * base ** int(round_index)

    return schedule


def build_schedule(config: Mapping[str, object] | float) -> Schedule:
    """Build a schedule from ``{"name": ..., "factor": ..., "base": ...}`` or a number."""

    if isinstance(config, (int, float)):
        return constant(float(config))
    name = str(config.get("name", "constant"))
    if name == "constant":
        return constant(float(config.get("factor", 0.1)))
    if name in {"exponential", "exp"}:
        return exponential(float(config.get("factor", 0.1)), float(config.get("base", 0.95)))
    raise ValueError(f"Unknown schedule: {name}")


__all__ = ["constant", "exponential", "build_schedule"]
