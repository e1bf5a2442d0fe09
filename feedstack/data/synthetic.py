"""Pure in-memory synthetic datasets."""

from __future__ import annotations

import numpy as np

from .registry import Dataset, register_dataset


@register_dataset("xor")
def make_xor(signed: bool = False, **_: object) -> Dataset:
    x = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    y = np.array([[0.0], [1.0], [1.0], [0.0]])
    if signed:
        x = 2.0 * x - 1.0
        y = 2.0 * y - 1.0
    return Dataset(x, y, name="xor", provenance={"type": "xor", "signed": bool(signed)})


@register_dataset("sine")
def make_sine(n_points: int = 400, **_: object) -> Dataset:
    x = np.arange(n_points, dtype=np.float64) / float(n_points) * 2.0 - 1.0
    y = np.sin(-x * np.pi)
    return Dataset(
        x.reshape(-1, 1),
        y.reshape(-1, 1),
        name="sine",
        provenance={"type": "sine", "n_points": int(n_points)},
    )


@register_dataset("abs_diff")
def make_abs_diff(n_points: int = 1000, seed: int = 0, **_: object) -> Dataset:
    rng = np.random.default_rng(seed)
    x = rng.uniform(-1.0, 1.0, size=(n_points, 2))
    y = np.abs(x[:, 0] - x[:, 1]) / 2.0
    return Dataset(
        x,
        y.reshape(-1, 1),
        name="abs_diff",
        provenance={"type": "abs_diff", "n_points": int(n_points), "seed": int(seed)},
    )


@register_dataset("poly10")
def make_poly10(n_points: int = 1000, seed: int = 0, **_: object) -> Dataset:
    rng = np.random.default_rng(seed)
    x = rng.uniform(0.0, 1.0, size=(n_points, 10))
    y = (
        x[:, 0] * x[:, 1] * x[:, 2]
        + 2.0 * x[:, 3] * x[:, 4]
        + 3.0 * x[:, 5] * x[:, 6] * x[:, 7]
        + 4.0 * x[:, 8] * x[:, 9] * x[:, 0]
    ) / 5.0 - 1.0
    return Dataset(
        x,
        y.reshape(-1, 1),
        name="poly10",
        provenance={"type": "poly10", "n_points": int(n_points), "seed": int(seed)},
    )


__all__ = ["make_xor", "make_sine", "make_abs_diff", "make_poly10"]
