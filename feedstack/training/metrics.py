"""Evaluation helpers used by the round callbacks of the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np

from ..core.network import Network
from ..core.types import Array

DEFAULT_METRICS = ("mse", "mae", "rmse", "r2")


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def predict(network: Network, inputs: Sequence[Array]) -> Array:
    """Stack inference outputs for ``inputs`` into an ``(n, size_out)`` array."""

    outputs = [network.forward(x) for x in inputs]
    if not outputs:
        return np.zeros((0, network.size_out()))
    return np.vstack(outputs)


def compute_metric(name: str, predictions: Array, targets: Array) -> MetricResult:
    key = name.lower()
    preds = np.asarray(predictions, dtype=np.float64)
    targs = np.asarray(targets, dtype=np.float64).reshape(preds.shape)
    if key == "mse":
        value = float(np.mean((preds - targs) ** 2))
    elif key == "mae":
        value = float(np.mean(np.abs(preds - targs)))
    elif key == "rmse":
        value = float(np.sqrt(np.mean((preds - targs) ** 2)))
    elif key == "r2":
        mean = np.mean(targs, axis=0, keepdims=True)
        ss_res = float(np.sum((targs - preds) ** 2))
        ss_tot = float(np.sum((targs - mean) ** 2))
        value = 1.0 if ss_tot == 0 else float(1 - ss_res / (ss_tot + 1e-9))
    elif key == "accuracy":
        value = float(np.mean((preds >= 0.5).astype(int) == (targs >= 0.5).astype(int)))
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(
    names: Iterable[str],
    predictions: Array,
    targets: Array,
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets)
        results[metric.name] = metric.value
    return results


def evaluate(
    network: Network,
    inputs: Sequence[Array],
    targets: Sequence[Array],
    names: Iterable[str] = DEFAULT_METRICS,
) -> Mapping[str, float]:
    """Mean per-sample network loss as ``loss`` plus the requested metrics."""

    if len(inputs) == 0 or len(inputs) != len(targets):
        raise ValueError(f"Cannot evaluate {len(inputs)} inputs against {len(targets)} targets")
    predictions = predict(network, inputs)
    stacked = np.vstack([np.asarray(t, dtype=np.float64) for t in targets])
    losses: List[float] = [
        float(np.sum(network.loss.f(p, t))) for p, t in zip(predictions, stacked)
    ]
    results: Dict[str, float] = {"loss": float(np.mean(losses)) if losses else 0.0}
    results.update(compute_metrics(names, predictions, stacked))
    return results


__all__ = [
    "DEFAULT_METRICS",
    "MetricResult",
    "predict",
    "compute_metric",
    "compute_metrics",
    "evaluate",
]
