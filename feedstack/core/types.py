"""Core typing contracts for feedstack."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Tuple

import numpy as np

Array = np.ndarray

WeightPack = List[Array]
GradientPack = List[Array]

Schedule = Callable[[int], float]


@dataclass(frozen=True)
class LayerDescription:
    """Kind and widths of a single layer."""

    kind: str
    size_in: int
    size_out: int
    weight_shape: Tuple[int, ...]


@dataclass(frozen=True)
class ModelDescription:
    """Description of the feed-forward network architecture."""

    layers: List[LayerDescription]
    loss: str

    @property
    def layer_dims(self) -> List[int]:
        if not self.layers:
            return []
        return [self.layers[0].size_in] + [layer.size_out for layer in self.layers]


@dataclass(frozen=True)
class HistoryEntry:
    """One L-BFGS curvature pair and its cached ``rho = 1 / (y^T s)``."""

    sk: Array
    yk: Array
    rho: float


@dataclass(frozen=True)
class TrainResult:
    """Summary returned by the trainers."""

    rounds: int
    commits: int
    samples: int


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`feedstack.training.pipelines.run_pipeline`."""

    rounds: int
    commits: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""
    final_metrics: dict = field(default_factory=dict)
