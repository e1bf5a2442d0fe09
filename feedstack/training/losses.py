"""Loss registry used by the network and the trainers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.types import Array

LossFn = Callable[[Array, Array], Array]

CROSS_ENTROPY_EPS = 1e-12


@dataclass(frozen=True)
class Loss:
    """Elementwise loss ``f(prediction, target)`` and its derivative ``df``."""

    name: str
    f: LossFn
    df: LossFn


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, f: LossFn, df: LossFn) -> None:
        self._registry[name] = Loss(name, f, df)

    def get(self, name: str) -> Loss:
        if name not in self._registry:
            available = ", ".join(self.names())
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, loss: Loss | str) -> Loss:
        if isinstance(loss, Loss):
            return loss
        return self.get(str(loss))


REGISTRY = LossRegistry()


def _mse(pred: Array, target: Array) -> Array:
    diff = pred - target
    return diff * diff / 2.0


def _mse_deriv(pred: Array, target: Array) -> Array:
    return pred - target


def _clamp(pred: Array) -> Array:
    return np.clip(pred, CROSS_ENTROPY_EPS, 1.0 - CROSS_ENTROPY_EPS)


def _cross_entropy(pred: Array, target: Array) -> Array:
    y = _clamp(pred)
    return -target * np.log(y) - (1.0 - target) * np.log(1.0 - y)


def _cross_entropy_deriv(pred: Array, target: Array) -> Array:
    y = _clamp(pred)
    return (y - target) / (y * (1.0 - y))


REGISTRY.register("mse", _mse, _mse_deriv)
REGISTRY.register("cross_entropy", _cross_entropy, _cross_entropy_deriv)
# Short alias
REGISTRY.register("ce", _cross_entropy, _cross_entropy_deriv)

mse = REGISTRY.get("mse")
cross_entropy = REGISTRY.get("cross_entropy")

__all__ = ["Loss", "LossRegistry", "REGISTRY", "mse", "cross_entropy"]
