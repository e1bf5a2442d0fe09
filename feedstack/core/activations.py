"""Activation functions consumed by the layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .types import Array

ActivationFn = Callable[[Array], Array]


@dataclass(frozen=True)
class Activation:
    """Pure ``(f, df)`` pair; ``df`` is evaluated at the pre-activation."""

    name: str
    f: ActivationFn
    df: ActivationFn


class ActivationRegistry:
    """Central registry for activation functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Activation] = {}

    def register(self, name: str, f: ActivationFn, df: ActivationFn) -> None:
        self._registry[name] = Activation(name, f, df)

    def get(self, name: str) -> Activation:
        try:
            return self._registry[name]
        except KeyError as exc:
            available = ", ".join(self.names())
            raise KeyError(f"Unknown activation {name!r}. Available: {available}") from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, activation: Activation | str) -> Activation:
        if isinstance(activation, Activation):
            return activation
        return self.get(str(activation))


REGISTRY = ActivationRegistry()


def _sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))


def _sigmoid_deriv(x: Array) -> Array:
    s = _sigmoid(x)
    return s * (1.0 - s)


def _tanh_deriv(x: Array) -> Array:
    return 1.0 - np.tanh(x) ** 2


REGISTRY.register("identity", lambda x: np.array(x, dtype=np.float64), np.ones_like)
REGISTRY.register("sigmoid", _sigmoid, _sigmoid_deriv)
REGISTRY.register("tanh", np.tanh, _tanh_deriv)
REGISTRY.register("relu", lambda x: np.maximum(x, 0.0), lambda x: (x > 0).astype(np.float64))

identity = REGISTRY.get("identity")
sigmoid = REGISTRY.get("sigmoid")
tanh = REGISTRY.get("tanh")
relu = REGISTRY.get("relu")

__all__ = [
    "Activation",
    "ActivationRegistry",
    "REGISTRY",
    "identity",
    "sigmoid",
    "tanh",
    "relu",
]
