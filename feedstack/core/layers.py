"""Layer implementations composed by :class:`feedstack.core.network.Network`."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Tuple, runtime_checkable

import numpy as np

from .activations import REGISTRY as ACTIVATIONS
from .activations import Activation
from .types import Array

EMPTY_WEIGHTS_SHAPE = (0, 0)


@runtime_checkable
class Layer(Protocol):
    """Protocol implemented by every layer type."""

    def size_in(self) -> int:
        """Width of the input vector."""

    def size_out(self) -> int:
        """Width of the output vector."""

    def forward(self, x: Array, training: bool = False) -> Array:
        """Return the activation for ``x``."""

    def backward(self, x: Array, error: Array) -> tuple[Array, Array]:
        """Return ``(input_error, gradient)`` for the last forwarded ``x``."""

    def update(self, delta: Array) -> None:
        """Add ``delta`` to the weights in place."""

    def get_weights(self) -> Array:
        """Return a copy of the weight matrix."""


def _as_vector(x, width: int, what: str) -> Array:
    vec = np.asarray(x, dtype=np.float64)
    if vec.ndim != 1 or vec.shape[0] != width:
        raise ValueError(f"{what} has shape {vec.shape}, expected ({width},)")
    return vec


@dataclass(eq=False)
class FullyConnected:
    """Fully connected layer; row ``j`` of the weights is ``[bias_j, w_j0, w_j1, ...]``."""

    n_in: int
    n_out: int
    activation: Activation | str = "tanh"
    rng: np.random.Generator | None = field(default=None, repr=False)
    weights: Array = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if int(self.n_in) < 1 or int(self.n_out) < 1:
            raise ValueError(
                f"FullyConnected needs positive widths, got {self.n_in}->{self.n_out}"
            )
        self.n_in = int(self.n_in)
        self.n_out = int(self.n_out)
        self.activation = ACTIVATIONS.resolve(self.activation)
        rng = self.rng if self.rng is not None else np.random.default_rng()
        width = 0.2 / float(self.n_in + 1)
        self.weights = rng.uniform(-width, width, size=(self.n_out, self.n_in + 1))
        self._cache: Tuple[Array, Array] | None = None

    def size_in(self) -> int:
        return self.n_in

    def size_out(self) -> int:
        return self.n_out

    def forward(self, x: Array, training: bool = False) -> Array:
        x = _as_vector(x, self.n_in, "Layer input")
        net = self.weights[:, 0] + self.weights[:, 1:] @ x
        self._cache = (x, net)
        return self.activation.f(net)

    def backward(self, x: Array, error: Array) -> tuple[Array, Array]:
        if self._cache is None:
            raise RuntimeError("backward() called before forward() on FullyConnected layer")
        cached_x, net = self._cache
        x = _as_vector(x, self.n_in, "Layer input")
        if x is not cached_x and not np.array_equal(x, cached_x):
            raise RuntimeError("backward() input differs from the last forwarded input")
        error = _as_vector(error, self.n_out, "Output error")

        delta = error * self.activation.df(net)
        gradient = np.empty_like(self.weights)
        gradient[:, 0] = delta
        gradient[:, 1:] = np.outer(delta, x)
        input_error = self.weights[:, 1:].T @ delta
        return input_error, gradient

    def update(self, delta: Array) -> None:
        delta = np.asarray(delta, dtype=np.float64)
        if delta.shape != self.weights.shape:
            raise ValueError(
                f"Update of shape {delta.shape} does not match weights {self.weights.shape}"
            )
        self.weights += delta

    def get_weights(self) -> Array:
        return self.weights.copy()


@dataclass(eq=False)
class Dropout:
    """Replace each unit by ``value`` with probability ``p`` while training.

    The layer owns ``rng`` and draws ``size`` uniforms on every training-mode
    forward call, so a seeded generator makes the masks reproducible.
    Backward passes the error through unchanged.
    """

    size: int
    p: float
    rng: np.random.Generator | None = field(default=None, repr=False)
    value: float = 0.0

    def __post_init__(self) -> None:
        if int(self.size) < 1:
            raise ValueError(f"Dropout needs a positive width, got {self.size}")
        if not 0.0 <= float(self.p) <= 1.0:
            raise ValueError(f"Dropout probability must lie in [0, 1], got {self.p}")
        self.size = int(self.size)
        self.p = float(self.p)
        if self.rng is None:
            self.rng = np.random.default_rng()
        self._forwarded = False

    def size_in(self) -> int:
        return self.size

    def size_out(self) -> int:
        return self.size

    def forward(self, x: Array, training: bool = False) -> Array:
        x = _as_vector(x, self.size, "Layer input")
        self._forwarded = True
        if not training:
            return x.copy()
        draws = self.rng.uniform(0.0, 1.0, size=self.size)
        return np.where(draws >= self.p, x, self.value)

    def backward(self, x: Array, error: Array) -> tuple[Array, Array]:
        if not self._forwarded:
            raise RuntimeError("backward() called before forward() on Dropout layer")
        error = _as_vector(error, self.size, "Output error")
        return error.copy(), np.zeros(EMPTY_WEIGHTS_SHAPE)

    def update(self, delta: Array) -> None:
        if np.size(delta) != 0:
            raise ValueError("Dropout has no weights; expected an empty update")

    def get_weights(self) -> Array:
        return np.zeros(EMPTY_WEIGHTS_SHAPE)


__all__ = ["Layer", "FullyConnected", "Dropout", "EMPTY_WEIGHTS_SHAPE"]
