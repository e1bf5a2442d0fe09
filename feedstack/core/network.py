"""Composition of layers into a single differentiable function."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from ..training.losses import REGISTRY as LOSS_REGISTRY
from ..training.losses import Loss
from . import packs
from .layers import Layer
from .types import Array, GradientPack, LayerDescription, ModelDescription, WeightPack


class Network:
    """Ordered list of layers plus a loss.

    Adjacent widths are checked once here; ``forward`` and ``backward`` only
    validate the outer input and target widths.
    """

    def __init__(self, layers: Sequence[Layer], loss: Loss | str = "mse") -> None:
        layers = list(layers)
        if not layers:
            raise ValueError("Network needs at least one layer")
        # layers cache their last forward pass, so one instance cannot sit at two positions
        if len({id(layer) for layer in layers}) != len(layers):
            raise ValueError("Network layers must be distinct instances")
        for idx, (head, tail) in enumerate(zip(layers[:-1], layers[1:])):
            if head.size_out() != tail.size_in():
                raise ValueError(
                    f"Layer {idx} outputs {head.size_out()} values but layer {idx + 1} "
                    f"expects {tail.size_in()}"
                )
        self.layers: List[Layer] = layers
        self.loss = LOSS_REGISTRY.resolve(loss)

    def __len__(self) -> int:
        return len(self.layers)

    def size_in(self) -> int:
        return self.layers[0].size_in()

    def size_out(self) -> int:
        return self.layers[-1].size_out()

    def describe(self) -> ModelDescription:
        return ModelDescription(
            layers=[
                LayerDescription(
                    kind=type(layer).__name__,
                    size_in=layer.size_in(),
                    size_out=layer.size_out(),
                    weight_shape=tuple(np.shape(layer.get_weights())),
                )
                for layer in self.layers
            ],
            loss=self.loss.name,
        )

    def parameter_count(self) -> int:
        return packs.size(self.get_weights())

    def forward(self, x: Array) -> Array:
        """Inference pass; stochastic layers are inactive."""

        out = self._check_input(x)
        for layer in self.layers:
            out = layer.forward(out, training=False)
        return out

    def backward(self, x: Array, target: Array) -> tuple[Array, GradientPack]:
        """Return ``(input_error, gradient_pack)`` for one sample."""

        x = self._check_input(x)
        target = np.asarray(target, dtype=np.float64)
        if target.shape != (self.size_out(),):
            raise ValueError(f"Target has shape {target.shape}, expected ({self.size_out()},)")

        inputs: List[Array] = []
        out = x
        for layer in self.layers:
            inputs.append(out)
            out = layer.forward(out, training=True)

        error = self.loss.df(out, target)
        gradients: GradientPack = [None] * len(self.layers)  # type: ignore[list-item]
        for idx in reversed(range(len(self.layers))):
            error, gradients[idx] = self.layers[idx].backward(inputs[idx], error)
        return error, gradients

    def update(self, gradients: Sequence[Array]) -> None:
        packs.check_same_shape(self.get_weights(), gradients, what="update pack")
        for layer, delta in zip(self.layers, gradients):
            layer.update(delta)

    def get_weights(self) -> WeightPack:
        return [layer.get_weights() for layer in self.layers]

    def allocate_gradients(self) -> GradientPack:
        return packs.zeros_like(self.get_weights())

    def loss_value(self, x: Array, target: Array) -> float:
        """Summed loss of one sample under the inference pass."""

        prediction = self.forward(x)
        return float(np.sum(self.loss.f(prediction, np.asarray(target, dtype=np.float64))))

    def _check_input(self, x: Array) -> Array:
        vec = np.asarray(x, dtype=np.float64)
        if vec.shape != (self.size_in(),):
            raise ValueError(f"Input has shape {vec.shape}, expected ({self.size_in()},)")
        return vec


__all__ = ["Network"]
