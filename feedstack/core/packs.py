"""Helpers over per-layer weight and gradient packs.

A pack is a list with one array per layer, in network order. Flattening walks
the pack layer by layer, each layer row by row (neuron), each row entry by
entry (bias first), so ``unflatten(flatten(pack), pack)`` reproduces ``pack``.
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from .types import Array


def shapes(pack: Sequence[Array]) -> List[tuple]:
    return [tuple(np.shape(part)) for part in pack]


def check_same_shape(lhs: Sequence[Array], rhs: Sequence[Array], what: str = "pack") -> None:
    """Raise ``ValueError`` unless both packs have identical per-layer shapes."""

    if len(lhs) != len(rhs):
        raise ValueError(f"{what} has {len(rhs)} layers, expected {len(lhs)}")
    for idx, (a, b) in enumerate(zip(lhs, rhs)):
        if np.shape(a) != np.shape(b):
            raise ValueError(
                f"{what} layer {idx} has shape {np.shape(b)}, expected {np.shape(a)}"
            )


def zeros_like(pack: Sequence[Array]) -> List[Array]:
    return [np.zeros_like(part, dtype=np.float64) for part in pack]


def copy(pack: Sequence[Array]) -> List[Array]:
    return [np.array(part, dtype=np.float64, copy=True) for part in pack]


def accumulate(total: Sequence[Array], pack: Sequence[Array]) -> None:
    """Add ``pack`` into ``total`` in place."""

    check_same_shape(total, pack, what="gradient pack")
    for acc, part in zip(total, pack):
        acc += part


def scale(pack: Sequence[Array], factor: float) -> None:
    """Multiply every entry of ``pack`` by ``factor`` in place."""

    for part in pack:
        part *= factor


def size(pack: Sequence[Array]) -> int:
    return int(sum(int(np.size(part)) for part in pack))


def flatten(pack: Sequence[Array]) -> Array:
    """Concatenate ``pack`` into a single 1-D float64 vector."""

    if not pack:
        return np.zeros(0, dtype=np.float64)
    return np.concatenate([np.asarray(part, dtype=np.float64).ravel() for part in pack])


def unflatten(vector: Array, like: Sequence[Array]) -> List[Array]:
    """Inverse of :func:`flatten`, using the shapes of ``like``."""

    vector = np.asarray(vector, dtype=np.float64)
    if vector.ndim != 1 or vector.size != size(like):
        raise ValueError(
            f"Vector of shape {vector.shape} does not match a pack of {size(like)} entries"
        )
    out: List[Array] = []
    offset = 0
    for part in like:
        n = int(np.size(part))
        out.append(vector[offset : offset + n].reshape(np.shape(part)).copy())
        offset += n
    return out


__all__ = [
    "shapes",
    "check_same_shape",
    "zeros_like",
    "copy",
    "accumulate",
    "scale",
    "size",
    "flatten",
    "unflatten",
]
