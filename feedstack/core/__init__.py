"""Core numerical primitives for feedstack."""

from . import activations, packs, types

__all__ = ["activations", "packs", "types"]
