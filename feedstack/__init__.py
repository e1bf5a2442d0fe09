"""feedstack public API."""

from .core import activations, packs, types  # noqa: F401
from .core.layers import Dropout, FullyConnected, Layer
from .core.network import Network
from .data import Dataset
from .training import schedules
from .training.lbfgs import LBFGSHistory, LBFGSTrainer
from .training.losses import REGISTRY as LOSSES
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import BatchTrainer

__all__ = [
    "BatchTrainer",
    "Dataset",
    "Dropout",
    "FullyConnected",
    "LBFGSHistory",
    "LBFGSTrainer",
    "LOSSES",
    "Layer",
    "Network",
    "activations",
    "load_preset",
    "packs",
    "presets",
    "run_pipeline",
    "schedules",
    "types",
]
