"""Dataset supply for feedstack."""

from . import synthetic as _synthetic  # noqa: F401
from .registry import Dataset, available_datasets, get, register_dataset

__all__ = ["Dataset", "available_datasets", "get", "register_dataset"]
