"""Dataset container and registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, MutableMapping, Tuple

import numpy as np

from ..core.types import Array


@dataclass
class Dataset:
    """Finite, revisitable sequence of ``(input, target)`` samples.

    ``inputs`` and ``targets`` are ``(n, d_in)`` / ``(n, d_out)`` arrays, so
    they can be handed to the trainers directly. ``shuffle`` permutes both in
    place, which lets a round callback reorder the data between rounds.
    """

    inputs: Array
    targets: Array
    name: str = "dataset"
    provenance: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.inputs = np.asarray(self.inputs, dtype=np.float64)
        if self.inputs.ndim == 1:
            self.inputs = self.inputs.reshape(-1, 1)
        self.targets = np.asarray(self.targets, dtype=np.float64)
        if self.targets.ndim == 1:
            self.targets = self.targets.reshape(-1, 1)
        if self.inputs.shape[0] != self.targets.shape[0]:
            raise ValueError(
                f"Dataset has {self.inputs.shape[0]} inputs but {self.targets.shape[0]} targets"
            )

    def __len__(self) -> int:
        return int(self.inputs.shape[0])

    def __iter__(self) -> Iterator[Tuple[Array, Array]]:
        return iter(zip(self.inputs, self.targets))

    @property
    def d_in(self) -> int:
        return int(self.inputs.shape[1])

    @property
    def d_out(self) -> int:
        return int(self.targets.shape[1])

    def shuffle(self, rng: np.random.Generator) -> None:
        order = rng.permutation(len(self))
        self.inputs[:] = self.inputs[order]
        self.targets[:] = self.targets[order]

    def split(
        self, fraction: float, rng: np.random.Generator | None = None
    ) -> Tuple["Dataset", "Dataset"]:
        """Return ``(train, test)`` with ``fraction`` of the samples in ``test``."""

        if not 0.0 <= fraction < 1.0:
            raise ValueError(f"test fraction must lie in [0, 1), got {fraction}")
        n = len(self)
        order = rng.permutation(n) if rng is not None else np.arange(n)
        n_test = int(n * fraction)
        test_idx = np.sort(order[:n_test])
        train_idx = order[n_test:]
        return self._subset(train_idx, "train"), self._subset(test_idx, "test")

    def _subset(self, idx: Array, suffix: str) -> "Dataset":
        return Dataset(
            self.inputs[idx],
            self.targets[idx],
            name=f"{self.name}:{suffix}",
            provenance=dict(self.provenance),
        )


DatasetFactory = Callable[..., Dataset]

_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory, directly or as a decorator."""

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    return _decorator


def get(name: str, **options: Any) -> Dataset:
    if name not in _REGISTRY:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset {name!r}. Available datasets: {available}")
    dataset = _REGISTRY[name](**options)
    if len(dataset) == 0:
        raise ValueError(f"Dataset {name!r} produced no samples")
    return dataset


def available_datasets() -> Iterable[str]:
    return sorted(_REGISTRY)


__all__ = ["Dataset", "register_dataset", "get", "available_datasets"]
