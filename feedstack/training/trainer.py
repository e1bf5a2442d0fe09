"""Mini-batch gradient descent over a :class:`~feedstack.core.network.Network`."""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np

from ..core import packs
from ..core.network import Network
from ..core.types import Array, GradientPack, Schedule, TrainResult

RoundCallback = Callable[[int], None]
BatchCallback = Callable[[int], None]


class BatchTrainer:
    """Accumulate per-sample gradients over a batch, then commit one update.

    Each committed update is ``-schedule(round) / batch_size`` times the
    summed gradient, minus ``w * l2 / len(dataset)`` on every non-bias weight
    when ``l2 > 0``. A short trailing batch is scaled by ``batch_size`` as
    well, so its samples weigh the same as any other sample.
    """

    def __init__(
        self,
        schedule: Schedule,
        batch_size: int,
        rounds: int,
        l2: float = 0.0,
        *,
        on_round: RoundCallback | None = None,
        on_batch: BatchCallback | None = None,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        if int(batch_size) < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if int(rounds) < 0:
            raise ValueError(f"rounds must be non-negative, got {rounds}")
        if float(l2) < 0.0:
            raise ValueError(f"l2 must be non-negative, got {l2}")
        self.schedule = schedule
        self.batch_size = int(batch_size)
        self.rounds = int(rounds)
        self.l2 = float(l2)
        self.on_round = on_round
        self.on_batch = on_batch
        self.callbacks = list(callbacks or [])

    def callback_round(self, callback: RoundCallback) -> None:
        self.on_round = callback

    def callback_batch(self, callback: BatchCallback) -> None:
        self.on_batch = callback

    def train(
        self,
        network: Network,
        inputs: Sequence[Array],
        targets: Sequence[Array],
    ) -> TrainResult:
        n = self._check_dataset(inputs, targets)
        commits = 0
        samples = 0

        for round_index in range(self.rounds):
            step = self._loop_step(round_index)
            batch_sum: GradientPack | None = None
            in_batch = 0

            # re-read each round; on_round callbacks may reorder them in place
            for x, t in zip(inputs, targets):
                _, gradients = network.backward(x, t)
                samples += 1
                if batch_sum is None:
                    batch_sum = gradients
                else:
                    packs.accumulate(batch_sum, gradients)
                in_batch += 1

                if in_batch == self.batch_size:
                    self._commit(network, batch_sum, n, step, round_index)
                    self._emit_batch(commits)
                    commits += 1
                    batch_sum = None
                    in_batch = 0

            if batch_sum is not None:
                self._commit(network, batch_sum, n, step, round_index)
                self._emit_batch(commits)
                commits += 1

            self._emit_round(round_index)

        return TrainResult(rounds=self.rounds, commits=commits, samples=samples)

    # ------------------------------------------------------------------
    # Hooks for subclasses

    def _loop_step(self, round_index: int) -> float:
        """Step size used to scale the accumulated batch gradient."""

        return float(self.schedule(round_index))

    def _correct(self, network: Network, update: GradientPack, round_index: int) -> GradientPack:
        """Last chance to rewrite a finalised update before it is committed."""

        return update

    # ------------------------------------------------------------------
    # Internal helpers

    def _commit(
        self,
        network: Network,
        batch_sum: GradientPack,
        n: int,
        step: float,
        round_index: int,
    ) -> None:
        update = packs.copy(batch_sum)
        packs.scale(update, -step / self.batch_size)

        if self.l2 > 0.0:
            for delta, weights in zip(update, network.get_weights()):
                if delta.size == 0:
                    continue
                # column 0 holds the biases, which are not regularised
                delta[:, 1:] -= weights[:, 1:] * self.l2 / n

        update = self._correct(network, update, round_index)
        network.update(update)

    def _emit_batch(self, batch_index: int) -> None:
        if self.on_batch is not None:
            self.on_batch(batch_index)
        for callback in self.callbacks:
            if hasattr(callback, "on_batch"):
                callback.on_batch(batch_index)  # type: ignore[attr-defined]

    def _emit_round(self, round_index: int) -> None:
        if self.on_round is not None:
            self.on_round(round_index)
        for callback in self.callbacks:
            if hasattr(callback, "on_round"):
                callback.on_round(round_index)  # type: ignore[attr-defined]

    @staticmethod
    def _check_dataset(inputs: Sequence[Array], targets: Sequence[Array]) -> int:
        n_inputs = len(inputs)
        n_targets = len(targets)
        if n_inputs != n_targets:
            raise ValueError(f"Got {n_inputs} inputs but {n_targets} targets")
        if n_inputs == 0:
            raise ValueError("Cannot train on an empty dataset")
        return n_inputs


def gradient_descent_step(network: Network, x: Array, target: Array, step: float) -> None:
    """Apply one plain gradient-descent step of size ``step`` for one sample."""

    _, gradients = network.backward(np.asarray(x), np.asarray(target))
    packs.scale(gradients, -float(step))
    network.update(gradients)


__all__ = ["BatchTrainer", "gradient_descent_step"]
