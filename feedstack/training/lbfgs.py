"""Limited-memory BFGS on top of the mini-batch accumulation loop."""

from __future__ import annotations

import warnings
from typing import List, Sequence

import numpy as np

from ..core import packs
from ..core.network import Network
from ..core.types import Array, GradientPack, HistoryEntry, Schedule, TrainResult
from .trainer import BatchCallback, BatchTrainer, RoundCallback

RHO_EPS = 1e-12


class LBFGSHistory:
    """Bounded FIFO of curvature pairs, applied oldest to newest.

    ``apply(v)`` returns ``H v`` where ``H`` starts from the identity and is
    corrected by every stored pair with
    ``H <- (I - rho s y^T) H (I - rho y s^T) + rho s s^T``.
    """

    def __init__(self, size: int) -> None:
        if int(size) < 0:
            raise ValueError(f"history_size must be non-negative, got {size}")
        self.size = int(size)
        self._entries: List[HistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def push(self, sk: Array, yk: Array) -> HistoryEntry:
        sk = np.asarray(sk, dtype=np.float64).copy()
        yk = np.asarray(yk, dtype=np.float64).copy()
        if sk.shape != yk.shape or sk.ndim != 1:
            raise ValueError(f"Curvature pair shapes differ: {sk.shape} vs {yk.shape}")
        ys = float(yk @ sk)
        if not np.isfinite(ys) or abs(ys) < RHO_EPS:
            warnings.warn(
                f"Degenerate L-BFGS curvature pair (y^T s = {ys!r}); ignoring it",
                RuntimeWarning,
                stacklevel=2,
            )
            rho = 0.0
        else:
            rho = 1.0 / ys
        entry = HistoryEntry(sk=sk, yk=yk, rho=rho)
        self._entries.append(entry)
        return entry

    def trim(self) -> None:
        """Evict the oldest entries beyond ``size``."""

        while len(self._entries) > self.size:
            self._entries.pop(0)

    def apply(self, vector: Array) -> Array:
        """Two-loop recursion, ``O(len(history) * n)``."""

        q = np.array(vector, dtype=np.float64, copy=True)
        alphas: List[float] = []
        for entry in reversed(self._entries):
            alpha = entry.rho * float(entry.sk @ q)
            q -= alpha * entry.yk
            alphas.append(alpha)
        r = q
        for entry, alpha in zip(self._entries, reversed(alphas)):
            beta = entry.rho * float(entry.yk @ r)
            r += entry.sk * (alpha - beta)
        return r

    def dense_inverse_hessian(self, n: int) -> Array:
        """Dense ``n x n`` realisation of the operator used by :meth:`apply`."""

        eye = np.eye(n)
        h = eye.copy()
        for entry in self._entries:
            s = entry.sk.reshape(-1, 1)
            y = entry.yk.reshape(-1, 1)
            left = eye - entry.rho * (s @ y.T)
            right = eye - entry.rho * (y @ s.T)
            h = left @ h @ right + entry.rho * (s @ s.T)
        return h


class LBFGSTrainer(BatchTrainer):
    """Quasi-Newton variant of :class:`BatchTrainer`.

    The outer loop accumulates with a step of 1; every finalised update is
    turned back into a raw gradient, multiplied by the L-BFGS inverse-Hessian
    approximation and scaled by ``-schedule(round)`` before it is committed.
    """

    def __init__(
        self,
        history_size: int,
        schedule: Schedule,
        batch_size: int,
        rounds: int,
        l2: float = 0.0,
        *,
        on_round: RoundCallback | None = None,
        on_batch: BatchCallback | None = None,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        super().__init__(
            schedule,
            batch_size,
            rounds,
            l2,
            on_round=on_round,
            on_batch=on_batch,
            callbacks=callbacks,
        )
        self.history = LBFGSHistory(history_size)
        self._weights_last: Array | None = None
        self._update_last: Array | None = None

    @property
    def history_size(self) -> int:
        return self.history.size

    def train(
        self,
        network: Network,
        inputs: Sequence[Array],
        targets: Sequence[Array],
    ) -> TrainResult:
        self.history.clear()
        self._weights_last = None
        self._update_last = None
        return super().train(network, inputs, targets)

    def _loop_step(self, round_index: int) -> float:
        return 1.0

    def _correct(self, network: Network, update: GradientPack, round_index: int) -> GradientPack:
        update_current = -packs.flatten(update)
        weights_current = packs.flatten(network.get_weights())

        if self._weights_last is not None and self._update_last is not None:
            self.history.push(
                weights_current - self._weights_last,
                update_current - self._update_last,
            )

        direction = self.history.apply(update_current)
        corrected = packs.unflatten(-float(self.schedule(round_index)) * direction, update)

        self.history.trim()
        self._update_last = update_current
        self._weights_last = weights_current
        return corrected


__all__ = ["LBFGSHistory", "LBFGSTrainer", "RHO_EPS"]
