"""Loss curves for a run, rendered headless with matplotlib when enabled."""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Tuple


class PlotAdapter:
    """Collects one loss curve per split and draws them into ``loss.png``.

    ``track(split)`` returns a ``(round_index, metrics)`` callback suitable
    for the pipeline's split loggers. Nothing is recorded or imported unless
    ``enable_plots`` is set.
    """

    filename = "loss.png"

    def __init__(self, run_dir: str | Path, enable_plots: bool = False, metric: str = "loss"):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self.metric = metric
        self._curves: Dict[str, List[Tuple[int, float]]] = {}

    def track(self, split: str) -> Callable[[int, Mapping[str, float]], None]:
        return partial(self.record, split)

    def record(self, split: str, round_index: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        value = metrics.get(self.metric)
        if value is None:
            return
        self._curves.setdefault(split, []).append((int(round_index), float(value)))

    def close(self) -> Path | None:
        """Write the figure; returns its path, or ``None`` when nothing was drawn."""

        if not self.enable_plots or not self._curves:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        self.run_dir.mkdir(parents=True, exist_ok=True)
        fig, ax = plt.subplots()
        positive = True
        for split, points in sorted(self._curves.items()):
            rounds, values = zip(*points)
            positive = positive and min(values) > 0.0
            ax.plot(rounds, values, label=split)
        if positive:
            ax.set_yscale("log")
        ax.set_xlabel("Round")
        ax.set_ylabel(self.metric)
        ax.legend()
        out = self.run_dir / self.filename
        fig.savefig(out)
        plt.close(fig)
        return out


__all__ = ["PlotAdapter"]
