"""Per-round metric sinks used by the training pipeline."""

from __future__ import annotations

import csv
import json
import math
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .artifacts import git_sha


def _numeric(metrics: Mapping[str, object]) -> Dict[str, Optional[float]]:
    """Keep numeric entries; non-finite values become ``None``.

    A diverging run (large steps, degenerate curvature) can produce ``nan``
    or ``inf`` losses, which are not valid JSON.
    """

    out: Dict[str, Optional[float]] = {}
    for key, value in metrics.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        value = float(value)
        out[key] = value if math.isfinite(value) else None
    return out


class _RoundSink:
    """Truncates ``path`` on creation; subclasses append one row per round."""

    def __init__(self, path: str | Path, split: str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.rows_written = 0

    def _write(self, round_index: int, metrics: Mapping[str, object]) -> None:
        raise NotImplementedError

    def on_round(self, round_index: int, metrics: Mapping[str, object]) -> None:
        self._write(round_index, metrics)
        self.rows_written += 1

    def __call__(self, round_index: int, metrics: Mapping[str, object]) -> None:
        self.on_round(round_index, metrics)


class JsonlSink(_RoundSink):
    """One JSON object per round, tagged with split, seed and git SHA."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__(path, split)
        self.seed = seed
        self.sha = sha or git_sha()

    def _write(self, round_index: int, metrics: Mapping[str, object]) -> None:
        record: Dict[str, object] = {
            "round": int(round_index),
            "split": self.split,
            "seed": self.seed,
            "sha": self.sha,
        }
        record.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")


class CsvSink(_RoundSink):
    """CSV rows whose columns are fixed by the first round written.

    Metrics that appear later are dropped and missing ones are left blank,
    so every row lines up with the header.
    """

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        super().__init__(path, split)
        self.fieldnames: List[str] = []

    def _write(self, round_index: int, metrics: Mapping[str, object]) -> None:
        values = _numeric(metrics)
        if not self.fieldnames:
            self.fieldnames = ["round", "split"] + sorted(values)
        row = {"round": int(round_index), "split": self.split}
        row.update({k: ("" if v is None else v) for k, v in values.items()})
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self.fieldnames, extrasaction="ignore")
            if self.rows_written == 0:
                writer.writeheader()
            writer.writerow(row)


__all__ = ["CsvSink", "JsonlSink"]
