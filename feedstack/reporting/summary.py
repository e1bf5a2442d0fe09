"""Deterministic summaries of the per-round JSONL metric files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Union

import numpy as np

PathLike = Union[str, Path]

# Bookkeeping fields of a round record, never summarised.
_RECORD_KEYS = {"round", "split", "seed", "sha"}


def compute_auc(points: Sequence[float]) -> float:
    """Trapezoidal area under ``points``, one unit of width per round."""

    if len(points) < 2:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    return float(np.sum((y[1:] + y[:-1]) / 2.0))


def read_records(path: PathLike) -> List[Mapping[str, object]]:
    path = Path(path)
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def _metric_series(records: Iterable[Mapping[str, object]]) -> Dict[str, List[tuple]]:
    series: Dict[str, List[tuple]] = {}
    for position, record in enumerate(records):
        round_index = int(record.get("round", position))
        for key, value in record.items():
            if key in _RECORD_KEYS or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                series.setdefault(key, []).append((round_index, float(value)))
    return series


def summarise(records: Sequence[Mapping[str, object]], tail: int = 32) -> Mapping[str, object]:
    """Min/max/mean/last, the round of the minimum and the tail AUC per metric.

    Rounds whose value was not finite (written as ``null``) are skipped.
    """

    tail_window = min(tail, len(records))
    metrics: Dict[str, Mapping[str, float]] = {}
    for name, points in sorted(_metric_series(records).items()):
        rounds = np.array([r for r, _ in points])
        values = np.array([v for _, v in points])
        best = int(np.argmin(values))
        metrics[name] = {
            "min": float(values[best]),
            "max": float(np.max(values)),
            "mean": float(np.mean(values)),
            "last": float(values[-1]),
            "best_round": int(rounds[best]),
            "tail_auc": compute_auc(values[-tail_window:].tolist()) if tail_window else 0.0,
        }
    return {"records": len(records), "tail_window": tail_window, "metrics": metrics}


def write_summary(
    metrics_jsonl: Mapping[str, PathLike],
    out_summary_json: PathLike,
    *,
    tail: int = 32,
) -> str:
    """Summarise one JSONL file per split into ``out_summary_json``."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    splits = {
        split: summarise(read_records(path), tail)
        for split, path in sorted(metrics_jsonl.items())
    }
    out_path.write_text(json.dumps({"version": 2, "splits": splits}, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["compute_auc", "read_records", "summarise", "write_summary"]
