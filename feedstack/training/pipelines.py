"""Pipeline assembly: config mapping -> dataset, network, trainer, reports."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import numpy as np

from .. import data as data_registry
from ..core.layers import Dropout, FullyConnected, Layer
from ..core.network import Network
from ..core.types import RunResult
from ..data import Dataset
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .lbfgs import LBFGSTrainer
from .metrics import DEFAULT_METRICS, evaluate
from .schedules import build_schedule
from .trainer import BatchTrainer

_PRESETS: Dict[str, Mapping[str, object]] = {
    "xor": {
        "data": {"name": "xor", "options": {}, "test_fraction": 0.0},
        "model": {
            "layers": [
                {"type": "dense", "in": 2, "out": 4, "activation": "tanh"},
                {"type": "dense", "in": 4, "out": 1, "activation": "identity"},
            ],
            "loss": "mse",
            "seed": 0,
        },
        "train": {
            "method": "batch",
            "schedule": {"name": "constant", "factor": 0.1},
            "batch_size": 4,
            "rounds": 1000,
            "seed": 0,
            "run_dir": "runs/xor",
            "enable_plots": False,
        },
    },
    "sine": {
        "data": {"name": "sine", "options": {"n_points": 400}, "test_fraction": 0.05, "seed": 1},
        "model": {
            "layers": [
                {"type": "dense", "in": 1, "out": 30, "activation": "tanh"},
                {"type": "dense", "in": 30, "out": 30, "activation": "tanh"},
                {"type": "dense", "in": 30, "out": 1, "activation": "tanh"},
            ],
            "loss": "mse",
            "seed": 1,
        },
        "train": {
            "method": "batch",
            "schedule": {"name": "exponential", "factor": 0.5, "base": 0.95},
            "batch_size": 1,
            "rounds": 20,
            "seed": 1,
            "shuffle": True,
            "run_dir": "runs/sine",
            "enable_plots": False,
        },
    },
    "abs-diff-lbfgs": {
        "data": {
            "name": "abs_diff",
            "options": {"n_points": 1000, "seed": 2},
            "test_fraction": 0.5,
            "seed": 2,
        },
        "model": {
            "layers": [
                {"type": "dense", "in": 2, "out": 8, "activation": "tanh"},
                {"type": "dense", "in": 8, "out": 1, "activation": "tanh"},
            ],
            "loss": "mse",
            "seed": 2,
        },
        "train": {
            "method": "lbfgs",
            "history_size": 30,
            "schedule": {"name": "exponential", "factor": 0.7, "base": 0.95},
            "batch_size": 100,
            "rounds": 5,
            "l2": 0.2,
            "seed": 2,
            "shuffle": True,
            "run_dir": "runs/abs-diff-lbfgs",
            "enable_plots": False,
        },
    },
    "dropout-poly": {
        "data": {
            "name": "poly10",
            "options": {"n_points": 2000, "seed": 3},
            "test_fraction": 0.05,
            "seed": 3,
        },
        "model": {
            "layers": [
                {"type": "dropout", "size": 10, "p": 0.2},
                {"type": "dense", "in": 10, "out": 30, "activation": "tanh"},
                {"type": "dense", "in": 30, "out": 1, "activation": "tanh"},
            ],
            "loss": "mse",
            "seed": 3,
        },
        "train": {
            "method": "batch",
            "schedule": {"name": "exponential", "factor": 0.5, "base": 0.95},
            "batch_size": 1,
            "rounds": 5,
            "seed": 3,
            "run_dir": "runs/dropout-poly",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None

_REQUIRED_SECTIONS = {"data", "model", "train"}


def read_config_file(path: str | Path) -> Mapping[str, object]:
    """Decode a JSON or YAML config file into a mapping."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml
        except ImportError as exc:  # pragma: no cover - declared dependency
            raise RuntimeError("PyYAML is required to load YAML config files") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = read_config_file(file)
                missing = _REQUIRED_SECTIONS - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise KeyError(f"Preset {file.name} is missing required sections: {missing_str}")
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    if name not in _PRESETS:
        available = ", ".join(sorted(presets()))
        raise KeyError(f"Unknown preset {name!r}. Available presets: {available}")
    return deepcopy(_PRESETS[name])


# ----------------------------------------------------------------------
# Builders


def build_layers(layer_cfgs: Sequence[Mapping[str, object]], seed: int) -> List[Layer]:
    """Instantiate layers; dense weights share one generator, each dropout owns one."""

    if not layer_cfgs:
        raise ValueError("Model config needs at least one layer")
    init_rng = np.random.default_rng(seed)
    layers: List[Layer] = []
    for idx, cfg in enumerate(layer_cfgs):
        kind = str(cfg.get("type", "dense"))
        if kind in {"dense", "fully_connected"}:
            layers.append(
                FullyConnected(
                    int(cfg["in"]),
                    int(cfg["out"]),
                    activation=str(cfg.get("activation", "tanh")),
                    rng=init_rng,
                )
            )
        elif kind == "dropout":
            layers.append(
                Dropout(
                    int(cfg["size"]),
                    float(cfg.get("p", 0.5)),
                    rng=np.random.default_rng(seed + 1 + idx),
                    value=float(cfg.get("value", 0.0)),
                )
            )
        else:
            raise ValueError(f"Unknown layer type: {kind}")
    return layers


def build_network(model_cfg: Mapping[str, object]) -> Network:
    layers = build_layers(model_cfg.get("layers", []), int(model_cfg.get("seed", 0)))
    return Network(layers, loss=str(model_cfg.get("loss", "mse")))


def build_trainer(train_cfg: Mapping[str, object], callbacks: Sequence[object] = ()) -> BatchTrainer:
    method = str(train_cfg.get("method", "batch")).lower()
    schedule = build_schedule(train_cfg.get("schedule", {"name": "constant", "factor": 0.1}))
    batch_size = int(train_cfg.get("batch_size", 1))
    rounds = int(train_cfg.get("rounds", 1))
    l2 = float(train_cfg.get("l2", 0.0))
    if method in {"batch", "sgd"}:
        return BatchTrainer(schedule, batch_size, rounds, l2, callbacks=callbacks)
    if method == "lbfgs":
        history_size = int(train_cfg.get("history_size", 10))
        return LBFGSTrainer(history_size, schedule, batch_size, rounds, l2, callbacks=callbacks)
    raise ValueError(f"Unknown training method: {method}")


class _RoundReporter:
    """Evaluates the network after every round and fans metrics out to sinks."""

    def __init__(
        self,
        network: Network,
        train: Dataset,
        test: Dataset | None,
        metric_names: Sequence[str],
        split_loggers: Mapping[str, Sequence[object]],
        shuffle_rng: np.random.Generator | None = None,
    ) -> None:
        self.network = network
        self.train = train
        self.test = test
        self.metric_names = list(metric_names)
        self.split_loggers = split_loggers
        self.shuffle_rng = shuffle_rng
        self.last: Dict[str, Mapping[str, float]] = {}

    def on_round(self, round_index: int) -> None:
        splits = [("train", self.train)]
        if self.test is not None and len(self.test):
            splits.append(("test", self.test))
        for split, dataset in splits:
            metrics = evaluate(self.network, dataset.inputs, dataset.targets, self.metric_names)
            self.last[split] = dict(metrics)
            for callback in self.split_loggers.get(split, []):
                if hasattr(callback, "on_round"):
                    callback.on_round(round_index, metrics)
                elif callable(callback):
                    callback(round_index, metrics)
        if self.shuffle_rng is not None:
            self.train.shuffle(self.shuffle_rng)


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    seed = int(train_cfg.get("seed", 0))
    dataset = data_registry.get(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    split_rng = np.random.default_rng(int(data_cfg.get("seed", seed)))
    train_set, test_set = dataset.split(float(data_cfg.get("test_fraction", 0.0)), split_rng)

    network = build_network(model_cfg)
    if network.size_in() != train_set.d_in:
        raise ValueError(f"Model expects {network.size_in()} inputs but dataset has {train_set.d_in}")
    if network.size_out() != train_set.d_out:
        raise ValueError(f"Model produces {network.size_out()} outputs but dataset has {train_set.d_out}")

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    _print_startup_summary(
        dataset_name=dataset.name,
        samples=(len(train_set), len(test_set)),
        network=network,
        method=str(train_cfg.get("method", "batch")),
    )

    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    train_csv = CsvSink(run_dir / "metrics_train.csv", split="train")
    test_jsonl = JsonlSink(run_dir / "metrics_test.jsonl", split="test", seed=seed)
    test_csv = CsvSink(run_dir / "metrics_test.csv", split="test")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    metric_names = train_cfg.get("metrics", list(DEFAULT_METRICS))
    if isinstance(metric_names, str):
        metric_names = [m.strip() for m in metric_names.split(",") if m.strip()]
    shuffle_rng = np.random.default_rng(seed) if train_cfg.get("shuffle", False) else None
    reporter = _RoundReporter(
        network,
        train_set,
        test_set,
        metric_names,
        split_loggers={
            "train": [train_jsonl, train_csv, plots.track("train")],
            "test": [test_jsonl, test_csv, plots.track("test")],
        },
        shuffle_rng=shuffle_rng,
    )

    trainer = build_trainer(train_cfg, callbacks=[reporter])
    result = trainer.train(network, train_set.inputs, train_set.targets)
    plots.close()

    manifest = write_manifest(
        run_dir / "manifest.json",
        config=json.loads(json.dumps(config)),
        dataset_provenance=dataset.provenance,
        model={
            "layer_dims": network.describe().layer_dims,
            "parameters": network.parameter_count(),
        },
    )
    summary_tail = int(train_cfg.get("summary_tail", 32))
    summary_path = write_summary(
        {"train": train_jsonl.path, "test": test_jsonl.path},
        run_dir / "summary.json",
        tail=summary_tail,
    )
    (run_dir / "config.json").write_text(json.dumps(config, indent=2))

    return RunResult(
        rounds=result.rounds,
        commits=result.commits,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        summary_path=str(summary_path),
        final_metrics=dict(reporter.last),
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    samples: tuple[int, int],
    network: Network,
    method: str,
) -> None:
    description = network.describe()
    layers = ", ".join(f"{layer.kind}({layer.size_in}->{layer.size_out})" for layer in description.layers)
    print("=== feedstack run ===")
    print(f"Dataset       : {dataset_name} (train={samples[0]}, test={samples[1]})")
    print(f"Layers        : {layers}")
    print(f"Loss          : {description.loss}")
    print(f"Trainer       : {method}")
    print(f"Parameters    : {network.parameter_count()}")
    print("=====================")


__all__ = [
    "build_layers",
    "build_network",
    "build_trainer",
    "load_preset",
    "presets",
    "read_config_file",
    "run_pipeline",
]
