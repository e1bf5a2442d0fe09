"""Train a feed-forward network from a preset or config file."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, Iterable, Mapping

from feedstack.core.types import RunResult
from feedstack.training import pipelines

# argparse destinations copied verbatim into the ``train`` section
_TRAIN_OVERRIDES = ("method", "rounds", "batch_size", "l2", "history_size", "run_dir")


def build_parser(preset_names: Iterable[str]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=sorted(preset_names),
        default="xor",
        help="Preset configuration to start from",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="JSON/YAML file; a full {data, model, train} config replaces the preset, "
        "anything else is merged into it",
    )
    group = parser.add_argument_group("training overrides")
    group.add_argument("--method", choices=["batch", "sgd", "lbfgs"], help="Trainer to use")
    group.add_argument("--rounds", type=int, help="Number of passes over the training set")
    group.add_argument("--batch-size", type=int, help="Samples accumulated per committed update")
    group.add_argument("--l2", type=float, help="L2 penalty on non-bias weights")
    group.add_argument("--history-size", type=int, help="L-BFGS curvature pairs to keep")
    group.add_argument("--seed", type=int, help="Seed for weight init, splits, dropout and shuffling")
    group.add_argument("--run-dir", type=Path, help="Directory receiving the run artifacts")
    group.add_argument("--enable-plots", action="store_true", help="Write loss.png to the run dir")
    parser.add_argument("--list-presets", action="store_true", help="Print preset names and exit")
    parser.add_argument("--dump-config", type=Path, help="Write the resolved config as JSON")
    return parser


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    return build_parser(pipelines.presets().keys()).parse_args(argv)


def _merge(base: Dict[str, object], override: Mapping[str, object]) -> Dict[str, object]:
    for key, value in override.items():
        current = base.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            base[key] = _merge(dict(current), value)
        else:
            base[key] = value
    return base


def resolve_config(args: argparse.Namespace) -> Dict[str, object]:
    """Preset, then config file, then individual command line overrides."""

    config: Dict[str, object] = json.loads(json.dumps(pipelines.load_preset(args.preset)))
    if args.config is not None:
        loaded = json.loads(json.dumps(pipelines.read_config_file(args.config)))
        config = loaded if {"data", "model", "train"} <= set(loaded) else _merge(config, loaded)

    train_cfg = config.setdefault("train", {})
    for key in _TRAIN_OVERRIDES:
        value = getattr(args, key)
        if value is not None:
            train_cfg[key] = str(value) if isinstance(value, Path) else value
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    if args.seed is not None:
        for section in ("data", "model", "train"):
            config.setdefault(section, {})["seed"] = int(args.seed)
    return config


def _format_result(result: RunResult) -> str:
    payload: Dict[str, object] = {
        "rounds": result.rounds,
        "commits": result.commits,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "summary": result.summary_path,
    }
    for split, metrics in sorted(result.final_metrics.items()):
        if "loss" in metrics:
            payload["final_loss" if split == "train" else f"final_{split}_loss"] = metrics["loss"]
    return json.dumps(payload, sort_keys=True)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets()):
            print(name)
        raise SystemExit(0)

    config = resolve_config(args)
    if args.dump_config is not None:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    print(_format_result(pipelines.run_pipeline(config)))


if __name__ == "__main__":
    main()
