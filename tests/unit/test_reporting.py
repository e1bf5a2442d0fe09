from __future__ import annotations

import csv
import json

import numpy as np
import pytest

from feedstack.core.layers import FullyConnected
from feedstack.core.network import Network
from feedstack.reporting import CsvSink, JsonlSink, PlotAdapter, write_manifest
from feedstack.reporting.summary import compute_auc, summarise, write_summary
from feedstack.training.metrics import compute_metric, compute_metrics, evaluate


def test_jsonl_sink_writes_one_record_per_round(tmp_path):
    sink = JsonlSink(tmp_path / "m.jsonl", split="test", seed=3, sha="abc")
    sink.on_round(0, {"loss": 1.5})
    sink(1, {"loss": 1.0, "mse": 2.0, "flag": True})
    records = [json.loads(line) for line in sink.path.read_text().splitlines()]
    assert [r["round"] for r in records] == [0, 1]
    assert records[1] == {"round": 1, "split": "test", "seed": 3, "sha": "abc", "loss": 1.0, "mse": 2.0}
    assert sink.rows_written == 2


def test_jsonl_sink_stores_non_finite_values_as_null(tmp_path):
    sink = JsonlSink(tmp_path / "m.jsonl", sha="abc")
    sink.on_round(0, {"loss": float("nan"), "mae": float("inf")})
    record = json.loads(sink.path.read_text())
    assert record["loss"] is None
    assert record["mae"] is None


def test_csv_sink_fixes_columns_on_first_round(tmp_path):
    sink = CsvSink(tmp_path / "m.csv", split="train")
    sink.on_round(0, {"loss": 0.5, "mae": 0.2})
    sink.on_round(1, {"loss": 0.25, "r2": 0.9})
    with sink.path.open() as handle:
        rows = list(csv.DictReader(handle))
    assert list(rows[0]) == ["round", "split", "loss", "mae"]
    assert rows[1] == {"round": "1", "split": "train", "loss": "0.25", "mae": ""}


def test_sinks_truncate_existing_files(tmp_path):
    path = tmp_path / "m.jsonl"
    path.write_text('{"round": 99}\n')
    JsonlSink(path, sha="abc")
    assert path.read_text() == ""


def test_summarise_tracks_best_round_and_skips_nulls():
    records = [
        {"round": 0, "split": "train", "loss": 1.0},
        {"round": 1, "split": "train", "loss": 0.25},
        {"round": 2, "split": "train", "loss": None},
        {"round": 3, "split": "train", "loss": 0.5},
    ]
    summary = summarise(records, tail=2)
    loss = summary["metrics"]["loss"]
    assert summary["records"] == 4
    assert loss["best_round"] == 1
    assert loss["min"] == pytest.approx(0.25)
    assert loss["last"] == pytest.approx(0.5)
    assert loss["tail_auc"] == pytest.approx((0.25 + 0.5) / 2)


def test_write_summary_is_deterministic_per_split(tmp_path):
    train = tmp_path / "train.jsonl"
    lines = [{"round": i, "seed": 0, "split": "train", "loss": 1.0 / (i + 1)} for i in range(5)]
    train.write_text("\n".join(json.dumps(line) for line in lines) + "\n")
    sources = {"train": train, "test": tmp_path / "missing.jsonl"}

    write_summary(sources, tmp_path / "a.json", tail=3)
    write_summary(sources, tmp_path / "b.json", tail=3)
    assert (tmp_path / "a.json").read_text() == (tmp_path / "b.json").read_text()

    summary = json.loads((tmp_path / "a.json").read_text())
    assert summary["splits"]["test"]["records"] == 0
    train_summary = summary["splits"]["train"]
    assert train_summary["tail_window"] == 3
    assert set(train_summary["metrics"]) == {"loss"}
    assert train_summary["metrics"]["loss"]["max"] == pytest.approx(1.0)


def test_compute_auc():
    assert compute_auc([1.0]) == 0.0
    assert compute_auc([0.0, 1.0, 2.0]) == pytest.approx(2.0)


def test_manifest_records_provenance(tmp_path):
    config = {"train": {"seed": 1}}
    path = write_manifest(
        tmp_path / "manifest.json",
        config=config,
        dataset_provenance={"type": "xor"},
        model={"layer_dims": [2, 4, 1]},
    )
    manifest = json.loads(open(path).read())
    assert manifest["dataset"] == {"type": "xor"}
    assert manifest["model"]["layer_dims"] == [2, 4, 1]
    assert manifest["environment"]["numpy"] == np.__version__
    assert len(manifest["config_hash"]) == 12
    assert "git_sha" in manifest


def test_plot_adapter_is_inert_when_disabled(tmp_path):
    adapter = PlotAdapter(tmp_path / "plots", enable_plots=False)
    adapter.track("train")(0, {"loss": 1.0})
    assert adapter.close() is None
    assert not (tmp_path / "plots").exists()


def test_plot_adapter_writes_one_curve_per_split(tmp_path):
    pytest.importorskip("matplotlib")
    adapter = PlotAdapter(tmp_path, enable_plots=True)
    train, test = adapter.track("train"), adapter.track("test")
    for idx, loss in enumerate([1.0, 0.5, 0.25]):
        train(idx, {"loss": loss})
        test(idx, {"loss": loss * 1.1})
    out = adapter.close()
    assert out == tmp_path / "loss.png"
    assert out.exists()


def test_metrics():
    preds = np.array([[1.0], [0.0], [0.5]])
    targs = np.array([[1.0], [1.0], [0.5]])
    assert compute_metric("mse", preds, targs).value == pytest.approx(1.0 / 3.0)
    assert compute_metric("MAE", preds, targs).value == pytest.approx(1.0 / 3.0)
    assert compute_metric("accuracy", preds, targs).value == pytest.approx(2.0 / 3.0)
    assert compute_metrics(["rmse"], preds, preds) == {"rmse": 0.0}
    with pytest.raises(KeyError):
        compute_metric("auc", preds, targs)


def test_evaluate_reports_mean_loss():
    layer = FullyConnected(1, 1, activation="identity", rng=np.random.default_rng(0))
    layer.weights[:] = [[0.0, 1.0]]
    net = Network([layer])
    inputs = np.array([[1.0], [2.0]])
    targets = np.array([[0.0], [0.0]])
    metrics = evaluate(net, inputs, targets, ["mae"])
    assert metrics["loss"] == pytest.approx((0.5 + 2.0) / 2)
    assert metrics["mae"] == pytest.approx(1.5)
    with pytest.raises(ValueError):
        evaluate(net, [], [])
