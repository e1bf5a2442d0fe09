import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_runs_preset(tmp_path, capsys):
    run_dir = tmp_path / "xor"
    main(["--preset", "xor", "--rounds", "5", "--seed", "3", "--run-dir", str(run_dir)])

    out = capsys.readouterr().out
    assert "=== feedstack run ===" in out
    payload = json.loads(out.strip().splitlines()[-1])
    assert payload["rounds"] == 5
    assert payload["commits"] == 5
    assert Path(payload["metrics"]).exists()
    assert Path(payload["manifest"]).exists()
    assert payload["final_loss"] >= 0.0

    config = json.loads((run_dir / "config.json").read_text())
    assert config["train"]["seed"] == config["model"]["seed"] == 3


def test_cli_lists_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    names = capsys.readouterr().out.split()
    assert "xor" in names
    assert "xor-signed-lbfgs" in names


def test_cli_applies_partial_config_override(tmp_path, capsys):
    override = tmp_path / "override.json"
    override.write_text(json.dumps({"train": {"rounds": 2, "batch_size": 2}}))
    dump = tmp_path / "resolved.json"

    main(
        [
            "--preset",
            "xor",
            "--config",
            str(override),
            "--run-dir",
            str(tmp_path / "run"),
            "--dump-config",
            str(dump),
        ]
    )

    resolved = json.loads(dump.read_text())
    assert resolved["train"]["rounds"] == 2
    assert resolved["train"]["schedule"] == {"name": "constant", "factor": 0.1}
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["commits"] == 4


def test_cli_rejects_unknown_preset():
    with pytest.raises(SystemExit):
        main(["--preset", "nope"])


def test_cli_switches_trainer_from_flags(tmp_path, capsys):
    dump = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "xor",
            "--method",
            "lbfgs",
            "--history-size",
            "3",
            "--batch-size",
            "2",
            "--rounds",
            "3",
            "--run-dir",
            str(tmp_path / "run"),
            "--dump-config",
            str(dump),
        ]
    )

    train_cfg = json.loads(dump.read_text())["train"]
    assert train_cfg["method"] == "lbfgs"
    assert train_cfg["history_size"] == 3
    assert train_cfg["run_dir"] == str(tmp_path / "run")
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["commits"] == 6
