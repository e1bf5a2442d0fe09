"""Run manifest: what a training run was built from."""

from __future__ import annotations

import hashlib
import json
import platform
import subprocess
import time
from pathlib import Path
from typing import Mapping

import numpy as np


def git_sha(cwd: str | Path | None = None) -> str:
    try:
        out = subprocess.check_output(
            ["git", "rev-parse", "HEAD"], cwd=cwd, stderr=subprocess.DEVNULL
        )
    except (OSError, subprocess.CalledProcessError):  # pragma: no cover - git may be unavailable
        return "unknown"
    return out.decode().strip()


def config_hash(config: Mapping[str, object]) -> str:
    """Return a stable 12-character hash for ``config``, independent of key order."""

    canonical = json.dumps(config, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:12]


def _environment() -> Mapping[str, str]:
    return {
        "python": platform.python_version(),
        "numpy": np.__version__,
        "platform": platform.platform(),
    }


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    model: Mapping[str, object] | None = None,
) -> str:
    """Write ``manifest.json`` next to the run's metrics and return its path.

    ``model`` carries the layer widths and parameter count of the trained
    network; ``config_hash`` lets two runs be matched without diffing configs.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "config_hash": config_hash(config),
        "dataset": dict(dataset_provenance),
        "model": dict(model or {}),
        "environment": dict(_environment()),
    }
    path.write_text(json.dumps(manifest, indent=2, sort_keys=True))
    return str(path)


__all__ = ["config_hash", "git_sha", "write_manifest"]
