"""Locate and read ``txnflow.toml``.

Lookup order: the ``TXNFLOW_CONFIG`` env var, then the nearest
``txnflow.toml`` in the start directory or any of its ancestors. The
directory holding the file is the project root that relative database
paths resolve against.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

import click

from txnflow.config.models import TxnConfig

CONFIG_FILENAME = "txnflow.toml"
CONFIG_ENV_VAR = "TXNFLOW_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Return the config file governing *start* (default: cwd), or None.

    A ``TXNFLOW_CONFIG`` value pointing at a missing file disables
    discovery rather than falling back to the walk-up.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        path = Path(override)
        return path if path.is_file() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def read_toml(path: Path) -> dict[str, Any]:
    """Parse *path*, reporting syntax errors as a CLI usage failure."""
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise click.ClickException(msg) from exc


def load_config(path: Path | None = None, cwd: Path | None = None) -> TxnConfig:
    """Validate the sections of *path* (discovered from *cwd* when None).

    No file at all yields the all-defaults :class:`TxnConfig`.
    """
    if path is None:
        path = find_config(cwd)
    if path is None:
        return TxnConfig()
    return TxnConfig.model_validate(read_toml(path))
