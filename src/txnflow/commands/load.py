"""Command: seed the store from a YAML fixture file."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from txnflow.commands._base import TxnCommand

if TYPE_CHECKING:
    from txnflow.commands._context import AppContext


@click.command(
    cls=TxnCommand,
    examples="""\
  txnflow load fixtures.yaml
  txnflow --db /tmp/demo.db load fixtures.yaml""",
)
@click.argument("fixture", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_obj
def load(app: AppContext, fixture: Path) -> None:
    """Load transactions and templates from a YAML fixture file."""
    from txnflow.services.fixtures import FixtureService

    app.emit(FixtureService(app.store).load(fixture))
