"""txnflow command line: global flags, settings construction, subcommands."""

from __future__ import annotations

from pathlib import Path

import click

from txnflow import __version__
from txnflow.commands import register_commands
from txnflow.commands._base import TxnGroup
from txnflow.commands._context import AppContext
from txnflow.config.settings import TxnSettings

_FILE = click.Path(dir_okay=False, path_type=Path)

_CLI_EXAMPLES = """\
  txnflow load fixtures.yaml
  txnflow template list --type buyer --tier buyer_elite
  txnflow template apply txn-1001 wf-buyer-core
  txnflow --json template history txn-1001
  txnflow --db /tmp/scratch.db -v template apply txn-1001 legacy-buyer"""


@click.group(cls=TxnGroup, invoke_without_command=True, examples=_CLI_EXAMPLES)
@click.version_option(version=__version__, prog_name="txnflow")
@click.option("--json", "json_output", is_flag=True, help="Print results as JSON.")
@click.option("-q", "--quiet", is_flag=True, help="Print only ids (or OK/ERROR lines).")
@click.option("-v", "--verbose", is_flag=True, help="Debug logs and per-stage timings.")
@click.option("--log-json", is_flag=True, help="Write logs to stderr as JSON lines.")
@click.option("-c", "--config", "config_path", type=_FILE, default=None, help="Config file.")
@click.option("--db", "db_path", type=_FILE, default=None, help="SQLite database file.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: Path | None,
    db_path: Path | None,
) -> None:
    """Apply real-estate task templates to transactions."""
    if json_output and quiet:
        raise click.UsageError("--json and --quiet are mutually exclusive")

    ctx.obj = AppContext(
        TxnSettings.from_cli(
            config_path=config_path,
            json_output=json_output,
            quiet=quiet,
            verbose=verbose,
            log_json=log_json,
            db_path=db_path,
        )
    )
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
