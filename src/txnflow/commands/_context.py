"""AppContext: the object every command receives via ``@click.pass_obj``.

Built once by the root group from :class:`TxnSettings`. It configures
logging (and telemetry under ``--verbose``), opens the store on first use,
and turns a :class:`ServiceResult` into output plus an exit status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from txnflow.config.logging import configure_logging
from txnflow.output.formatters import OutputSettings, format_result
from txnflow.services.telemetry import enable_telemetry

if TYPE_CHECKING:
    from txnflow.config.settings import TxnSettings
    from txnflow.infrastructure.store import Store
    from txnflow.services.result import ServiceResult


class AppContext:
    """Per-invocation state shared by the command tree.

    ``--help``, ``--version`` and ``--examples`` exit before any command body
    runs, so they never create the database file.
    """

    def __init__(self, settings: TxnSettings) -> None:
        self.settings = settings
        self._store: Store | None = None
        self.output = OutputSettings(
            json_output=settings.json_output,
            quiet=settings.quiet,
            verbose=settings.verbose,
        )

        configure_logging(
            verbose=settings.verbose,
            log_json=settings.log_json,
            sql_echo=settings.database.echo,
        )
        if settings.verbose:
            enable_telemetry()

    @property
    def store(self) -> Store:
        if self._store is None:
            from txnflow.infrastructure.store import Store

            self._store = Store(self.settings)
            ctx = click.get_current_context(silent=True)
            if ctx is not None:
                ctx.call_on_close(self._store.close)
        return self._store

    def emit(self, result: ServiceResult) -> None:
        """Print *result*; exit 1 when it is a failure.

        Success output goes to stdout and warnings to stderr (JSON output
        already carries them). Failures go entirely to stderr.
        """
        text = format_result(result, settings=self.output)
        if not result.ok:
            click.echo(text, err=True)
            raise SystemExit(1)

        click.echo(text)
        if not self.output.json_output:
            for warning in result.warnings:
                click.echo(f"WARNING: {warning}", err=True)
