"""structlog setup for the txnflow CLI.

All log output goes to stderr so stdout stays reserved for command results
(``--json`` output in particular must remain parseable). Two renderers:

- console (default): key/value lines, colored when stderr is a terminal
- JSON (``--log-json``): one object per line

stdlib loggers (the store, SQLAlchemy) are routed through the same
formatter via ``foreign_pre_chain``.
"""

from __future__ import annotations

import logging
import sys

import structlog

_OWN_LOGGER = "txnflow"
_SQL_LOGGER = "sqlalchemy.engine"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    sql_echo: bool = False,
) -> None:
    """Install the stderr handler and set logger levels.

    Args:
        verbose: txnflow loggers emit DEBUG (span timings, store reads).
            Otherwise only warnings and errors, which keeps normal CLI runs
            silent apart from the result itself.
        log_json: Render JSON lines instead of console lines.
        sql_echo: Log every SQL statement at INFO through the same handler
            (``[database] echo = true``).
    """
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger(_OWN_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.getLogger(_SQL_LOGGER).setLevel(logging.INFO if sql_echo else logging.WARNING)
