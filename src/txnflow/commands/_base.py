"""Click base classes and shared parameters for txnflow commands.

Every command and group accepts an ``examples`` block. Passing ``--examples``
prints it (one ``$``-prefixed invocation per line) and exits without running
the command body, so examples never touch the database.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

import click

from txnflow.domain.types import TemplateVariant


def _format_examples(examples: str) -> list[str]:
    lines = [line.strip() for line in inspect.cleandoc(examples).splitlines()]
    return [f"  $ {line}" for line in lines if line]


def _examples_option(examples: str) -> click.Option:
    rendered = _format_examples(examples)

    def show(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value or ctx.resilient_parsing:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo("\n".join(rendered))
        ctx.exit(0)

    return click.Option(
        ["--examples"],
        is_flag=True,
        expose_value=False,
        is_eager=True,
        callback=show,
        help="Show usage examples and exit.",
    )


class TxnCommand(click.Command):
    """Command with an optional ``--examples`` flag."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            self.params.append(_examples_option(examples))


class TxnGroup(click.Group):
    """Group with an optional ``--examples`` flag.

    Subcommands default to :class:`TxnCommand` and are listed in the order
    they were declared rather than alphabetically, so help output follows
    the list, preview, apply, history workflow.
    """

    command_class = TxnCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            self.params.append(_examples_option(examples))

    def list_commands(self, ctx: click.Context) -> list[str]:
        return list(self.commands)


# ── Shared parameters ────────────────────────────────────────────────


def variant_option[F: Callable[..., Any]](func: F) -> F:
    """Add ``--variant`` converting to :class:`TemplateVariant` (or None)."""

    def convert(_ctx: click.Context, _param: click.Parameter, value: str | None):
        return TemplateVariant(value) if value else None

    return click.option(
        "--variant",
        type=click.Choice([v.value for v in TemplateVariant]),
        default=None,
        callback=convert,
        help="Restrict lookup to one template store (workflow or legacy).",
    )(func)
