"""Subcommand modules for txnflow.

Provides register_commands() which uses deferred imports to keep
``txnflow --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all command groups and standalone commands on the root CLI group."""
    # --- Groups ---
    from txnflow.commands.template import template

    cli.add_command(template)

    # --- Standalone commands ---
    from txnflow.commands.load import load

    cli.add_command(load)
