"""Command group: list, preview, apply, and audit task templates."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from txnflow.commands._base import TxnGroup, variant_option
from txnflow.domain.types import TemplateVariant
from txnflow.services.application import ApplicationService
from txnflow.services.catalog import CatalogService

if TYPE_CHECKING:
    from txnflow.commands._context import AppContext

_TEMPLATE_EXAMPLES = """\
  txnflow template list --type buyer --tier buyer_elite
  txnflow template preview wf-buyer-core txn-1001
  txnflow template apply txn-1001 wf-buyer-core
  txnflow template apply txn-1001 legacy-buyer --variant legacy --by coordinator
  txnflow template history txn-1001"""


@click.group(cls=TxnGroup, examples=_TEMPLATE_EXAMPLES)
@click.pass_obj
def template(app: AppContext) -> None:
    """Work with task templates and their application to transactions."""


@template.command(
    name="list",
    examples="""\
  txnflow template list --type buyer
  txnflow template list --type seller --tier listing_premium
  txnflow --json template list --type buyer --tier buyer_core""",
)
@click.option("--type", "transaction_type", required=True, help="Transaction type tag.")
@click.option("--tier", "service_tier", default=None, help="Transaction service tier.")
@click.pass_obj
def list_templates(app: AppContext, transaction_type: str, service_tier: str | None) -> None:
    """List templates applicable to a transaction type and tier."""
    app.emit(CatalogService(app.store).list_applicable(transaction_type, service_tier))


@template.command(
    examples="""\
  txnflow template preview wf-buyer-core txn-1001
  txnflow template preview legacy-buyer txn-1001 --variant legacy"""
)
@click.argument("template_id")
@click.argument("transaction_id")
@variant_option
@click.pass_obj
def preview(
    app: AppContext,
    template_id: str,
    transaction_id: str,
    variant: TemplateVariant | None,
) -> None:
    """Show the tasks a template would create, without saving them."""
    svc = ApplicationService(app.store)
    app.emit(svc.preview_tasks(template_id, transaction_id, variant=variant))


@template.command(
    examples="""\
  txnflow template apply txn-1001 wf-buyer-core
  txnflow template apply txn-1001 legacy-buyer --variant legacy
  txnflow template apply txn-1001 wf-buyer-core --allow-reapply --by jdoe
  txnflow -q template apply txn-1001 wf-buyer-core"""
)
@click.argument("transaction_id")
@click.argument("template_id")
@variant_option
@click.option(
    "--allow-reapply/--no-allow-reapply",
    default=None,
    help="Override the configured re-apply policy.",
)
@click.option("--by", "applied_by", default=None, help="Actor recorded on the application.")
@click.pass_obj
def apply(
    app: AppContext,
    transaction_id: str,
    template_id: str,
    variant: TemplateVariant | None,
    allow_reapply: bool | None,
    applied_by: str | None,
) -> None:
    """Apply a template to a transaction, creating its tasks."""
    svc = ApplicationService(app.store)
    result = svc.apply(
        transaction_id,
        template_id,
        variant=variant,
        applied_by=applied_by,
        allow_reapply=allow_reapply,
    )
    app.emit(result)


@template.command(
    examples="""\
  txnflow template history txn-1001
  txnflow --json template history txn-1001"""
)
@click.argument("transaction_id")
@click.pass_obj
def history(app: AppContext, transaction_id: str) -> None:
    """List templates applied to a transaction, newest first."""
    app.emit(ApplicationService(app.store).history(transaction_id))
