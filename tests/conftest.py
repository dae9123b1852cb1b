"""Shared pytest fixtures and test helpers for txnflow tests."""

from __future__ import annotations

from collections.abc import Generator
from datetime import date
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from txnflow.config.settings import TxnSettings
from txnflow.domain.templates import LegacyTemplate, WorkflowTemplate
from txnflow.domain.transactions import Transaction
from txnflow.infrastructure.store import Store


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Keep developer environment variables out of settings resolution."""
    monkeypatch.delenv("TXNFLOW_CONFIG", raising=False)
    monkeypatch.delenv("TXNFLOW_DB_PATH", raising=False)
    yield
    from txnflow.services.telemetry import _current_span, disable_telemetry

    disable_telemetry()
    _current_span.set(None)


@pytest.fixture
def settings(tmp_path: Path) -> TxnSettings:
    """Default settings rooted at a temp directory."""
    return TxnSettings.from_cli(root=tmp_path)


@pytest.fixture
def store(settings: TxnSettings) -> Generator[Store]:
    """Store over a fresh SQLite database in the temp directory."""
    s = Store(settings)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def make_store(tmp_path: Path) -> Generator[Any]:
    """Factory for stores with settings overrides (engine policy, wildcards)."""
    created: list[Store] = []

    def _make(**overrides: Any) -> Store:
        s = Store(TxnSettings.from_cli(root=tmp_path, **overrides))
        created.append(s)
        return s

    try:
        yield _make
    finally:
        for s in created:
            s.close()


@pytest.fixture
def _isolated_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp directory so the CLI creates an isolated database.

    Use via ``@pytest.mark.usefixtures("_isolated_root")`` on command test
    classes.
    """
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# Shared test helpers (used across test modules)
# ---------------------------------------------------------------------------


def add_transaction(
    store: Store,
    txn_id: str = "txn-1",
    transaction_type: str = "buyer",
    **kwargs: Any,
) -> Transaction:
    """Insert (or replace) a transaction row."""
    txn = Transaction(id=txn_id, transaction_type=transaction_type, **kwargs)
    with store.transaction() as t:
        t.put_transaction(txn)
    return txn


def add_legacy_template(
    store: Store,
    template_id: str,
    name: str,
    tasks: list[dict[str, Any]],
    **kwargs: Any,
) -> LegacyTemplate:
    """Insert (or replace) a legacy flat-array template."""
    kwargs.setdefault("transaction_type", "buyer")
    template = LegacyTemplate(id=template_id, name=name, tasks=tasks, **kwargs)
    with store.transaction() as t:
        t.put_legacy_template(template)
    return template


def add_workflow_template(
    store: Store,
    template_id: str,
    name: str,
    template_tasks: list[dict[str, Any]],
    **kwargs: Any,
) -> WorkflowTemplate:
    """Insert (or replace) a normalized template with its task rows."""
    kwargs.setdefault("type", "Buyer")
    template = WorkflowTemplate(
        id=template_id, name=name, template_tasks=template_tasks, **kwargs
    )
    with store.transaction() as t:
        t.put_workflow_template(template)
    return template


CONTRACT_DATE = date(2024, 3, 1)
CLOSING_DATE = date(2024, 4, 15)

FIXTURE_YAML = """\
transactions:
  - id: txn-1001
    transaction_type: buyer
    service_tier: buyer_elite
    contract_date: 2024-03-01
    closing_date: 2024-04-15
  - id: txn-2002
    transaction_type: seller
    contract_date: 2024-05-10
legacy_templates:
  - id: legacy-buyer
    name: Buyer checklist
    transaction_type: buyer
    tasks:
      - title: Review contract
        priority: high
        daysFromAnchor: -3
      - title: Schedule inspection
        daysFromAnchor: 5
workflow_templates:
  - id: wf-listing
    name: Listing launch
    type: Listing
    template_tasks:
      - subject: Order photos
        sort_order: 2
        due_date_rule: {type: days_from_event, days: 2, event: ratified_date}
      - subject: Sign listing agreement
        priority: high
        sort_order: 1
        is_agent_visible: true
  - id: wf-general
    name: General paperwork
    type: General
    template_tasks:
      - subject: Upload disclosures
        due_date_rule: {type: no_due_date}
"""
