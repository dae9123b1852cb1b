"""FixtureService: load transactions and templates from a YAML file.

Fixture files stand in for the authoring tools that own templates. The
expected shape::

    transactions:
      - id: txn-1
        transaction_type: buyer
        service_tier: elite
        contract_date: 2024-03-01
    legacy_templates:
      - id: legacy-buyer
        name: Buyer checklist
        transaction_type: buyer
        tasks:
          - {title: Review contract, daysFromAnchor: -3}
    workflow_templates:
      - id: wf-listing
        name: Listing launch
        type: listing
        template_tasks:
          - subject: Order photos
            due_date_rule: {type: days_from_event, days: 2, event: ratified_date}

Every record is upserted by id inside one store transaction.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from sqlalchemy.exc import SQLAlchemyError

from txnflow.domain.templates import LegacyTemplate, WorkflowTemplate
from txnflow.domain.transactions import Transaction
from txnflow.services import errors
from txnflow.services.base import BaseService
from txnflow.services.contracts import FixtureLoadResultData, dump_validated
from txnflow.services.result import ServiceResult, failure
from txnflow.services.telemetry import annotate_span, trace_span, traced

log = structlog.get_logger(__name__)


class FixtureFile(BaseModel):
    """Top-level layout of a fixture file."""

    model_config = {"extra": "forbid"}

    transactions: list[Transaction] = Field(default_factory=list)
    legacy_templates: list[LegacyTemplate] = Field(default_factory=list)
    workflow_templates: list[WorkflowTemplate] = Field(default_factory=list)


class FixtureService(BaseService):
    """Seeds the store from fixture files."""

    @traced
    def load(self, path: Path) -> ServiceResult:
        op = "load_fixtures"
        try:
            with trace_span("parse"):
                raw = YAML(typ="safe").load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeError, YAMLError) as exc:
            return failure(
                op,
                errors.INVALID_FIXTURE,
                f"Cannot read fixture file: {exc}",
                path=str(path),
            )

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            return failure(
                op,
                errors.INVALID_FIXTURE,
                "Fixture file must contain a mapping at the top level",
                path=str(path),
            )

        try:
            fixture = FixtureFile.model_validate(raw)
        except ValidationError as exc:
            return failure(
                op,
                errors.INVALID_FIXTURE,
                f"Invalid fixture file: {exc.error_count()} validation error(s)",
                path=str(path),
                errors=[
                    {"loc": ".".join(str(p) for p in e["loc"]), "msg": e["msg"]}
                    for e in exc.errors()
                ],
            )

        try:
            with trace_span("upsert"), self._store.transaction() as txn:
                for transaction in fixture.transactions:
                    txn.put_transaction(transaction)
                for legacy in fixture.legacy_templates:
                    txn.put_legacy_template(legacy)
                for workflow in fixture.workflow_templates:
                    txn.put_workflow_template(workflow)
                annotate_span(
                    transactions=len(fixture.transactions),
                    templates=len(fixture.legacy_templates) + len(fixture.workflow_templates),
                )
        except SQLAlchemyError as exc:
            log.error("fixtures.load_failed", path=str(path), error=str(exc))
            return failure(
                op,
                errors.PERSISTENCE_FAILURE,
                "Failed to load fixtures; nothing was written",
                path=str(path),
            )

        warnings = [
            f"Template {t.id} has no valid tasks"
            for t in [*fixture.legacy_templates, *fixture.workflow_templates]
            if not t.task_definitions()
        ]
        log.info(
            "fixtures.loaded",
            path=str(path),
            transactions=len(fixture.transactions),
            legacy_templates=len(fixture.legacy_templates),
            workflow_templates=len(fixture.workflow_templates),
        )
        data = dump_validated(
            FixtureLoadResultData,
            {
                "path": str(path),
                "transactions": len(fixture.transactions),
                "legacy_templates": len(fixture.legacy_templates),
                "workflow_templates": len(fixture.workflow_templates),
            },
        )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)
