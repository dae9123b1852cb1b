"""ApplicationService: apply a template to a transaction.

Pipeline: LOAD TEMPLATE → NORMALIZE → LOAD TRANSACTION → MATERIALIZE →
GUARD RE-APPLY → PERSIST (tasks + record, one transaction) → RESPOND

This is the only mutating entry point of the engine. ``preview_tasks``
runs the same pipeline without persisting; ``history`` lists what has
been applied so far.

Re-application policy: with ``[engine] reapply = "reject"`` (the default)
an existing application record for the (transaction, template) pair
turns ``apply`` into an ``ALREADY_APPLIED`` failure with no writes. With
``"allow"``, or ``allow_reapply=True`` on the call, every apply creates a
fresh full task set and a new record.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError

from txnflow.domain.materialize import TaskCreatePayload, build_task_payloads
from txnflow.domain.templates import (
    LegacyTemplate,
    NormalizedTemplate,
    WorkflowTemplate,
    normalize_template,
)
from txnflow.domain.transactions import Transaction
from txnflow.domain.types import ReapplyPolicy, TemplateVariant
from txnflow.services import errors
from txnflow.services._helpers import now_iso
from txnflow.services.base import BaseService
from txnflow.services.contracts import (
    ApplyResultData,
    HistoryResultData,
    PreviewResultData,
    dump_validated,
)
from txnflow.services.result import ServiceResult, failure
from txnflow.services.telemetry import annotate_span, trace_span, traced

log = structlog.get_logger(__name__)


class ApplicationService(BaseService):
    """Materializes templates into tasks and records each application."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @traced
    def apply(
        self,
        transaction_id: str,
        template_id: str,
        *,
        variant: TemplateVariant | None = None,
        applied_by: str | None = None,
        allow_reapply: bool | None = None,
    ) -> ServiceResult:
        """Apply *template_id* to *transaction_id*.

        Args:
            transaction_id: Target transaction; re-read fresh so anchor dates
                are current.
            template_id: Template to apply. Looked up in the normalized store
                first, then the legacy store, unless *variant* pins one.
            variant: Restrict the lookup to one template store.
            applied_by: Actor recorded on the application record.
            allow_reapply: Override the configured re-apply policy for this call.
        """
        op = "apply_template"
        loaded = self._load(op, transaction_id, template_id, variant)
        if isinstance(loaded, ServiceResult):
            return loaded
        template, transaction, warnings = loaded

        payloads = self._materialize(template, transaction)
        if not payloads:
            return failure(
                op,
                errors.VALIDATION_FAILURE,
                errors.NO_VALID_TASKS_MESSAGE,
                template_id=template.id,
            )

        reapply = self._reapply_allowed(allow_reapply)
        applied_at = now_iso()
        existing: str | None = None
        record_id = ""
        task_ids: list[str] = []
        try:
            with trace_span("persist"), self._store.transaction() as txn:
                if not reapply:
                    existing = txn.find_application(transaction.id, template.id, template.variant)
                if existing is None:
                    record_id = txn.insert_application_record(
                        transaction_id=transaction.id,
                        template=template,
                        applied_at=applied_at,
                        task_count=len(payloads),
                        applied_by=applied_by,
                    )
                    task_ids = txn.insert_tasks(
                        payloads,
                        created_at=applied_at,
                        application_id=record_id,
                    )
        except SQLAlchemyError as exc:
            log.error(
                "template.apply_failed",
                transaction_id=transaction.id,
                template_id=template.id,
                error=str(exc),
            )
            return failure(
                op,
                errors.PERSISTENCE_FAILURE,
                "Failed to save tasks; nothing was applied",
                transaction_id=transaction.id,
                template_id=template.id,
            )

        if existing is not None:
            return failure(
                op,
                errors.ALREADY_APPLIED,
                f"Template '{template.name}' is already applied to transaction {transaction.id}",
                transaction_id=transaction.id,
                template_id=template.id,
                application_record_id=existing,
            )

        log.info(
            "template.applied",
            transaction_id=transaction.id,
            template_id=template.id,
            variant=template.variant.value,
            task_count=len(task_ids),
        )
        data = dump_validated(
            ApplyResultData,
            {
                "transaction_id": transaction.id,
                "template_id": template.id,
                "template_name": template.name,
                "variant": template.variant.value,
                "created_task_count": len(task_ids),
                "application_record_id": record_id,
                "task_ids": task_ids,
                "items": [
                    {"id": task_id, **p.as_preview()}
                    for task_id, p in zip(task_ids, payloads, strict=True)
                ],
            },
        )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    @traced
    def preview_tasks(
        self,
        template_id: str,
        transaction_id: str,
        *,
        variant: TemplateVariant | None = None,
    ) -> ServiceResult:
        """Materialize *template_id* against *transaction_id* without persisting."""
        op = "preview_tasks"
        loaded = self._load(op, transaction_id, template_id, variant)
        if isinstance(loaded, ServiceResult):
            return loaded
        template, transaction, warnings = loaded

        payloads = self._materialize(template, transaction)
        if not payloads:
            warnings.append(errors.NO_VALID_TASKS_MESSAGE)

        try:
            records = self._store.application_records(transaction.id)
        except SQLAlchemyError as exc:
            log.warning("preview.read_failed", error=str(exc))
            return failure(op, errors.CATALOG_UNAVAILABLE, errors.CATALOG_UNAVAILABLE_MESSAGE)

        already_applied = any(
            r["template_id"] == template.id and r["template_variant"] == template.variant.value
            for r in records
        )
        data = dump_validated(
            PreviewResultData,
            {
                "transaction_id": transaction.id,
                "template_id": template.id,
                "template_name": template.name,
                "variant": template.variant.value,
                "already_applied": already_applied,
                "count": len(payloads),
                "items": [p.as_preview() for p in payloads],
            },
        )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    @traced
    def history(self, transaction_id: str) -> ServiceResult:
        """Application records for a transaction, newest first."""
        op = "application_history"
        try:
            transaction = self._store.get_transaction(transaction_id)
            records = self._store.application_records(transaction_id) if transaction else []
        except SQLAlchemyError as exc:
            log.warning("history.read_failed", error=str(exc))
            return failure(op, errors.CATALOG_UNAVAILABLE, errors.CATALOG_UNAVAILABLE_MESSAGE)

        if transaction is None:
            return failure(
                op,
                errors.TRANSACTION_NOT_FOUND,
                f"No transaction found with ID: {transaction_id}",
                transaction_id=transaction_id,
            )

        data = dump_validated(
            HistoryResultData,
            {"transaction_id": transaction_id, "count": len(records), "items": records},
        )
        return ServiceResult(ok=True, op=op, data=data)

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def _load(
        self,
        op: str,
        transaction_id: str,
        template_id: str,
        variant: TemplateVariant | None,
    ) -> tuple[NormalizedTemplate, Transaction, list[str]] | ServiceResult:
        """Resolve the template, then re-read the transaction."""
        try:
            with trace_span("load_template"):
                raw = self._find_template(template_id, variant)
            transaction = None
            if raw is not None:
                with trace_span("load_transaction"):
                    transaction = self._store.get_transaction(transaction_id)
        except SQLAlchemyError as exc:
            log.warning("template.read_failed", template_id=template_id, error=str(exc))
            return failure(op, errors.CATALOG_UNAVAILABLE, errors.CATALOG_UNAVAILABLE_MESSAGE)

        if raw is None:
            detail: dict[str, Any] = {"template_id": template_id}
            if variant is not None:
                detail["variant"] = variant.value
            return failure(
                op,
                errors.TEMPLATE_NOT_FOUND,
                f"No template found with ID: {template_id}",
                **detail,
            )
        if transaction is None:
            return failure(
                op,
                errors.TRANSACTION_NOT_FOUND,
                f"No transaction found with ID: {transaction_id}",
                transaction_id=transaction_id,
            )

        warnings: list[str] = []
        if not raw.is_active:
            warnings.append(f"Template {raw.id} is inactive")
        return normalize_template(raw), transaction, warnings

    def _find_template(
        self,
        template_id: str,
        variant: TemplateVariant | None,
    ) -> LegacyTemplate | WorkflowTemplate | None:
        # Normalized store first, matching the catalog's collision rule.
        if variant in (None, TemplateVariant.WORKFLOW):
            found = self._store.get_workflow_template(template_id)
            if found is not None:
                return found
        if variant in (None, TemplateVariant.LEGACY):
            return self._store.get_legacy_template(template_id)
        return None

    def _materialize(
        self,
        template: NormalizedTemplate,
        transaction: Transaction,
    ) -> list[TaskCreatePayload]:
        with trace_span("materialize"):
            payloads = build_task_payloads(
                template.task_definitions,
                transaction,
                default_anchor=self._settings.engine.default_anchor,
            )
            annotate_span(tasks=len(payloads))
        return payloads

    def _reapply_allowed(self, override: bool | None) -> bool:
        if override is not None:
            return override
        return self._settings.engine.reapply is ReapplyPolicy.ALLOW
