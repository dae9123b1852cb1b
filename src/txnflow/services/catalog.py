"""CatalogService: applicable templates across both template stores.

A template applies to a transaction when:

- its type tag equals the transaction type (case-insensitive, ``seller``
  and ``listing`` name the same side) or is a wildcard (``both``/``general``),
- its tier scope is unset or equals the transaction's service tier,
- it is active.

Legacy and normalized results are merged by id; on collision the
normalized entry wins.
"""

from __future__ import annotations

import structlog
from sqlalchemy.exc import SQLAlchemyError

from txnflow.domain.templates import NormalizedTemplate, normalize_template
from txnflow.services import errors
from txnflow.services.base import BaseService
from txnflow.services.contracts import TemplateListResultData, dump_validated
from txnflow.services.result import ServiceResult, failure
from txnflow.services.telemetry import annotate_span, trace_span, traced

log = structlog.get_logger(__name__)


class CatalogService(BaseService):
    """Lists templates applicable to a transaction type and service tier."""

    @traced
    def list_applicable(
        self,
        transaction_type: str,
        service_tier: str | None = None,
    ) -> ServiceResult:
        """List applicable templates with their task counts.

        Args:
            transaction_type: The transaction's type tag (``buyer``, ``seller``, ...).
            service_tier: The transaction's tier, or None to match only
                templates without a tier scope.
        """
        op = "list_templates"
        if not transaction_type or not transaction_type.strip():
            return failure(op, errors.INVALID_FILTER, "Transaction type is required")

        wildcards = self._settings.catalog.wildcard_types
        try:
            with trace_span("read_stores"):
                legacy = self._store.legacy_templates_by_filter(
                    transaction_type, service_tier, wildcards=wildcards
                )
                workflow = self._store.workflow_templates_by_filter(
                    transaction_type, service_tier, wildcards=wildcards
                )
                annotate_span(legacy=len(legacy), workflow=len(workflow))
        except SQLAlchemyError as exc:
            log.warning("catalog.read_failed", error=str(exc))
            return failure(op, errors.CATALOG_UNAVAILABLE, errors.CATALOG_UNAVAILABLE_MESSAGE)

        merged: dict[str, NormalizedTemplate] = {}
        warnings: list[str] = []
        for raw in legacy:
            merged[raw.id] = normalize_template(raw)
        for raw in workflow:
            if raw.id in merged:
                warnings.append(f"Template id {raw.id} exists in both stores; using workflow")
            merged[raw.id] = normalize_template(raw)

        ordered = sorted(merged.values(), key=lambda t: (t.name.lower(), t.id))
        items = [
            {
                "id": t.id,
                "name": t.name,
                "variant": t.variant.value,
                "type_tag": t.type_tag,
                "service_tier": t.service_tier,
                "description": t.description,
                "task_count": t.task_count,
            }
            for t in ordered
        ]
        data = dump_validated(
            TemplateListResultData,
            {
                "transaction_type": transaction_type,
                "service_tier": service_tier,
                "count": len(items),
                "items": items,
            },
        )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)
