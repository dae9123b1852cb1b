"""Store: repository over the template, transaction, and task tables.

The Store is the single dependency injected into every service. Reads go
through short-lived ``engine.connect()`` connections. Writes go through
:meth:`Store.transaction`, which yields a :class:`StoreTransaction` bound
to one ``engine.begin()`` block, so a task batch and its application
record commit or roll back together.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from txnflow.domain.templates import (
    LegacyTemplate,
    NormalizedTemplate,
    WorkflowTemplate,
    workflow_task_fields,
)
from txnflow.domain.transactions import Transaction
from txnflow.domain.types import (
    ApplicationStatus,
    TemplateVariant,
    canonical_tag,
    type_tag_candidates,
)
from txnflow.infrastructure.database.engine import init_database
from txnflow.infrastructure.database.schema import (
    application_records,
    legacy_templates,
    tasks,
    template_tasks,
    transactions,
    workflow_templates,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import ColumnElement, Connection, Row
    from sqlalchemy.engine import Engine

    from txnflow.config.settings import TxnSettings
    from txnflow.domain.materialize import TaskCreatePayload

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _load_json(raw: str | None, *, expected: type, source: str) -> Any:
    """Decode a JSON column, falling back to an empty value of *expected* type."""
    if not raw:
        return expected()
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Undecodable JSON in %s", source)
        return expected()
    if not isinstance(value, expected):
        logger.warning("Unexpected JSON shape in %s", source)
        return expected()
    return value


def _present(column: Any) -> Any:
    """*column* trimmed, with blank strings read as NULL."""
    return func.nullif(func.trim(column), "")


def _tier_clause(column: Any, service_tier: str | None) -> ColumnElement[bool]:
    tier = _present(column)
    if service_tier is None or not service_tier.strip():
        return tier.is_(None)
    return or_(tier.is_(None), func.lower(tier) == canonical_tag(service_tier))


# ---------------------------------------------------------------------------
# StoreTransaction: yielded to callers within transaction()
# ---------------------------------------------------------------------------


@dataclass
class StoreTransaction:
    """Active write transaction. Nothing is visible to readers until commit."""

    conn: Connection

    def find_application(
        self,
        transaction_id: str,
        template_id: str,
        variant: TemplateVariant,
    ) -> str | None:
        """Return the latest application record id for the pair, if any.

        Template ids are only unique within one store, so the variant is part
        of the key.
        """
        row = self.conn.execute(
            select(application_records.c.id)
            .where(
                application_records.c.transaction_id == transaction_id,
                application_records.c.template_id == template_id,
                application_records.c.template_variant == variant.value,
            )
            .order_by(application_records.c.applied_at.desc())
        ).first()
        return str(row.id) if row is not None else None

    def insert_application_record(
        self,
        *,
        transaction_id: str,
        template: NormalizedTemplate,
        applied_at: str,
        task_count: int,
        applied_by: str | None = None,
    ) -> str:
        """Insert one application record and return its id."""
        record_id = _new_id()
        self.conn.execute(
            insert(application_records).values(
                id=record_id,
                transaction_id=transaction_id,
                template_id=template.id,
                template_variant=template.variant.value,
                template_name=template.name,
                status=ApplicationStatus.APPLIED.value,
                applied_at=applied_at,
                applied_by=applied_by,
                task_count=task_count,
            )
        )
        return record_id

    def insert_tasks(
        self,
        payloads: Sequence[TaskCreatePayload],
        *,
        created_at: str,
        application_id: str | None = None,
    ) -> list[str]:
        """Insert task rows in payload order and return their ids."""
        ids = [_new_id() for _ in payloads]
        if not payloads:
            return ids
        self.conn.execute(
            insert(tasks),
            [
                {
                    "id": task_id,
                    "transaction_id": payload.transaction_id,
                    "application_id": application_id,
                    "title": payload.title,
                    "description": payload.description,
                    "priority": payload.priority.value,
                    "due_date": _iso(payload.due_date),
                    "is_completed": int(payload.completed),
                    "is_agent_visible": int(payload.is_agent_visible),
                    "position": position,
                    "created_at": created_at,
                }
                for position, (task_id, payload) in enumerate(zip(ids, payloads, strict=True))
            ],
        )
        return ids

    # ------------------------------------------------------------------
    # Upserts: used by the fixture loader, never by the engine
    # ------------------------------------------------------------------

    def put_transaction(self, txn: Transaction) -> None:
        values = {
            "id": txn.id,
            "transaction_type": txn.transaction_type,
            "service_tier": txn.service_tier,
            "contract_date": _iso(txn.contract_date),
            "closing_date": _iso(txn.closing_date),
            "inspection_date": _iso(txn.inspection_date),
            "appraisal_date": _iso(txn.appraisal_date),
            "financing_date": _iso(txn.financing_date),
        }
        stmt = sqlite_insert(transactions).values(**values)
        self.conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[transactions.c.id],
                set_={k: stmt.excluded[k] for k in values if k != "id"},
            )
        )

    def put_legacy_template(self, template: LegacyTemplate) -> None:
        values = {
            "id": template.id,
            "name": template.name,
            "category": template.category,
            "transaction_type": template.transaction_type,
            "service_tier": template.service_tier,
            "description": template.description,
            "is_active": int(template.is_active),
            "tasks": json.dumps(template.tasks, default=str),
        }
        stmt = sqlite_insert(legacy_templates).values(**values)
        self.conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[legacy_templates.c.id],
                set_={k: stmt.excluded[k] for k in values if k != "id"},
            )
        )

    def put_workflow_template(self, template: WorkflowTemplate) -> None:
        values = {
            "id": template.id,
            "name": template.name,
            "type": template.type,
            "service_tier": template.service_tier,
            "description": template.description,
            "is_active": int(template.is_active),
        }
        stmt = sqlite_insert(workflow_templates).values(**values)
        self.conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[workflow_templates.c.id],
                set_={k: stmt.excluded[k] for k in values if k != "id"},
            )
        )
        self.conn.execute(delete(template_tasks).where(template_tasks.c.template_id == template.id))
        rows = []
        for entry in template.template_tasks:
            fields = workflow_task_fields(entry)
            rule = fields["due_date_rule"]
            rows.append(
                {
                    **fields,
                    "template_id": template.id,
                    "due_date_rule": json.dumps(rule, default=str) if rule is not None else None,
                    "is_agent_visible": int(fields["is_agent_visible"]),
                }
            )
        if rows:
            self.conn.execute(insert(template_tasks), rows)


# ---------------------------------------------------------------------------
# Store: the repository
# ---------------------------------------------------------------------------


class Store:
    """Repository encapsulating all database access for the engine.

    Constructed from :class:`TxnSettings`; services receive it via their
    :class:`BaseService` constructor.
    """

    def __init__(self, settings: TxnSettings) -> None:
        self._settings = settings
        self._engine: Engine = init_database(settings.database_path)

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine (for direct access when needed)."""
        return self._engine

    @property
    def settings(self) -> TxnSettings:
        """The resolved settings for this store."""
        return self._settings

    def close(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Atomic write block.

        Commits when the block exits normally, rolls back on any exception.

        Usage::

            with store.transaction() as txn:
                record_id = txn.insert_application_record(...)
                txn.insert_tasks(payloads, application_id=record_id, ...)
        """
        with self._engine.begin() as conn:
            yield StoreTransaction(conn=conn)

    # ------------------------------------------------------------------
    # Template reads
    # ------------------------------------------------------------------

    def legacy_templates_by_filter(
        self,
        transaction_type: str,
        service_tier: str | None,
        *,
        wildcards: Iterable[str],
    ) -> list[LegacyTemplate]:
        """Active legacy templates matching the type tag (or a wildcard) and tier."""
        candidates = sorted(type_tag_candidates(transaction_type, wildcards))
        type_col = func.lower(
            func.coalesce(
                _present(legacy_templates.c.transaction_type),
                _present(legacy_templates.c.category),
            )
        )
        stmt = (
            select(legacy_templates)
            .where(
                legacy_templates.c.is_active == 1,
                type_col.in_(candidates),
                _tier_clause(legacy_templates.c.service_tier, service_tier),
            )
            .order_by(legacy_templates.c.name, legacy_templates.c.id)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [self._legacy_from_row(r) for r in rows]

    def workflow_templates_by_filter(
        self,
        transaction_type: str,
        service_tier: str | None,
        *,
        wildcards: Iterable[str],
    ) -> list[WorkflowTemplate]:
        """Active normalized templates matching the type tag (or a wildcard) and tier."""
        candidates = sorted(type_tag_candidates(transaction_type, wildcards))
        stmt = (
            select(workflow_templates)
            .where(
                workflow_templates.c.is_active == 1,
                func.lower(func.trim(workflow_templates.c.type)).in_(candidates),
                _tier_clause(workflow_templates.c.service_tier, service_tier),
            )
            .order_by(workflow_templates.c.name, workflow_templates.c.id)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
            children = self._template_task_rows(conn, [r.id for r in rows])
        return [self._workflow_from_row(r, children.get(r.id, [])) for r in rows]

    def get_legacy_template(self, template_id: str) -> LegacyTemplate | None:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(legacy_templates).where(legacy_templates.c.id == template_id)
            ).first()
        return self._legacy_from_row(row) if row is not None else None

    def get_workflow_template(self, template_id: str) -> WorkflowTemplate | None:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(workflow_templates).where(workflow_templates.c.id == template_id)
            ).first()
            if row is None:
                return None
            children = self._template_task_rows(conn, [row.id])
        return self._workflow_from_row(row, children.get(row.id, []))

    def task_definitions(self, template_id: str) -> list[dict[str, Any]]:
        """Raw task-definition rows of a normalized template, in ``sort_order``."""
        with self._engine.connect() as conn:
            return self._template_task_rows(conn, [template_id]).get(template_id, [])

    # ------------------------------------------------------------------
    # Transaction, task, and application-record reads
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        """Fresh read of a transaction, including its current anchor dates."""
        with self._engine.connect() as conn:
            row = conn.execute(
                select(transactions).where(transactions.c.id == transaction_id)
            ).first()
        if row is None:
            return None
        return Transaction(
            id=row.id,
            transaction_type=row.transaction_type,
            service_tier=row.service_tier,
            contract_date=_parse_date(row.contract_date),
            closing_date=_parse_date(row.closing_date),
            inspection_date=_parse_date(row.inspection_date),
            appraisal_date=_parse_date(row.appraisal_date),
            financing_date=_parse_date(row.financing_date),
        )

    def list_tasks(self, transaction_id: str) -> list[dict[str, Any]]:
        """Tasks on a transaction in creation order."""
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(tasks)
                .where(tasks.c.transaction_id == transaction_id)
                .order_by(tasks.c.created_at, tasks.c.position)
            ).fetchall()
        return [
            {
                "id": r.id,
                "transaction_id": r.transaction_id,
                "application_id": r.application_id,
                "title": r.title,
                "description": r.description,
                "priority": r.priority,
                "due_date": r.due_date,
                "completed": bool(r.is_completed),
                "is_agent_visible": bool(r.is_agent_visible),
            }
            for r in rows
        ]

    def application_records(self, transaction_id: str) -> list[dict[str, Any]]:
        """Application records for a transaction, newest first."""
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(application_records)
                .where(application_records.c.transaction_id == transaction_id)
                .order_by(application_records.c.applied_at.desc(), application_records.c.id)
            ).fetchall()
        return [
            {
                "id": r.id,
                "transaction_id": r.transaction_id,
                "template_id": r.template_id,
                "template_variant": r.template_variant,
                "template_name": r.template_name,
                "status": r.status,
                "applied_at": r.applied_at,
                "applied_by": r.applied_by,
                "task_count": r.task_count,
            }
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _template_task_rows(
        conn: Connection, template_ids: list[str]
    ) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
        if not template_ids:
            return grouped
        rows = conn.execute(
            select(template_tasks)
            .where(template_tasks.c.template_id.in_(template_ids))
            .order_by(
                template_tasks.c.template_id,
                template_tasks.c.sort_order,
                template_tasks.c.id,
            )
        ).fetchall()
        for r in rows:
            grouped[r.template_id].append(
                {
                    "subject": r.subject,
                    "description_notes": r.description_notes,
                    "priority": r.priority,
                    "due_date_rule": _load_json(
                        r.due_date_rule, expected=dict, source=f"template_tasks.{r.id}"
                    ),
                    "is_agent_visible": bool(r.is_agent_visible),
                    "sort_order": r.sort_order,
                }
            )
        return grouped

    @staticmethod
    def _legacy_from_row(row: Row[Any]) -> LegacyTemplate:
        return LegacyTemplate(
            id=row.id,
            name=row.name,
            transaction_type=row.transaction_type,
            category=row.category,
            service_tier=row.service_tier,
            description=row.description,
            is_active=bool(row.is_active),
            tasks=_load_json(row.tasks, expected=list, source=f"legacy_templates.{row.id}"),
        )

    @staticmethod
    def _workflow_from_row(row: Row[Any], children: list[dict[str, Any]]) -> WorkflowTemplate:
        return WorkflowTemplate(
            id=row.id,
            name=row.name,
            type=row.type,
            service_tier=row.service_tier,
            description=row.description,
            is_active=bool(row.is_active),
            template_tasks=children,
        )
