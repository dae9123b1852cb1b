"""Task materialization: definitions + transaction -> task creation payloads."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Any

from pydantic import BaseModel

from txnflow.domain.dates import resolve_due_date
from txnflow.domain.templates import TaskDefinition
from txnflow.domain.transactions import Transaction
from txnflow.domain.types import Anchor, Priority


class TaskCreatePayload(BaseModel):
    """A task row ready to be inserted for one transaction."""

    model_config = {"frozen": True}

    transaction_id: str
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_date: date | None = None
    is_agent_visible: bool = False
    completed: bool = False

    def as_preview(self) -> dict[str, Any]:
        """Plain-dict form used in service payloads."""
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "is_agent_visible": self.is_agent_visible,
            "completed": self.completed,
        }


def build_task_payloads(
    definitions: Iterable[TaskDefinition],
    transaction: Transaction,
    *,
    default_anchor: Anchor = Anchor.CONTRACT,
) -> list[TaskCreatePayload]:
    """One payload per definition, in definition order.

    No de-duplication against tasks already on the transaction.
    """
    return [
        TaskCreatePayload(
            transaction_id=transaction.id,
            title=definition.title,
            description=definition.description or "",
            priority=definition.priority,
            due_date=resolve_due_date(
                definition.due_date_rule,
                transaction,
                default_anchor=default_anchor,
            ),
            is_agent_visible=definition.is_visible,
        )
        for definition in definitions
    ]
