"""Tests for task materialization."""

from __future__ import annotations

from datetime import date

from txnflow.domain.materialize import TaskCreatePayload, build_task_payloads
from txnflow.domain.templates import LegacyTemplate, OffsetRule, TaskDefinition
from txnflow.domain.transactions import Transaction
from txnflow.domain.types import Anchor, Priority

TXN = Transaction(
    id="txn-1",
    transaction_type="buyer",
    contract_date=date(2024, 3, 1),
    closing_date=date(2024, 4, 15),
)


class TestBuildTaskPayloads:
    def test_one_payload_per_definition_in_order(self) -> None:
        defs = [TaskDefinition(title=t) for t in ("b", "a", "c")]
        payloads = build_task_payloads(defs, TXN)
        assert [p.title for p in payloads] == ["b", "a", "c"]
        assert all(p.transaction_id == "txn-1" for p in payloads)

    def test_scenario_review_and_inspection(self) -> None:
        raw = LegacyTemplate(
            id="lt",
            name="Buyer",
            tasks=[
                {"title": "Review contract", "daysFromAnchor": -3},
                {"title": "Schedule inspection", "daysFromAnchor": 5},
            ],
        )
        payloads = build_task_payloads(raw.task_definitions(), TXN)
        assert [(p.title, p.due_date) for p in payloads] == [
            ("Review contract", date(2024, 2, 27)),
            ("Schedule inspection", date(2024, 3, 6)),
        ]
        assert all(p.completed is False for p in payloads)

    def test_fields_carried_over(self) -> None:
        definition = TaskDefinition(
            title="Final walkthrough",
            description="With buyer",
            priority=Priority.HIGH,
            due_date_rule=OffsetRule(days=-1, anchor=Anchor.CLOSING),
            is_visible=True,
        )
        (p,) = build_task_payloads([definition], TXN)
        assert p == TaskCreatePayload(
            transaction_id="txn-1",
            title="Final walkthrough",
            description="With buyer",
            priority=Priority.HIGH,
            due_date=date(2024, 4, 14),
            is_agent_visible=True,
            completed=False,
        )

    def test_missing_description_becomes_empty_string(self) -> None:
        (p,) = build_task_payloads([TaskDefinition(title="T")], TXN)
        assert p.description == ""
        assert p.due_date is None

    def test_default_anchor_passed_through(self) -> None:
        (p,) = build_task_payloads(
            [TaskDefinition(title="T", due_date_rule=OffsetRule(days=0))],
            TXN,
            default_anchor=Anchor.CLOSING,
        )
        assert p.due_date == date(2024, 4, 15)

    def test_empty_definitions(self) -> None:
        assert build_task_payloads([], TXN) == []


class TestAsPreview:
    def test_json_friendly(self) -> None:
        p = TaskCreatePayload(
            transaction_id="txn-1",
            title="T",
            priority=Priority.LOW,
            due_date=date(2024, 3, 6),
        )
        assert p.as_preview() == {
            "title": "T",
            "description": "",
            "priority": "low",
            "due_date": "2024-03-06",
            "is_agent_visible": False,
            "completed": False,
        }

    def test_null_due_date(self) -> None:
        p = TaskCreatePayload(transaction_id="txn-1", title="T")
        assert p.as_preview()["due_date"] is None
