"""Tests for the Store repository."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select, text, update

from tests.conftest import add_legacy_template, add_transaction, add_workflow_template
from txnflow.domain.materialize import TaskCreatePayload
from txnflow.domain.templates import normalize_template
from txnflow.domain.types import DEFAULT_WILDCARD_TYPES, Priority, TemplateVariant
from txnflow.infrastructure.database.schema import legacy_templates, tasks
from txnflow.infrastructure.store import Store

WILD = DEFAULT_WILDCARD_TYPES


class TestTransactions:
    def test_round_trip(self, store: Store) -> None:
        add_transaction(
            store,
            "txn-1",
            "buyer",
            service_tier="buyer_elite",
            contract_date=date(2024, 3, 1),
        )
        txn = store.get_transaction("txn-1")
        assert txn is not None
        assert txn.service_tier == "buyer_elite"
        assert txn.contract_date == date(2024, 3, 1)
        assert txn.closing_date is None

    def test_missing(self, store: Store) -> None:
        assert store.get_transaction("nope") is None

    def test_upsert_replaces_anchor_dates(self, store: Store) -> None:
        add_transaction(store, "txn-1", contract_date=date(2024, 3, 1))
        add_transaction(store, "txn-1", contract_date=date(2024, 3, 8))
        txn = store.get_transaction("txn-1")
        assert txn is not None
        assert txn.contract_date == date(2024, 3, 8)


class TestTemplateFilters:
    @pytest.fixture(autouse=True)
    def _seed(self, store: Store) -> None:
        add_legacy_template(store, "l-buyer", "Buyer", [{"title": "a"}], transaction_type="buyer")
        add_legacy_template(store, "l-both", "Both", [{"title": "a"}], transaction_type="both")
        add_legacy_template(
            store, "l-cat", "By category", [{"title": "a"}], transaction_type=None, category="Both"
        )
        add_legacy_template(
            store, "l-seller", "Seller", [{"title": "a"}], transaction_type="seller"
        )
        add_legacy_template(
            store, "l-elite", "Elite", [{"title": "a"}], service_tier="buyer_elite"
        )
        add_legacy_template(store, "l-core", "Core", [{"title": "a"}], service_tier="buyer_core")
        add_legacy_template(store, "l-off", "Inactive", [{"title": "a"}], is_active=False)
        add_workflow_template(store, "w-buyer", "WF Buyer", [{"subject": "x"}], type="Buyer")
        add_workflow_template(store, "w-general", "WF General", [{"subject": "x"}], type="General")
        add_workflow_template(store, "w-listing", "WF Listing", [{"subject": "x"}], type="Listing")

    def test_legacy_buyer_no_tier(self, store: Store) -> None:
        found = store.legacy_templates_by_filter("buyer", None, wildcards=WILD)
        assert {t.id for t in found} == {"l-buyer", "l-both", "l-cat"}

    def test_legacy_buyer_elite(self, store: Store) -> None:
        found = store.legacy_templates_by_filter("buyer", "buyer_elite", wildcards=WILD)
        assert {t.id for t in found} == {"l-buyer", "l-both", "l-cat", "l-elite"}

    def test_tier_match_is_case_insensitive(self, store: Store) -> None:
        found = store.legacy_templates_by_filter("Buyer", "BUYER_ELITE", wildcards=WILD)
        assert "l-elite" in {t.id for t in found}

    def test_legacy_seller_matches_listing_workflows(self, store: Store) -> None:
        found = store.workflow_templates_by_filter("seller", None, wildcards=WILD)
        assert {t.id for t in found} == {"w-general", "w-listing"}

    def test_workflow_buyer(self, store: Store) -> None:
        found = store.workflow_templates_by_filter("buyer", None, wildcards=WILD)
        assert {t.id for t in found} == {"w-buyer", "w-general"}

    def test_without_wildcards(self, store: Store) -> None:
        found = store.legacy_templates_by_filter("buyer", None, wildcards=[])
        assert {t.id for t in found} == {"l-buyer"}

    def test_inactive_excluded(self, store: Store) -> None:
        found = store.legacy_templates_by_filter("buyer", None, wildcards=WILD)
        assert "l-off" not in {t.id for t in found}


    def test_blank_type_falls_back_to_category(self, store: Store) -> None:
        add_legacy_template(
            store, "l-blank", "Blank type", [{"title": "a"}], transaction_type=" ", category="buyer"
        )
        found = store.legacy_templates_by_filter("buyer", None, wildcards=[])
        assert {t.id for t in found} == {"l-buyer", "l-blank"}

    def test_blank_tier_means_any_tier(self, store: Store) -> None:
        add_legacy_template(store, "l-empty-tier", "Empty tier", [{"title": "a"}], service_tier="")
        add_workflow_template(
            store, "w-empty-tier", "WF empty tier", [{"subject": "x"}], service_tier="  "
        )
        assert "l-empty-tier" in {
            t.id for t in store.legacy_templates_by_filter("buyer", None, wildcards=WILD)
        }
        assert "w-empty-tier" in {
            t.id for t in store.workflow_templates_by_filter("buyer", "buyer_elite", wildcards=WILD)
        }

class TestTemplateReads:
    def test_workflow_children_in_sort_order(self, store: Store) -> None:
        add_workflow_template(
            store,
            "w-1",
            "WF",
            [
                {"subject": "second", "sort_order": 2},
                {"subject": "first", "sort_order": 1},
            ],
        )
        rows = store.task_definitions("w-1")
        assert [r["subject"] for r in rows] == ["first", "second"]
        template = store.get_workflow_template("w-1")
        assert template is not None
        assert [d.title for d in template.task_definitions()] == ["first", "second"]

    def test_due_date_rule_round_trip(self, store: Store) -> None:
        rule = {"type": "days_from_event", "days": 2, "event": "ratified_date"}
        add_workflow_template(store, "w-1", "WF", [{"subject": "a", "due_date_rule": rule}])
        (row,) = store.task_definitions("w-1")
        assert row["due_date_rule"] == rule

    def test_reloading_workflow_replaces_children(self, store: Store) -> None:
        add_workflow_template(store, "w-1", "WF", [{"subject": "a"}, {"subject": "b"}])
        add_workflow_template(store, "w-1", "WF", [{"subject": "c"}])
        assert [r["subject"] for r in store.task_definitions("w-1")] == ["c"]

    def test_legacy_round_trip(self, store: Store) -> None:
        add_legacy_template(store, "l-1", "Legacy", [{"title": "a", "daysFromAnchor": 3}])
        template = store.get_legacy_template("l-1")
        assert template is not None
        assert template.tasks == [{"title": "a", "daysFromAnchor": 3}]

    def test_corrupt_task_json_reads_as_empty(self, store: Store) -> None:
        add_legacy_template(store, "l-1", "Legacy", [{"title": "a"}])
        with store.engine.begin() as conn:
            conn.execute(
                update(legacy_templates).where(legacy_templates.c.id == "l-1").values(tasks="{oops")
            )
        template = store.get_legacy_template("l-1")
        assert template is not None
        assert template.tasks == []

    def test_missing_templates(self, store: Store) -> None:
        assert store.get_legacy_template("nope") is None
        assert store.get_workflow_template("nope") is None
        assert store.task_definitions("nope") == []


class TestWrites:
    def _payloads(self, n: int) -> list[TaskCreatePayload]:
        return [
            TaskCreatePayload(
                transaction_id="txn-1",
                title=f"task {i}",
                priority=Priority.HIGH,
                due_date=date(2024, 3, i + 1),
            )
            for i in range(n)
        ]

    def test_insert_tasks_and_record(self, store: Store) -> None:
        add_transaction(store)
        template = normalize_template(
            add_legacy_template(store, "l-1", "Legacy", [{"title": "a"}])
        )
        with store.transaction() as txn:
            record_id = txn.insert_application_record(
                transaction_id="txn-1",
                template=template,
                applied_at="2024-03-01T00:00:00+00:00",
                task_count=3,
                applied_by="jdoe",
            )
            ids = txn.insert_tasks(
                self._payloads(3), created_at="2024-03-01T00:00:00+00:00", application_id=record_id
            )
        assert len(ids) == 3
        listed = store.list_tasks("txn-1")
        assert [t["id"] for t in listed] == ids
        assert [t["title"] for t in listed] == ["task 0", "task 1", "task 2"]
        assert listed[0]["due_date"] == "2024-03-01"
        assert all(t["completed"] is False for t in listed)
        assert all(t["application_id"] == record_id for t in listed)

        (record,) = store.application_records("txn-1")
        assert record["template_variant"] == "legacy"
        assert record["applied_by"] == "jdoe"
        assert record["status"] == "applied"

    def test_find_application(self, store: Store) -> None:
        add_transaction(store)
        template = normalize_template(add_legacy_template(store, "l-1", "L", [{"title": "a"}]))
        with store.transaction() as txn:
            assert txn.find_application("txn-1", "l-1", TemplateVariant.LEGACY) is None
            record_id = txn.insert_application_record(
                transaction_id="txn-1", template=template, applied_at="t", task_count=1
            )
            assert txn.find_application("txn-1", "l-1", TemplateVariant.LEGACY) == record_id
            assert txn.find_application("txn-1", "l-1", TemplateVariant.WORKFLOW) is None

    def test_failed_block_rolls_back(self, store: Store) -> None:
        add_transaction(store)
        template = normalize_template(add_legacy_template(store, "l-1", "L", [{"title": "a"}]))
        with pytest.raises(RuntimeError), store.transaction() as txn:
            txn.insert_application_record(
                transaction_id="txn-1", template=template, applied_at="t", task_count=1
            )
            txn.insert_tasks(self._payloads(2), created_at="t")
            raise RuntimeError("boom")
        assert store.application_records("txn-1") == []
        assert store.list_tasks("txn-1") == []

    def test_foreign_key_enforced(self, store: Store) -> None:
        from sqlalchemy.exc import IntegrityError

        with pytest.raises(IntegrityError), store.transaction() as txn:
            txn.insert_tasks(self._payloads(1), created_at="t")
        with store.engine.connect() as conn:
            assert conn.execute(select(tasks)).fetchall() == []

    def test_insert_no_tasks(self, store: Store) -> None:
        with store.transaction() as txn:
            assert txn.insert_tasks([], created_at="t") == []

    def test_records_newest_first(self, store: Store) -> None:
        add_transaction(store)
        template = normalize_template(add_legacy_template(store, "l-1", "L", [{"title": "a"}]))
        with store.transaction() as txn:
            older = txn.insert_application_record(
                transaction_id="txn-1",
                template=template,
                applied_at="2024-03-01T00:00:00+00:00",
                task_count=1,
            )
            newer = txn.insert_application_record(
                transaction_id="txn-1",
                template=template,
                applied_at="2024-03-02T00:00:00+00:00",
                task_count=1,
            )
        assert [r["id"] for r in store.application_records("txn-1")] == [newer, older]


class TestEngine:
    def test_database_under_root(self, store: Store) -> None:
        assert store.settings.database_path.exists()
        with store.engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1


class TestContingencyDates:
    def test_round_trip(self, store: Store) -> None:
        add_transaction(
            store,
            contract_date=date(2024, 3, 1),
            inspection_date=date(2024, 3, 11),
            financing_date=date(2024, 3, 25),
        )
        txn = store.get_transaction("txn-1")
        assert txn is not None
        assert txn.inspection_date == date(2024, 3, 11)
        assert txn.appraisal_date is None
        assert txn.financing_date == date(2024, 3, 25)


class TestWorkflowRowsFromAliases:
    def test_camel_case_rule_and_flag_stored(self, store: Store) -> None:
        add_workflow_template(
            store, "w-1", "WF", [{"subject": "a", "dueDateRule": {"days": 5}, "isVisible": 1}]
        )
        (row,) = store.task_definitions("w-1")
        assert row["due_date_rule"] == {"days": 5}
        assert row["is_agent_visible"] is True
