"""Tests for CatalogService.list_applicable."""

from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from tests.conftest import add_legacy_template, add_workflow_template
from txnflow.infrastructure.store import Store
from txnflow.services.catalog import CatalogService


def _ids(result: Any) -> set[str]:
    assert result.ok, result.error
    return {item["id"] for item in result.data["items"]}


class TestApplicability:
    @pytest.fixture(autouse=True)
    def _seed(self, store: Store) -> None:
        one = [{"title": "a"}]
        add_legacy_template(store, "buyer-any", "Buyer any", one, transaction_type="buyer")
        add_legacy_template(
            store, "buyer-elite", "Buyer elite", one, service_tier="elite"
        )
        add_legacy_template(store, "buyer-core", "Buyer core", one, service_tier="core")
        add_legacy_template(store, "both-any", "Both any", one, transaction_type="both")
        add_legacy_template(store, "seller-any", "Seller any", one, transaction_type="seller")
        add_workflow_template(store, "wf-listing", "Listing", [{"subject": "x"}], type="Listing")
        add_workflow_template(store, "wf-general", "General", [{"subject": "x"}], type="General")
        add_workflow_template(
            store, "wf-buyer-elite", "WF elite", [{"subject": "x"}], service_tier="elite"
        )

    def test_buyer_elite(self, store: Store) -> None:
        result = CatalogService(store).list_applicable("buyer", "elite")
        assert _ids(result) == {
            "buyer-any",
            "buyer-elite",
            "both-any",
            "wf-general",
            "wf-buyer-elite",
        }

    def test_listing_and_other_tiers_excluded(self, store: Store) -> None:
        ids = _ids(CatalogService(store).list_applicable("buyer", "elite"))
        assert "wf-listing" not in ids
        assert "seller-any" not in ids
        assert "buyer-core" not in ids

    def test_no_tier_matches_only_unscoped(self, store: Store) -> None:
        ids = _ids(CatalogService(store).list_applicable("buyer"))
        assert ids == {"buyer-any", "both-any", "wf-general"}

    def test_seller_sees_listing_templates(self, store: Store) -> None:
        ids = _ids(CatalogService(store).list_applicable("seller"))
        assert ids == {"seller-any", "both-any", "wf-listing", "wf-general"}

    def test_case_insensitive_type(self, store: Store) -> None:
        assert _ids(CatalogService(store).list_applicable("BUYER")) == _ids(
            CatalogService(store).list_applicable("buyer")
        )

    def test_sorted_by_name(self, store: Store) -> None:
        result = CatalogService(store).list_applicable("buyer", "elite")
        names = [item["name"] for item in result.data["items"]]
        assert names == sorted(names, key=str.lower)


class TestSummaries:
    def test_task_counts_and_variants(self, store: Store) -> None:
        add_legacy_template(store, "l-1", "Legacy", [{"title": "a"}, {"title": ""}, {"title": "b"}])
        add_workflow_template(store, "w-1", "Workflow", [{"subject": "x"}])
        result = CatalogService(store).list_applicable("buyer")
        by_id = {item["id"]: item for item in result.data["items"]}
        assert by_id["l-1"]["task_count"] == 2
        assert by_id["l-1"]["variant"] == "legacy"
        assert by_id["w-1"]["task_count"] == 1
        assert by_id["w-1"]["variant"] == "workflow"
        assert result.data["count"] == 2

    def test_inactive_excluded(self, store: Store) -> None:
        add_legacy_template(store, "l-1", "Legacy", [{"title": "a"}], is_active=False)
        add_workflow_template(store, "w-1", "Workflow", [{"subject": "x"}], is_active=False)
        result = CatalogService(store).list_applicable("buyer")
        assert result.ok
        assert result.data["items"] == []

    def test_collision_prefers_workflow(self, store: Store) -> None:
        add_legacy_template(store, "dup", "Legacy dup", [{"title": "a"}])
        add_workflow_template(store, "dup", "Workflow dup", [{"subject": "x"}, {"subject": "y"}])
        result = CatalogService(store).list_applicable("buyer")
        (item,) = result.data["items"]
        assert item["variant"] == "workflow"
        assert item["task_count"] == 2
        assert any("dup" in w for w in result.warnings)

    def test_custom_wildcards(self, make_store: Any) -> None:
        store = make_store(catalog={"wildcard_types": ["any"]})
        add_legacy_template(store, "l-any", "Any", [{"title": "a"}], transaction_type="any")
        add_legacy_template(store, "l-both", "Both", [{"title": "a"}], transaction_type="both")
        assert _ids(CatalogService(store).list_applicable("buyer")) == {"l-any"}


class TestFailures:
    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_type_rejected(self, store: Store, value: str) -> None:
        result = CatalogService(store).list_applicable(value)
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "INVALID_FILTER"

    def test_read_failure_is_retryable(
        self, store: Store, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _boom(*_args: Any, **_kwargs: Any) -> Any:
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(store, "workflow_templates_by_filter", _boom)
        result = CatalogService(store).list_applicable("buyer")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "CATALOG_UNAVAILABLE"
        assert result.error.message == "Template catalog unavailable, try again"
