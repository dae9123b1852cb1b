"""Typed payload contracts for service and adapter boundaries.

These models validate operation payload shapes before they leave the
service layer so key regressions (for example ``items`` vs ``tasks``)
fail fast in tests and during development.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


def dump_validated[T: BaseModel](model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="python")


class TemplateSummaryItem(BaseModel):
    """One applicable template in a catalog listing."""

    id: str
    name: str
    variant: Literal["legacy", "workflow"]
    type_tag: str | None = None
    service_tier: str | None = None
    description: str | None = None
    task_count: int


class TemplateListResultData(BaseModel):
    """Payload contract for ``CatalogService.list_applicable``."""

    transaction_type: str
    service_tier: str | None = None
    count: int
    items: list[TemplateSummaryItem]


class TaskPreviewItem(BaseModel):
    """One materialized task, persisted or not."""

    model_config = ConfigDict(extra="allow")

    title: str
    description: str
    priority: Literal["low", "medium", "high"]
    due_date: str | None = None
    is_agent_visible: bool
    completed: bool


class PreviewResultData(BaseModel):
    """Payload contract for ``ApplicationService.preview_tasks``."""

    transaction_id: str
    template_id: str
    template_name: str
    variant: Literal["legacy", "workflow"]
    already_applied: bool
    count: int
    items: list[TaskPreviewItem]


class ApplyResultData(BaseModel):
    """Payload contract for ``ApplicationService.apply``."""

    success: Literal[True] = True
    transaction_id: str
    template_id: str
    template_name: str
    variant: Literal["legacy", "workflow"]
    created_task_count: int
    application_record_id: str
    task_ids: list[str]
    items: list[TaskPreviewItem]


class ApplicationRecordItem(BaseModel):
    """One application record row."""

    id: str
    transaction_id: str
    template_id: str
    template_variant: Literal["legacy", "workflow"]
    template_name: str | None = None
    status: str
    applied_at: str
    applied_by: str | None = None
    task_count: int


class HistoryResultData(BaseModel):
    """Payload contract for ``ApplicationService.history``."""

    transaction_id: str
    count: int
    items: list[ApplicationRecordItem]


class FixtureLoadResultData(BaseModel):
    """Payload contract for ``FixtureService.load``."""

    path: str
    transactions: int
    legacy_templates: int
    workflow_templates: int
