"""Template variants and the adapter that unifies them.

Two template shapes coexist:

- **Legacy** (``task_templates``): one row with an embedded JSON task array.
  Entries carry ``title``, ``priority``, an optional ``description`` and an
  optional signed day offset (``daysFromAnchor`` or ``days_from_contract``).
- **Workflow** (``workflow_templates`` + ``template_tasks``): a header row with
  child task-definition rows carrying ``subject``/``title``, ``priority``,
  ``is_agent_visible``, ``sort_order`` and a structured ``due_date_rule``.

Both are modelled as a tagged union on ``variant``. Everything downstream
sees only :class:`NormalizedTemplate` and its :class:`TaskDefinition` tuple.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from txnflow.domain.types import Anchor, Priority, TemplateVariant

_ANCHOR_ALIASES: dict[str, Anchor] = {
    "contract": Anchor.CONTRACT,
    "execution": Anchor.CONTRACT,
    "ratified": Anchor.CONTRACT,
    "ratified_date": Anchor.CONTRACT,
    "contract_date": Anchor.CONTRACT,
    "closing": Anchor.CLOSING,
    "closing_date": Anchor.CLOSING,
    "inspection": Anchor.INSPECTION,
    "inspection_date": Anchor.INSPECTION,
    "appraisal": Anchor.APPRAISAL,
    "appraisal_date": Anchor.APPRAISAL,
    "financing": Anchor.FINANCING,
    "financing_date": Anchor.FINANCING,
}

_PRIORITY_VALUES = frozenset(p.value for p in Priority)


class _Malformed(Exception):
    """Internal signal: a rule field could not be interpreted."""


# ---------------------------------------------------------------------------
# Due-date rules
# ---------------------------------------------------------------------------


class OffsetRule(BaseModel):
    """Signed calendar-day offset from a transaction anchor date.

    ``anchor=None`` means "use the default anchor" (the contract date unless
    configured otherwise).
    """

    model_config = {"frozen": True}

    kind: Literal["offset"] = "offset"
    days: int
    anchor: Anchor | None = None


class FixedDateRule(BaseModel):
    """Absolute due date, independent of the transaction."""

    model_config = {"frozen": True}

    kind: Literal["fixed"] = "fixed"
    on: date


DueDateRule = Annotated[OffsetRule | FixedDateRule, Field(discriminator="kind")]


class TaskDefinition(BaseModel):
    """One unified template entry."""

    model_config = {"frozen": True}

    title: str = Field(min_length=1)
    description: str | None = None
    priority: Priority = Priority.MEDIUM
    due_date_rule: DueDateRule | None = None
    is_visible: bool = False


# ---------------------------------------------------------------------------
# Raw template variants (tagged union)
# ---------------------------------------------------------------------------


class LegacyTemplate(BaseModel):
    """Flat-array template from the legacy store."""

    model_config = {"frozen": True}

    variant: Literal["legacy"] = "legacy"
    id: str = Field(min_length=1)
    name: str
    transaction_type: str | None = None
    category: str | None = None
    service_tier: str | None = None
    description: str | None = None
    is_active: bool = True
    tasks: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def type_tag(self) -> str | None:
        return _coerce_title(self.transaction_type) or _coerce_title(self.category)

    def task_definitions(self) -> tuple[TaskDefinition, ...]:
        """Unified, validated view of the embedded task array."""
        return _collect(_legacy_definition(entry) for entry in self.tasks)


class WorkflowTemplate(BaseModel):
    """Normalized template: header row plus child task-definition rows."""

    model_config = {"frozen": True}

    variant: Literal["workflow"] = "workflow"
    id: str = Field(min_length=1)
    name: str
    type: str
    service_tier: str | None = None
    description: str | None = None
    is_active: bool = True
    template_tasks: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def type_tag(self) -> str | None:
        return _coerce_title(self.type)

    def task_definitions(self) -> tuple[TaskDefinition, ...]:
        """Unified, validated view of the child rows, ordered by ``sort_order``."""
        ordered = sorted(
            enumerate(self.template_tasks),
            key=lambda pair: (_sort_key(pair[1].get("sort_order")), pair[0]),
        )
        return _collect(_workflow_definition(entry) for _, entry in ordered)


RawTemplate = Annotated[LegacyTemplate | WorkflowTemplate, Field(discriminator="variant")]


class NormalizedTemplate(BaseModel):
    """Variant-independent template as consumed by the engine."""

    model_config = {"frozen": True}

    id: str
    name: str
    variant: TemplateVariant
    type_tag: str | None = None
    service_tier: str | None = None
    description: str | None = None
    task_definitions: tuple[TaskDefinition, ...] = ()

    @property
    def task_count(self) -> int:
        return len(self.task_definitions)


def normalize_template(raw: LegacyTemplate | WorkflowTemplate) -> NormalizedTemplate:
    """Adapt either template variant to a :class:`NormalizedTemplate`.

    Pure: no I/O, no side effects. Entries with blank titles are dropped.
    """
    return NormalizedTemplate(
        id=raw.id,
        name=raw.name,
        variant=TemplateVariant(raw.variant),
        type_tag=raw.type_tag,
        service_tier=_coerce_title(raw.service_tier),
        description=raw.description,
        task_definitions=raw.task_definitions(),
    )


# ---------------------------------------------------------------------------
# Entry parsing
# ---------------------------------------------------------------------------


def parse_due_date_rule(raw: Any) -> OffsetRule | FixedDateRule | None:
    """Interpret a normalized ``due_date_rule`` object.

    Accepts ``{"days": int, "anchor": "contract"|"closing"}`` as well as the
    event-style shape ``{"type": "days_from_event"|"specific_date"|"no_due_date",
    "days": int, "event": "ratified_date"|"closing_date"|..., "date": "YYYY-MM-DD"}``.
    Events name any :class:`Anchor` (inspection, appraisal and financing
    deadlines included).
    Anything that cannot be interpreted yields None (no due date).
    """
    if not isinstance(raw, dict):
        return None

    rule_type = raw.get("type")
    try:
        if rule_type == "no_due_date":
            return None
        if rule_type == "specific_date":
            return FixedDateRule(on=_coerce_date(raw.get("date")))
        if rule_type not in (None, "days_from_event"):
            return None
        days = _coerce_days(raw.get("days"))
        anchor_raw = raw.get("anchor", raw.get("event"))
        return OffsetRule(days=days, anchor=_coerce_anchor(anchor_raw))
    except _Malformed:
        return None


def _legacy_definition(entry: Any) -> TaskDefinition | None:
    if not isinstance(entry, dict):
        return None
    title = _coerce_title(entry.get("title"))
    if title is None:
        return None

    days_raw = entry.get("daysFromAnchor", entry.get("days_from_contract"))
    rule: OffsetRule | None = None
    if days_raw is not None:
        try:
            rule = OffsetRule(
                days=_coerce_days(days_raw),
                anchor=_coerce_anchor(entry.get("anchor")),
            )
        except _Malformed:
            rule = None

    return TaskDefinition(
        title=title,
        description=_coerce_text(entry.get("description")),
        priority=_coerce_priority(entry.get("priority")),
        due_date_rule=rule,
        is_visible=_coerce_flag(entry.get("isVisible", entry.get("is_agent_visible"))),
    )


def workflow_task_fields(entry: dict[str, Any]) -> dict[str, Any]:
    """Canonical ``template_tasks`` columns for one authored entry.

    Resolves the same key aliases the adapter reads (``title``,
    ``description``, ``dueDateRule``, ``isVisible``) so a stored row
    normalizes exactly like the entry it came from. The rule object is kept
    as authored; it is interpreted on read.
    """
    return {
        "subject": _coerce_title(entry.get("subject")) or _coerce_title(entry.get("title")),
        "description_notes": _coerce_text(
            entry.get("description_notes", entry.get("description"))
        ),
        "priority": _coerce_priority(entry.get("priority")).value,
        "due_date_rule": entry.get("due_date_rule", entry.get("dueDateRule")),
        "is_agent_visible": _coerce_flag(entry.get("is_agent_visible", entry.get("isVisible"))),
        "sort_order": _sort_key(entry.get("sort_order")),
    }


def _workflow_definition(entry: Any) -> TaskDefinition | None:
    if not isinstance(entry, dict):
        return None
    fields = workflow_task_fields(entry)
    if fields["subject"] is None:
        return None
    return TaskDefinition(
        title=fields["subject"],
        description=fields["description_notes"],
        priority=Priority(fields["priority"]),
        due_date_rule=parse_due_date_rule(fields["due_date_rule"]),
        is_visible=fields["is_agent_visible"],
    )


def _collect(definitions: Any) -> tuple[TaskDefinition, ...]:
    return tuple(d for d in definitions if d is not None)


def _coerce_title(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _coerce_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _coerce_priority(value: Any) -> Priority:
    if isinstance(value, str) and value.strip().lower() in _PRIORITY_VALUES:
        return Priority(value.strip().lower())
    return Priority.MEDIUM


def _coerce_flag(value: Any) -> bool:
    return value is True or value == 1


def _coerce_days(value: Any) -> int:
    # bool is an int subclass; a stray true/false is not an offset
    if isinstance(value, bool):
        raise _Malformed
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise _Malformed from None
    raise _Malformed


def _coerce_anchor(value: Any) -> Anchor | None:
    if value is None:
        return None
    if isinstance(value, str):
        anchor = _ANCHOR_ALIASES.get(value.strip().lower())
        if anchor is not None:
            return anchor
    raise _Malformed


def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise _Malformed from None
    raise _Malformed


def _sort_key(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0
