"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO). The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from txnflow.output.console import create_console, get_output, style_for_priority

if TYPE_CHECKING:
    from rich.console import Console

    from txnflow.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        code = f" [{result.error.code}]" if result.error else ""
        return f"ERROR: {result.op}{code}: {msg}"

    # Applied tasks: print the created task ids
    task_ids = result.data.get("task_ids")
    if task_ids:
        return "\n".join(str(t) for t in task_ids)

    items = result.data.get("items")
    if items and isinstance(items, list):
        ids = [_extract_id(item) for item in items]
        if any(ids):
            return "\n".join(i for i in ids if i)

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_id(item: Any) -> str:
    if isinstance(item, dict):
        val = item.get("id")
        if val is not None:
            return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    """Print the OK status line."""
    label = Text("OK", style="txn.ok")
    op = Text(f"  {result.op}", style="txn.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="txn.key")
    if key == "id" or key.endswith("_id"):
        v = Text(str(value), style="txn.id")
    elif key.endswith("_name") or key == "name":
        v = Text(str(value), style="txn.title")
    else:
        v = Text(str(value))
    console.print(k, v, sep="", end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including telemetry span tree (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))

    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(
    console: Console,
    span_data: dict[str, Any],
    indent: int = 4,
) -> None:
    """Render a hierarchical span tree with color-coded timing."""
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    status = span_data.get("status")
    if status:
        line += f" [txn.error]\\[{status}][/txn.error]"
    annotations = span_data.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _task_table(items: list[dict[str, Any]], *, with_ids: bool = False) -> Table:
    """Build a Rich Table of materialized tasks."""
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    if with_ids:
        table.add_column("ID", style="txn.id", no_wrap=True)
    table.add_column("Title", style="txn.title")
    table.add_column("Priority")
    table.add_column("Due", style="txn.date", no_wrap=True)
    table.add_column("Visible")

    for item in items:
        p = str(item.get("priority", "medium"))
        row: list[Any] = [
            str(item.get("title", "")),
            Text(p, style=style_for_priority(p)),
            item.get("due_date") or "-",
            "yes" if item.get("is_agent_visible") else "no",
        ]
        if with_ids:
            row.insert(0, str(item.get("id", "")))
        table.add_row(*row)
    return table


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="txn.error")
    op = Text(f"  {result.op}", style="txn.op")
    code = Text(f"  [{err.code}]" if err else "", style="txn.key")
    console.print(label, op, code, Text(f": {msg}"), sep="")
    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")
    if verbose:
        _render_meta(console, result)


# ── Template renderers ───────────────────────────────────────────────


def _render_template_list(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    """Render list_templates as a table of applicable templates."""
    d = result.data
    items = d.get("items", [])
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="txn.id", no_wrap=True)
    table.add_column("Name", style="txn.title")
    table.add_column("Variant", style="txn.variant")
    table.add_column("Type")
    table.add_column("Tier")
    table.add_column("Tasks", justify="right")
    if verbose:
        table.add_column("Description", style="dim")

    for item in items:
        row = [
            str(item.get("id", "")),
            str(item.get("name", "")),
            str(item.get("variant", "")),
            str(item.get("type_tag") or "-"),
            str(item.get("service_tier") or "any"),
            str(item.get("task_count", 0)),
        ]
        if verbose:
            row.append(str(item.get("description") or ""))
        table.add_row(*row)

    console.print(table)
    tier = d.get("service_tier") or "no tier"
    console.print(
        f"\n{d.get('count', len(items))} templates for {d.get('transaction_type')} ({tier})"
    )
    if verbose:
        _render_meta(console, result)


def _render_preview(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render preview_tasks: template header plus the would-be tasks."""
    _status_line(console, result)
    d = result.data
    for key in ("transaction_id", "template_id", "template_name", "variant"):
        _field(console, key, d.get(key, ""))
    if d.get("already_applied"):
        console.print(Text("  already applied to this transaction", style="txn.warning"))
    items = d.get("items", [])
    if items:
        console.print()
        console.print(_task_table(items))
    console.print(f"\n{d.get('count', len(items))} tasks (not saved)")
    if verbose:
        _render_meta(console, result)


def _render_apply(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render apply_template: summary fields plus the created tasks."""
    _status_line(console, result)
    d = result.data
    for key in (
        "transaction_id",
        "template_id",
        "template_name",
        "variant",
        "application_record_id",
        "created_task_count",
    ):
        if key in d:
            _field(console, key, d[key])
    items = d.get("items", [])
    if items:
        console.print()
        console.print(_task_table(items, with_ids=verbose))
    if verbose:
        _render_meta(console, result)


def _render_history(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render application_history as a table, newest first."""
    d = result.data
    items = d.get("items", [])
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Applied", style="txn.date", no_wrap=True)
    table.add_column("Template", style="txn.id", no_wrap=True)
    table.add_column("Name", style="txn.title")
    table.add_column("Variant", style="txn.variant")
    table.add_column("Tasks", justify="right")
    table.add_column("By")
    if verbose:
        table.add_column("Record", style="dim")

    for item in items:
        row = [
            str(item.get("applied_at", "")),
            str(item.get("template_id", "")),
            str(item.get("template_name") or ""),
            str(item.get("template_variant", "")),
            str(item.get("task_count", 0)),
            str(item.get("applied_by") or "-"),
        ]
        if verbose:
            row.append(str(item.get("id", "")))
        table.add_row(*row)

    console.print(table)
    console.print(f"\n{d.get('count', len(items))} applications on {d.get('transaction_id')}")
    if verbose:
        _render_meta(console, result)


def _render_load(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render load_fixtures counts."""
    _status_line(console, result)
    for key in ("path", "transactions", "legacy_templates", "workflow_templates"):
        if key in result.data:
            _field(console, key, result.data[key])
    if verbose:
        _render_meta(console, result)


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch ──────────────────────────────────────────────────────────

_Renderer = Callable[..., None]

_OP_RENDERERS: dict[str, _Renderer] = {
    "list_templates": _render_template_list,
    "preview_tasks": _render_preview,
    "apply_template": _render_apply,
    "application_history": _render_history,
    "load_fixtures": _render_load,
}
