"""Rich Console factory and theme for txnflow output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract. In non-TTY environments
(tests, pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

TXN_THEME = Theme(
    {
        "txn.ok": "bold green",
        "txn.error": "bold red",
        "txn.warning": "bold yellow",
        "txn.op": "bold cyan",
        "txn.key": "dim",
        "txn.id": "bold blue",
        "txn.title": "bold",
        "txn.date": "magenta",
        "txn.variant": "cyan",
        "txn.priority.high": "bold red",
        "txn.priority.medium": "yellow",
        "txn.priority.low": "dim",
    }
)

_PRIORITY_STYLES: dict[str, str] = {
    "high": "txn.priority.high",
    "medium": "txn.priority.medium",
    "low": "txn.priority.low",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=TXN_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_priority(priority: str) -> str:
    """Return the Rich style name for a task priority."""
    return _PRIORITY_STYLES.get(priority, "")
