"""Span telemetry for service calls: Span, @traced, trace_span, annotate_span.

Disabled by default; one ContextVar lookup per call is the whole cost. With
``--verbose`` each traced service method builds a span tree (template load,
materialize, persist, ...) that ends up in ``ServiceResult.meta["telemetry"]``.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from txnflow.services.result import ServiceResult

SpanStatus = Literal["ok", "error", "exception"]

_verbose_enabled: ContextVar[bool] = ContextVar("_verbose_enabled", default=False)
_current_span: ContextVar[Span | None] = ContextVar("_current_span", default=None)

log = structlog.get_logger(__name__)


# ── Span ─────────────────────────────────────────────────────────────


@dataclass
class Span:
    """One timed stage of a service call."""

    name: str
    parent: Span | None = None
    children: list[Span] = field(default_factory=list)
    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None
    status: SpanStatus = "ok"
    annotations: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time) * 1000

    def end(self, status: SpanStatus | None = None) -> None:
        self.end_time = time.perf_counter()
        if status is not None:
            self.status = status

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.status != "ok":
            data["status"] = self.status
        if self.annotations:
            data["annotations"] = self.annotations
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data


# ── Stages ───────────────────────────────────────────────────────────


@contextmanager
def trace_span(name: str) -> Generator[Span | None]:
    """Time a stage as a child of the active span.

    Yields None when telemetry is off or no traced call is active. A stage
    that raises is marked ``exception`` before the error propagates.
    """
    parent = _current_span.get() if _verbose_enabled.get() else None
    if parent is None:
        yield None
        return

    child = Span(name=name, parent=parent)
    parent.children.append(child)
    token = _current_span.set(child)
    try:
        yield child
    except BaseException:
        child.status = "exception"
        raise
    finally:
        child.end()
        _current_span.reset(token)


def annotate_span(**values: Any) -> None:
    """Attach annotations to the active span; no-op when telemetry is off."""
    span = get_current_span()
    if span is None:
        return
    for key, value in values.items():
        span.annotate(key, value)


# ── @traced ──────────────────────────────────────────────────────────


def _with_telemetry(result: ServiceResult, span: Span) -> ServiceResult:
    meta = {**(result.meta or {}), "telemetry": span.to_dict()}
    return result.model_copy(update={"meta": meta})


def _log_span(span: Span) -> None:
    log.debug(
        "span.complete",
        span_name=span.name,
        duration_ms=round(span.duration_ms, 2),
        status=span.status,
        stages=[c.name for c in span.children],
    )


def traced[**P, R](func: Callable[P, R]) -> Callable[P, R]:
    """Run a service method under a root span named after it.

    A returned :class:`ServiceResult` gets the span tree merged into its
    ``meta``; a failed result marks the root span ``error`` and records the
    error code. Exceptions propagate untouched.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        if not _verbose_enabled.get():
            return func(*args, **kwargs)

        span = Span(name=func.__qualname__)
        token = _current_span.set(span)
        try:
            result = func(*args, **kwargs)
        except BaseException:
            span.end("exception")
            _log_span(span)
            raise
        finally:
            _current_span.reset(token)

        span.end()
        if isinstance(result, ServiceResult) and not result.ok:
            span.status = "error"
            if result.error is not None:
                span.annotate("error_code", result.error.code)
        _log_span(span)
        if isinstance(result, ServiceResult):
            return _with_telemetry(result, span)  # type: ignore[return-value]
        return result

    return wrapper


# ── Switches ─────────────────────────────────────────────────────────


def enable_telemetry() -> None:
    """Turn on span collection for the current context."""
    _verbose_enabled.set(True)


def disable_telemetry() -> None:
    _verbose_enabled.set(False)


def get_current_span() -> Span | None:
    """The innermost active span, or None when telemetry is off."""
    if not _verbose_enabled.get():
        return None
    return _current_span.get()
