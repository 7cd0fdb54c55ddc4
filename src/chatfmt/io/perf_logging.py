"""Latency budgets for the formatting hot path.

format_message() runs again on every streamed token, so each call has a
budget. A call over budget is logged at warning level together with the
caller's stack and the message context (role, length) that was slow.

// [LAW:one-source-of-truth] Budgets live in SLOW_STAGE_THRESHOLDS_MS only.
// [LAW:single-enforcer] Over-budget warnings are emitted only by monitor_slow_path().
"""

from __future__ import annotations

import logging
import time
import traceback
from collections.abc import Callable, Mapping
from contextlib import contextmanager
from typing import Any, Union

Context = Union[Mapping[str, Any], Callable[[], Mapping[str, Any]], None]

SLOW_STAGE_THRESHOLDS_MS: dict[str, float] = {
    "format.message": 50.0,
    "render.message": 150.0,
}

DEFAULT_THRESHOLD_MS = 100.0
STACK_DEPTH = 20

_enabled = True


def is_enabled() -> bool:
    return _enabled


def set_enabled(val: bool) -> None:
    """Turn budget checks on or off process-wide (benchmarks switch them off)."""
    global _enabled
    _enabled = val


def threshold_for(stage: str, override: float | None = None) -> float:
    if override is not None:
        return float(override)
    return SLOW_STAGE_THRESHOLDS_MS.get(stage, DEFAULT_THRESHOLD_MS)


def describe_context(context: Context) -> str:
    """Sorted `key=value` pairs; a callable context is only evaluated here."""
    if context is None:
        return ""
    if callable(context):
        try:
            context = context()
        except Exception as exc:  # pragma: no cover - logging path only
            return f"context_error={exc!r}"
    if not isinstance(context, Mapping):
        return f"context_value={context!r}"
    return " ".join(f"{key}={context[key]!r}" for key in sorted(context))


@contextmanager
def monitor_slow_path(
    stage: str,
    *,
    logger: logging.Logger,
    context: Context = None,
    threshold_ms: float | None = None,
):
    """Warn with the caller's stack when the wrapped block runs over budget."""
    if not is_enabled():
        yield
        return
    budget_ms = threshold_for(stage, threshold_ms)
    started_ns = time.perf_counter_ns()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter_ns() - started_ns) / 1_000_000
        if elapsed_ms >= budget_ms:
            logger.warning(
                "perf threshold exceeded stage=%s elapsed_ms=%.2f threshold_ms=%.2f context=%s\n"
                "stacktrace:\n%s",
                stage,
                elapsed_ms,
                budget_ms,
                describe_context(context),
                "".join(traceback.format_stack(limit=STACK_DEPTH)),
            )
