from __future__ import annotations

import sys
from typing import Any, TextIO


TRACE_ALLOWLIST = {
    "model",
    "session_id",
    "turn_id",
    "turn_count",
    "user_id",
    "tank_id",
    "status",
    "event",
    "stage",
    "reason",
    "attempt",
    "threshold",
    "target_tokens",
    "token_count",
    "message_count",
    "keep_count",
    "summarize_count",
    "dropped_count",
    "input_tokens",
    "output_tokens",
    "parameter",
    "trend",
    "outcome",
}

TRACE_DENYLIST = {
    "current_input",
    "conversation_history",
    "context_messages",
    "system_prompt",
    "summary",
    "tank_snapshot",
    "user_preferences",
    "error",
}

_trace_writer: TextIO = sys.stdout


def _is_sensitive_field(field_name: str) -> bool:
    normalized = field_name.lower()
    return normalized in TRACE_DENYLIST or "api_key" in normalized


def _resolve_trace_writer() -> TextIO:
    global _trace_writer
    if getattr(_trace_writer, "closed", False):
        _trace_writer = sys.stdout
    return _trace_writer


def format_trace_line(node_name: str, outcome: str | None = None, **fields: Any) -> str:
    details = " ".join(
        f"{key}={value}"
        for key, value in fields.items()
        if key in TRACE_ALLOWLIST and value is not None
    )
    line = f"[{node_name}]"
    if details:
        line += f" {details}"
    if outcome:
        line += f" -> {outcome}"
    return line


def trace(node_name: str, outcome: str | None = None, **fields: Any) -> None:
    """Write one structured line for a pipeline step.

    Only allowlisted fields are printed; passing a sensitive field is a
    programming error and raises ``ValueError`` instead of silently leaking it.
    """
    for key in fields:
        if _is_sensitive_field(key):
            raise ValueError(f"{key} is not emittable")

    line = format_trace_line(node_name, outcome, **fields)
    writer = _resolve_trace_writer()
    writer.write(line + "\n")
    writer.flush()
