"""Bounded inspection of arbitrary API payloads.

API records can be deep, huge or (when built in memory) self-referencing.
Everything that shows a raw payload to the user goes through safe_inspect(),
which caps depth, list length, key count and output size, and marks every cut
so the user can tell the preview is incomplete.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

MAX_DEPTH = 6
MAX_ARRAY_ITEMS = 50
MAX_OBJECT_KEYS = 80
MAX_OUTPUT_CHARS = 40_000

TRUNCATED_MARKER = "[Truncated]"
PREVIEW_TRUNCATED = "Preview truncated for stability."


@dataclass(frozen=True)
class InspectResult:
    text: str
    truncated: bool
    approx_size: int
    key_count: int


@dataclass
class _InspectState:
    seen: set[int] = field(default_factory=set)
    truncated: bool = False
    approx_size: int = 0
    key_count: int = 0


def _sanitize(value: Any, depth: int, max_depth: int, max_items: int, max_keys: int, state: _InspectState) -> Any:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        state.approx_size += len(str(value))
        return value
    if callable(value):
        state.truncated = True
        return "[Function]"
    if not isinstance(value, (dict, list, tuple)):
        return str(value)

    if id(value) in state.seen:
        state.truncated = True
        return "[Circular]"
    if depth >= max_depth:
        state.truncated = True
        return "[DepthLimit]"

    state.seen.add(id(value))
    try:
        if isinstance(value, (list, tuple)):
            items = [_sanitize(v, depth + 1, max_depth, max_items, max_keys, state) for v in value[:max_items]]
            if len(value) > max_items:
                state.truncated = True
                items.append(f"[Truncated {len(value) - max_items} items]")
            return items

        keys = list(value.keys())
        out: dict[str, Any] = {}
        for key in keys[:max_keys]:
            state.key_count += 1
            state.approx_size += len(str(key))
            out[str(key)] = _sanitize(value[key], depth + 1, max_depth, max_items, max_keys, state)
        if len(keys) > max_keys:
            state.truncated = True
            out[TRUNCATED_MARKER] = f"{len(keys) - max_keys} keys omitted"
        return out
    finally:
        state.seen.discard(id(value))


def safe_inspect(
    value: Any,
    *,
    max_depth: int = MAX_DEPTH,
    max_array_items: int = MAX_ARRAY_ITEMS,
    max_object_keys: int = MAX_OBJECT_KEYS,
    max_output_chars: int = MAX_OUTPUT_CHARS,
    compact: bool = False,
) -> InspectResult:
    """Render a payload as JSON text within fixed limits.

    Cuts are marked in place: "[Circular]", "[DepthLimit]",
    "[Truncated N items]", a "[Truncated]" key for omitted keys, and a final
    "[Truncated]" line when the text itself was cut.

    Returns:
        InspectResult with the text, whether anything was cut, and rough
        size/key statistics
    """
    state = _InspectState()
    try:
        sanitized = _sanitize(value, 0, max_depth, max_array_items, max_object_keys, state)
        if compact:
            text = json.dumps(sanitized, ensure_ascii=False, separators=(",", ":"))
        else:
            text = json.dumps(sanitized, ensure_ascii=False, indent=2)
    except (TypeError, ValueError, RecursionError) as e:
        state.truncated = True
        text = json.dumps({"error": f"Serialization failed: {e}"}, indent=None if compact else 2)

    if len(text) > max_output_chars:
        state.truncated = True
        text = f"{text[:max_output_chars]}\n{TRUNCATED_MARKER}"

    return InspectResult(
        text=text,
        truncated=state.truncated,
        approx_size=state.approx_size,
        key_count=state.key_count,
    )


def _first(record: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def summarize_object(value: Any) -> list[str]:
    """A few "label: value" lines identifying a record (id, name, status, ...)."""
    if not isinstance(value, dict):
        return []
    lines = []
    for label, keys in (
        ("id", ("id", "_id", "uuid")),
        ("name", ("name", "title", "subject")),
        ("status", ("status", "state")),
        ("severity", ("severity", "priority")),
        ("device", ("device_id", "deviceId")),
    ):
        found = _first(value, *keys)
        if found is not None:
            lines.append(f"{label}: {found}")
    return lines


def safe_preview_lines(value: Any, **options: Any) -> tuple[list[str], bool]:
    """Payload preview as lines; truncated previews lead with a summary.

    Returns:
        (lines, truncated)
    """
    inspected = safe_inspect(value, **options)
    lines = inspected.text.split("\n")
    if not inspected.truncated:
        return lines, False
    return [PREVIEW_TRUNCATED, *summarize_object(value), *lines], True


def safe_search_text(value: Any) -> str:
    """Lower-cased compact JSON of a record, for substring search."""
    return safe_inspect(value, compact=True, max_output_chars=20_000).text.lower()


def payload_summary(value: Any) -> dict[str, Any]:
    """Kind and rough size of a payload, for debug logging."""
    inspected = safe_inspect(value, compact=True, max_output_chars=8_000)
    if isinstance(value, (list, tuple)):
        kind = "array"
    elif value is None:
        kind = "null"
    elif isinstance(value, dict):
        kind = "object"
    else:
        kind = type(value).__name__
    return {
        "kind": kind,
        "approxSize": inspected.approx_size,
        "keyCount": inspected.key_count,
        "truncated": inspected.truncated,
    }
