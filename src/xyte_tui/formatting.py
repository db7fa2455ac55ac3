"""Formatting utilities for compact table cells in the TUI and headless frames.

Every cell goes through sanitize_printable() first, so control characters and
newlines from API payloads never reach the terminal, and missing values
render as "n/a".
"""

import re
from typing import Any, Literal

ELLIPSIS = "…"

_WHITESPACE_RUN = re.compile(r"[\r\n\t]+")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")
_MULTI_SPACE = re.compile(r"\s{2,}")


def sanitize_printable(value: Any) -> str:
    """Render any value as a single printable line.

    Args:
        value: Any value; None becomes "n/a"

    Returns:
        Text with newlines/tabs collapsed to spaces and control characters
        removed, or "n/a" if nothing printable is left
    """
    if value is None:
        return "n/a"
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    text = _WHITESPACE_RUN.sub(" ", text)
    text = _CONTROL_CHARS.sub("", text)
    text = _MULTI_SPACE.sub(" ", text).strip()
    return text or "n/a"


def ellipsize_end(value: Any, max_chars: int) -> str:
    """Truncate to max_chars, ending with an ellipsis when cut."""
    text = sanitize_printable(value)
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    if max_chars == 1:
        return ELLIPSIS
    return text[: max(1, max_chars - 1)] + ELLIPSIS


def ellipsize_middle(value: Any, max_chars: int) -> str:
    """Truncate to max_chars, keeping both ends: "abcd…wxyz"."""
    text = sanitize_printable(value)
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    if max_chars < 3:
        return ellipsize_end(text, max_chars)
    body = max_chars - 1
    head = (body + 1) // 2
    tail = body - head
    return text[:head] + ELLIPSIS + (text[len(text) - tail :] if tail else "")


def short_id(value: Any, head: int = 6, tail: int = 4) -> str:
    """Shorten long identifiers to head…tail (6 and 4 characters by default)."""
    text = sanitize_printable(value)
    if len(text) <= head + tail + 1:
        return text
    return text[:head] + ELLIPSIS + text[len(text) - tail :]


def format_bool_tag(value: Any) -> str:
    """Return "yes" for truthy flags (yes/true/1/active/on), else "no"."""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return "yes" if sanitize_printable(value).lower() in ("yes", "true", "1", "active", "on") else "no"


def fit_cell(value: Any, width: int, mode: Literal["end", "middle"] = "end") -> str:
    """Fit a value into a column of the given width."""
    text = sanitize_printable(value)
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if mode == "middle":
        return ellipsize_middle(text, width)
    return ellipsize_end(text, width)
