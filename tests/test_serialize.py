"""Tests for bounded payload inspection."""

import json

from xyte_tui.tui.serialize import (
    PREVIEW_TRUNCATED,
    payload_summary,
    safe_inspect,
    safe_preview_lines,
    safe_search_text,
    summarize_object,
)


class TestSafeInspect:
    def test_plain_payload_untouched(self) -> None:
        result = safe_inspect({"id": 1, "name": "Display"})
        assert not result.truncated
        assert json.loads(result.text) == {"id": 1, "name": "Display"}
        assert result.key_count == 2

    def test_circular_reference_marked(self) -> None:
        payload: dict = {"id": 1}
        payload["self"] = payload
        result = safe_inspect(payload)
        assert result.truncated
        assert "[Circular]" in result.text

    def test_depth_limit(self) -> None:
        result = safe_inspect({"a": {"b": {"c": {}}}}, max_depth=2)
        assert result.truncated
        assert "[DepthLimit]" in result.text

    def test_array_items_limited(self) -> None:
        result = safe_inspect(list(range(10)), max_array_items=3)
        assert result.truncated
        assert json.loads(result.text) == [0, 1, 2, "[Truncated 7 items]"]

    def test_object_keys_limited(self) -> None:
        result = safe_inspect({str(i): i for i in range(5)}, max_object_keys=2)
        data = json.loads(result.text)
        assert data["[Truncated]"] == "3 keys omitted"

    def test_output_chars_limited(self) -> None:
        result = safe_inspect("x" * 100, max_output_chars=10)
        assert result.truncated
        assert result.text.endswith("\n[Truncated]")

    def test_functions_replaced(self) -> None:
        result = safe_inspect({"callback": print})
        assert json.loads(result.text) == {"callback": "[Function]"}


class TestPreviewAndSearch:
    def test_truncated_preview_leads_with_summary(self) -> None:
        record = {"id": "dev-1", "name": "Lobby", "tags": list(range(100))}
        lines, truncated = safe_preview_lines(record)
        assert truncated
        assert lines[0] == PREVIEW_TRUNCATED
        assert lines[1:3] == ["id: dev-1", "name: Lobby"]

    def test_summary_of_non_record(self) -> None:
        assert summarize_object("text") == []

    def test_search_text_is_lowercase_compact(self) -> None:
        assert safe_search_text({"Name": "Lobby"}) == '{"name":"lobby"}'

    def test_payload_summary_kinds(self) -> None:
        assert payload_summary([1, 2])["kind"] == "array"
        assert payload_summary(None)["kind"] == "null"
        assert payload_summary({"a": 1})["keyCount"] == 1
