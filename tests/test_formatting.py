"""Tests for formatting utilities."""

import pytest

from xyte_tui.formatting import (
    ellipsize_end,
    ellipsize_middle,
    fit_cell,
    format_bool_tag,
    sanitize_printable,
    short_id,
)


class TestSanitizePrintable:
    """Tests for sanitize_printable (single-line cell text)."""

    def test_none_is_na(self) -> None:
        assert sanitize_printable(None) == "n/a"

    def test_newlines_and_tabs_collapsed(self) -> None:
        assert sanitize_printable("a\nb\tc") == "a b c"

    def test_control_characters_removed(self) -> None:
        assert sanitize_printable("ok\x1b[31m\x07") == "ok[31m"

    def test_bool_rendered_lowercase(self) -> None:
        assert sanitize_printable(True) == "true"

    def test_blank_is_na(self) -> None:
        assert sanitize_printable("  \n ") == "n/a"


class TestEllipsize:
    """Tests for end and middle truncation."""

    def test_end_short_text_untouched(self) -> None:
        assert ellipsize_end("abc", 5) == "abc"

    def test_end_truncates(self) -> None:
        assert ellipsize_end("abcdef", 4) == "abc…"

    def test_end_width_one(self) -> None:
        assert ellipsize_end("abcdef", 1) == "…"

    def test_middle_keeps_both_ends(self) -> None:
        assert ellipsize_middle("abcdefghij", 7) == "abc…hij"

    @pytest.mark.parametrize("width", [0, -1])
    def test_non_positive_width(self, width: int) -> None:
        assert ellipsize_end("abc", width) == ""
        assert ellipsize_middle("abc", width) == ""


class TestCells:
    """Tests for id shortening, bool tags and fit_cell."""

    def test_short_id(self) -> None:
        assert short_id("0123456789abcdef") == "012345…cdef"
        assert short_id("short") == "short"

    @pytest.mark.parametrize("value,expected", [(True, "yes"), ("active", "yes"), ("1", "yes"), ("off", "no"), (None, "no")])
    def test_format_bool_tag(self, value, expected: str) -> None:
        assert format_bool_tag(value) == expected

    def test_fit_cell_modes(self) -> None:
        assert fit_cell("abcdefghij", 5) == "abcd…"
        assert fit_cell("abcdefghij", 5, mode="middle") == "ab…ij"
        assert fit_cell("abc", 0) == ""
