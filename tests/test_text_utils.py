"""Tests for LSP position mapping."""

from __future__ import annotations

from lsprotocol import types as lsp

from cfn_language_server.server.utils.text_utils import TextDocumentView, get_line_offsets


class TestLineOffsets:
    def test_all_line_terminators(self) -> None:
        assert get_line_offsets("a\r\nb\rc\nd") == [0, 3, 5, 7]

    def test_trailing_newline_starts_an_empty_line(self) -> None:
        assert get_line_offsets("a\n") == [0, 2]
        assert get_line_offsets("") == [0]


class TestTextDocumentView:
    def test_round_trip_ascii(self) -> None:
        view = TextDocumentView("ab\ncd\n")
        assert view.offset_at(lsp.Position(line=1, character=1)) == 4
        assert view.position_at(4) == lsp.Position(line=1, character=1)

    def test_utf16_columns(self) -> None:
        view = TextDocumentView("\U0001F600x: 1\n")
        # The emoji is two UTF-16 code units but one code point.
        assert view.position_at(1) == lsp.Position(line=0, character=2)
        assert view.offset_at(lsp.Position(line=0, character=2)) == 1

    def test_out_of_range_positions_clamp(self) -> None:
        view = TextDocumentView("ab\ncd")
        assert view.offset_at(lsp.Position(line=9, character=0)) == 5
        assert view.offset_at(lsp.Position(line=0, character=99)) == 2
        assert view.position_at(99) == lsp.Position(line=1, character=2)

    def test_long_columns_stop_before_the_line_terminator(self) -> None:
        view = TextDocumentView("ab\r\ncd\n")
        assert view.offset_at(lsp.Position(line=0, character=3)) == 2
        assert view.offset_at(lsp.Position(line=1, character=99)) == 6

    def test_line_text_excludes_terminator(self) -> None:
        view = TextDocumentView("key: 1\r\nnext\n")
        assert view.line_text(0) == "key: 1"
        assert view.line_bounds(0, include_eol=True) == (0, 8)
