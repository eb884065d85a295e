#!/usr/bin/env python3

"""Text utility functions."""

from bisect import bisect_right
from typing import List

from lsprotocol import types as lsp


def get_line_offsets(text: str) -> List[int]:
    """Return the start offset of every line. ``\\r\\n``, ``\\r`` and ``\\n`` all end a line."""
    offsets = [0]
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char == "\r":
            if index + 1 < length and text[index + 1] == "\n":
                index += 1
            offsets.append(index + 1)
        elif char == "\n":
            offsets.append(index + 1)
        index += 1
    return offsets


def utf16_length(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


class TextDocumentView:
    """Immutable text with LSP position mapping.

    Offsets count code points of ``text``; positions count UTF-16 code units
    per line, as required by the protocol.
    """

    def __init__(self, text: str, uri: str = ""):
        self.uri = uri
        self.text = text
        self._line_offsets = get_line_offsets(text)

    @property
    def line_count(self) -> int:
        return len(self._line_offsets)

    def line_bounds(self, line: int, include_eol: bool = False):
        """Return ``(start, end)`` offsets of ``line``."""
        start = self._line_offsets[line]
        end = self._line_offsets[line + 1] if line + 1 < len(self._line_offsets) else len(self.text)
        if not include_eol:
            while end > start and self.text[end - 1] in "\r\n":
                end -= 1
        return start, end

    def line_text(self, line: int) -> str:
        start, end = self.line_bounds(line)
        return self.text[start:end]

    def offset_at(self, position: lsp.Position) -> int:
        """Convert a position to an offset, clamping out-of-range positions."""
        if position.line >= len(self._line_offsets):
            return len(self.text)
        if position.line < 0:
            return 0
        start, end = self.line_bounds(position.line)
        offset = start
        units = 0
        while offset < end and units < position.character:
            units += 2 if ord(self.text[offset]) > 0xFFFF else 1
            offset += 1
        return offset

    def position_at(self, offset: int) -> lsp.Position:
        offset = max(0, min(offset, len(self.text)))
        line = bisect_right(self._line_offsets, offset) - 1
        start = self._line_offsets[line]
        return lsp.Position(line=line, character=utf16_length(self.text[start:offset]))

    def range_for(self, start: int, end: int) -> lsp.Range:
        return lsp.Range(start=self.position_at(start), end=self.position_at(end))
