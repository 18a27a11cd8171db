"""Byte offset to editor-protocol position mapping.

Editor positions count lines from zero and characters in UTF-16 code units;
parser spans are UTF-8 byte offsets. ``LineIndex`` does the conversion.
"""

from __future__ import annotations

from bisect import bisect_right

from lsprotocol.types import Position, Range

from gomodlens.model import Span


def _utf16_units(text: str) -> int:
    return sum(2 if ord(ch) > 0xFFFF else 1 for ch in text)


class LineIndex:
    """Precomputed line starts of one text, for repeated mapping."""

    def __init__(self, text: str) -> None:
        self._data = text.encode("utf-8")
        starts = [0]
        for index, byte in enumerate(self._data):
            if byte == 0x0A:
                starts.append(index + 1)
        self._starts = starts

    def position(self, offset: int) -> Position:
        if offset < 0 or offset > len(self._data):
            raise ValueError(f"offset {offset} outside text of {len(self._data)} bytes")
        if offset < len(self._data) and (self._data[offset] & 0xC0) == 0x80:
            raise ValueError(f"offset {offset} splits a UTF-8 sequence")
        line = bisect_right(self._starts, offset) - 1
        prefix = self._data[self._starts[line]:offset].decode("utf-8")
        return Position(line=line, character=_utf16_units(prefix))

    def range(self, span: Span) -> Range:
        return Range(start=self.position(span.start), end=self.position(span.end))


def to_protocol_position(text: str, byte_offset: int) -> Position:
    return LineIndex(text).position(byte_offset)
