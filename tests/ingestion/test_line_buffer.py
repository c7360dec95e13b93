"""Tests for line reassembly across chunk boundaries."""

from __future__ import annotations

import pytest

from sensorlink.ingestion import LineBuffer, OverlongLine
from sensorlink.utilities.env import BufferStrategy


class TestLineBuffer:
    """Cover both buffering strategies so split records are stitched back together reliably."""

    @pytest.mark.parametrize("strategy", list(BufferStrategy))
    def test_reassembles_split_payloads(self, strategy: BufferStrategy) -> None:
        """Ensure a record split across chunks comes back whole once the delimiter arrives."""

        buffer = LineBuffer(strategy=strategy)

        assert buffer.append(b"HR:72,TEMP:36.8\nHR:") == ["HR:72,TEMP:36.8"]
        assert buffer.buffer_size == len("HR:")

        assert buffer.append(b"75\n") == ["HR:75"]
        assert buffer.buffer_size == 0

    @pytest.mark.parametrize("strategy", list(BufferStrategy))
    def test_multiple_records_in_one_chunk(self, strategy: BufferStrategy) -> None:
        buffer = LineBuffer(strategy=strategy)

        assert buffer.append(b"a\nb\r\n\nc") == ["a", "b\r", ""]
        assert buffer.buffer_size == 1

    def test_bytes_strategy_keeps_split_multibyte_characters(self) -> None:
        """Check that a UTF-8 character split between chunks decodes once complete."""

        buffer = LineBuffer(strategy=BufferStrategy.BYTES)
        encoded = '{"status":"ÉLEVÉ"}\n'.encode("utf-8")
        split = encoded.index("É".encode("utf-8")) + 1

        assert buffer.append(encoded[:split]) == []
        assert buffer.append(encoded[split:]) == ['{"status":"ÉLEVÉ"}']

    def test_overflow_discards_oversized_partial(self) -> None:
        """Verify a delimiter-less stream cannot grow the buffer without bound."""

        buffer = LineBuffer(max_line_bytes=16)

        assert buffer.append(b"X" * 10) == []
        assert buffer.append(b"X" * 10) == [OverlongLine("X" * 16)]
        assert buffer.buffer_size == 0
        assert buffer.discarding

        # The rest of the oversized line is dropped up to its delimiter.
        assert buffer.append(b"X,HR:70\n") == []
        assert not buffer.discarding
        assert buffer.append(b"HR:71\n") == ["HR:71"]

    @pytest.mark.parametrize("strategy", list(BufferStrategy))
    def test_complete_overlong_line_matches_split_one(self, strategy: BufferStrategy) -> None:
        line = b"HR:81," + b"X" * 20 + b",AX:1.5\n"
        whole = LineBuffer(strategy=strategy, max_line_bytes=16)
        split = LineBuffer(strategy=strategy, max_line_bytes=16)

        from_whole = whole.append(line + b"HR:90\n")
        from_split = split.append(line[:26]) + split.append(line[26:] + b"HR:90\n")

        assert from_whole == from_split == [OverlongLine("HR:81,XXXXXXXXXX"), "HR:90"]

    def test_multibyte_delimiter_split_while_discarding(self) -> None:
        buffer = LineBuffer(delimiter=b"\r\n", max_line_bytes=8)

        assert buffer.append(b"Y" * 12 + b"\r") == [OverlongLine("Y" * 8)]
        assert buffer.append(b"\nHR:70\r\n") == ["HR:70"]

    def test_clear_stops_discarding(self) -> None:
        buffer = LineBuffer(max_line_bytes=4)
        buffer.append(b"XXXXXX")

        buffer.clear()

        assert buffer.append(b"HR\n") == ["HR"]

    def test_custom_delimiter(self) -> None:
        buffer = LineBuffer(delimiter=b"\r\n")

        assert buffer.append(b"one\r\ntwo\r") == ["one"]
        assert buffer.append(b"\n") == ["two"]

    def test_clear_drops_partial(self) -> None:
        buffer = LineBuffer()
        buffer.append(b"HR:7")

        buffer.clear()

        assert buffer.buffer_size == 0
        assert buffer.append(b"0\n") == ["0"]

    def test_empty_delimiter_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            LineBuffer(delimiter=b"")
