"""Unit tests for SRT serialization and parsing."""

import pytest

from subtleai.exceptions import FileSystemError
from subtleai.models import Segment
from subtleai.subtitle_formatter import SRTFormatter, parse_srt, split_entries, to_srt
from subtleai.utils import format_time_srt, parse_time_srt


class TestFormatTime:
    def test_zero(self):
        assert format_time_srt(0) == "00:00:00,000"

    def test_hours_minutes_millis(self):
        assert format_time_srt(3661.5) == "01:01:01,500"

    def test_rounding_carries_into_seconds(self):
        assert format_time_srt(59.9996) == "00:01:00,000"

    def test_negative_clamped(self):
        assert format_time_srt(-3) == "00:00:00,000"

    def test_hours_not_wrapped(self):
        assert format_time_srt(100 * 3600) == "100:00:00,000"


class TestParseTime:
    def test_comma(self):
        assert parse_time_srt("00:01:02,345") == pytest.approx(62.345)

    def test_dot_separator(self):
        assert parse_time_srt("01:00:00.250") == pytest.approx(3600.25)

    def test_short_fraction(self):
        assert parse_time_srt("00:00:01,5") == pytest.approx(1.5)

    def test_garbage(self):
        assert parse_time_srt("not a time") is None


class TestToSrt:
    def test_numbering_and_layout(self):
        srt = to_srt([Segment(0, 1.5, " Hello "), Segment(2, 3, "World")])
        assert srt == (
            "1\n00:00:00,000 --> 00:00:01,500\nHello\n\n"
            "2\n00:00:02,000 --> 00:00:03,000\nWorld\n"
        )

    def test_multiline_text_kept(self):
        srt = to_srt([Segment(0, 1, "line one\nline two")])
        assert "line one\nline two\n" in srt

    def test_empty(self):
        assert to_srt([]) == "\n"


class TestSplitEntries:
    def test_crlf_and_extra_blank_lines(self):
        text = "1\r\n00:00:00,000 --> 00:00:01,000\r\nA\r\n\r\n\r\n2\r\n00:00:01,000 --> 00:00:02,000\r\nB\r\n"
        assert len(split_entries(text)) == 2

    def test_blank(self):
        assert split_entries("  \n\n ") == []


class TestParseSrt:
    def test_parses_back_what_to_srt_writes(self):
        segments = [Segment(0.0, 1.25, "Hola"), Segment(1.5, 4.0, "dos\nlíneas")]
        assert parse_srt(to_srt(segments)) == segments

    def test_missing_sequence_number(self):
        segments = parse_srt("00:00:01,000 --> 00:00:02,000\nNo number\n")
        assert segments == [Segment(1.0, 2.0, "No number")]

    def test_block_without_timestamp_skipped(self):
        text = "1\njust text\n\n2\n00:00:01,000 --> 00:00:02,000\nKept\n"
        assert [s.text for s in parse_srt(text)] == ["Kept"]

    def test_unparseable_timestamp_skipped(self):
        text = "1\nxx --> yy\nBad\n\n2\n00:00:01,000 --> 00:00:02,000\nGood\n"
        assert [s.text for s in parse_srt(text)] == ["Good"]

    def test_empty_text_dropped(self):
        assert parse_srt("1\n00:00:01,000 --> 00:00:02,000\n\n") == []

    def test_dot_timestamps(self):
        assert parse_srt("1\n00:00:01.500 --> 00:00:02.000\nDot\n")[0].start == pytest.approx(1.5)


class TestSRTFormatter:
    def test_write(self, tmp_path):
        path = tmp_path / "out.srt"
        count = SRTFormatter().write([Segment(0, 1, "Hi")], str(path))
        assert count == 1
        assert path.read_text(encoding="utf-8").startswith("1\n00:00:00,000 --> 00:00:01,000\nHi")

    def test_write_text_to_missing_dir_raises(self, tmp_path):
        with pytest.raises(FileSystemError):
            SRTFormatter().write_text("x", str(tmp_path / "missing" / "out.srt"))
