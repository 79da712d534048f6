"""Unit tests for subtitle restructuring."""

import pytest

from subtleai.models import Segment
from subtleai.restructurer import RestructureRules, SubtitleRestructurer, restructure

LONG_TEXT = ("abcdefg " * 10) + "abcde"  # 85 chars


@pytest.fixture
def restructurer():
    return SubtitleRestructurer()


def assert_readable(segments, rules=RestructureRules()):
    for seg in segments:
        lines = seg.text.split("\n")
        assert len(lines) <= rules.max_lines
        assert all(len(line) <= rules.max_chars_per_line for line in lines)


class TestRules:
    def test_defaults(self):
        rules = RestructureRules()
        assert rules.max_chars == 84
        assert (rules.min_duration, rules.max_duration, rules.min_gap) == (1.0, 7.0, 0.08)

    def test_from_config_partial(self):
        rules = RestructureRules.from_config({"subtitle_rules": {"max_chars_per_line": 32}})
        assert rules.max_chars_per_line == 32
        assert rules.max_lines == 2


class TestPassThrough:
    def test_short_entry_unchanged(self):
        assert restructure([Segment(0, 2, "Hello world")]) == [Segment(0, 2, "Hello world")]

    def test_empty(self):
        assert restructure([]) == []


class TestSplitting:
    def test_required_parts(self, restructurer):
        assert restructurer.required_parts("x" * 85, 2.0) == 2
        assert restructurer.required_parts("short", 20.0) == 3
        assert restructurer.required_parts("x" * 300, 30.0) == 5

    def test_too_many_chars_split_and_wrapped(self):
        result = restructure([Segment(10, 14, LONG_TEXT)])
        assert len(result) == 2
        assert_readable(result)
        assert result[0].start == 10
        assert result[-1].end == pytest.approx(14)
        assert " ".join(s.text.replace("\n", " ") for s in result) == LONG_TEXT

    def test_too_long_on_screen_split_by_sentence(self):
        result = restructure([Segment(0, 20, "One. Two. Six.")])
        assert [s.text for s in result] == ["One.", "Two.", "Six."]
        assert result[-1].end == pytest.approx(20)
        assert all(s.duration <= 7.0 for s in result)

    def test_parts_do_not_overlap(self):
        result = restructure([Segment(0, 6, "word " * 40)])
        for current, following in zip(result, result[1:]):
            assert following.start >= current.end

    def test_split_text_prefers_sentences(self, restructurer):
        parts = restructurer.split_text("First sentence here. Second one is here.", 2)
        assert parts == ["First sentence here.", "Second one is here."]

    def test_split_text_falls_back_to_clauses(self, restructurer):
        assert restructurer.split_text("alpha beta, gamma delta", 2) == ["alpha beta,", "gamma delta"]

    def test_exactly_two_seconds_too_many_chars(self):
        result = restructure([Segment(0, 2, LONG_TEXT)])
        assert len(result) == 2
        assert_readable(result)
        assert result[0].start == 0
        assert all(s.duration >= 1.0 - 1e-6 for s in result)

    def test_split_text_flattens_whitespace(self, restructurer):
        assert restructurer.split_text("a\nb", 2) == ["a", "b"]

    def test_split_text_full_width_sentences(self, restructurer):
        parts = restructurer.split_text("今日は晴れです。明日は雨です。", 2)
        assert parts == ["今日は晴れです。", "明日は雨です。"]


class TestDisplayCaps:
    def test_single_word_capped_at_max_duration(self):
        result = restructure([Segment(0, 20, "Hello")])
        assert [(s.start, s.end, s.text) for s in result] == [(0, 7.0, "Hello")]

    def test_few_words_each_capped(self):
        result = restructure([Segment(0, 30, "Hello there")])
        assert [s.text for s in result] == ["Hello", "there"]
        assert all(s.duration <= 7.0 + 1e-6 for s in result)

    def test_text_without_spaces_split_and_wrapped(self):
        text = "日本語の字幕" * 20
        result = restructure([Segment(0, 5, text)])
        assert len(result) == 2
        assert_readable(result)
        assert all(len(s.text.replace("\n", "")) <= 84 for s in result)
        assert "".join(s.text.replace("\n", "") for s in result) == text
        assert result[-1].end == pytest.approx(5)


class TestWrapLines:
    def test_fits_on_one_line(self, restructurer):
        assert restructurer.wrap_lines("short line") == "short line"

    def test_two_lines(self, restructurer):
        text = "The quick brown fox jumps over the lazy dog and keeps going"
        wrapped = restructurer.wrap_lines(text)
        assert len(wrapped.split("\n")) == 2
        assert all(len(line) <= 42 for line in wrapped.split("\n"))

    def test_overflow_kept_on_last_line(self, restructurer):
        text = " ".join(f"word{i}" for i in range(30))
        wrapped = restructurer.wrap_lines(text)
        assert len(wrapped.split("\n")) == 2
        assert wrapped.replace("\n", " ") == text

    def test_long_token_hard_broken(self, restructurer):
        assert restructurer.wrap_lines("x" * 50) == "x" * 42 + "\n" + "x" * 8


class TestTiming:
    def test_short_entry_merged_into_previous(self):
        result = restructure([Segment(0, 2, "Hello there"), Segment(2.1, 2.4, "friend")])
        assert result == [Segment(0, 2.4, "Hello there friend")]

    def test_short_entry_not_merged_when_too_long(self):
        result = restructure([Segment(0, 2, "x" * 80), Segment(2.1, 2.4, "overflowing")])
        assert len(result) == 2

    def test_min_duration_extended(self):
        result = restructure([Segment(0, 0.6, "Hi"), Segment(5, 7, "Later")])
        assert result[0].end == pytest.approx(1.0)

    def test_min_duration_capped_by_next_entry(self):
        result = restructure([Segment(0, 0.6, "Hi"), Segment(0.9, 3, "Next")])
        assert result[0].end == pytest.approx(0.82)

    def test_min_gap_enforced(self):
        result = restructure([Segment(0, 2, "A"), Segment(2.0, 4, "B")])
        assert result[0].end == pytest.approx(1.92)

    def test_min_duration_wins_over_gap(self):
        result = restructure([Segment(0, 1.0, "A"), Segment(1.02, 3, "B")])
        assert result[0].end == pytest.approx(1.0)

    def test_capped_entry_keeps_gap_to_next(self):
        result = restructure([Segment(0, 0.6, "Hi"), Segment(0.9, 3, "Next")])
        assert result[1].start - result[0].end == pytest.approx(0.08)


class TestReadabilityLimits:
    @pytest.mark.parametrize("start, end, text", [
        (0, 0.3, "Hi"),
        (0, 2, "Hello world"),
        (0, 3, "x" * 80),
        (0, 20, "Hello"),
        (0, 30, "Hello there"),
        (0, 2, LONG_TEXT),
        (5, 9, LONG_TEXT),
        (0, 6, "word " * 40),
        (0, 25, "One. Two. Six. Ten. And more words here."),
        (0, 5, "日本語の字幕" * 20),
        (0, 12, "supercalifragilistic" * 6),
    ])
    def test_every_entry_within_limits(self, start, end, text):
        result = restructure([Segment(start, end, text)])
        assert result
        assert_readable(result)
        for seg in result:
            assert 1.0 - 1e-6 <= seg.duration <= 7.0 + 1e-6
