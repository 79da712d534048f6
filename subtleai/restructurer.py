"""Rewraps, splits, merges and re-times subtitles to meet readability rules."""

import logging
import math
import re
from dataclasses import dataclass
from typing import List, Sequence

from .models import Segment

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|(?<=[。！？])\s*")
_CLAUSE_SPLIT_RE = re.compile(r"(?<=[,;:\-])\s+|(?<=[、，])\s*")
_WHITESPACE_RE = re.compile(r"\s+")
# Full-width punctuation is not followed by a space when pieces are rejoined.
_FULL_WIDTH_BREAKS = tuple("。！？、，")
# Float slack when comparing recomputed gaps.
_EPSILON = 1e-9


@dataclass(frozen=True)
class RestructureRules:
    """Display constraints. Defaults follow common broadcast subtitle guidelines."""

    max_chars_per_line: int = 42
    max_lines: int = 2
    min_duration: float = 1.0
    max_duration: float = 7.0
    min_gap: float = 0.08
    max_cps: float = 21.0
    # Entries shorter than this are folded into the previous entry when they fit.
    merge_threshold: float = 0.5

    @property
    def max_chars(self) -> int:
        return self.max_chars_per_line * self.max_lines

    @classmethod
    def from_config(cls, config: dict) -> "RestructureRules":
        options = config.get("subtitle_rules") or {}
        defaults = cls()
        return cls(
            max_chars_per_line=int(options.get("max_chars_per_line", defaults.max_chars_per_line)),
            max_lines=int(options.get("max_lines", defaults.max_lines)),
            min_duration=float(options.get("min_duration", defaults.min_duration)),
            max_duration=float(options.get("max_duration", defaults.max_duration)),
            min_gap=float(options.get("min_gap", defaults.min_gap)),
            max_cps=float(options.get("max_cps", defaults.max_cps)),
            merge_threshold=float(options.get("merge_threshold", defaults.merge_threshold)),
        )


@dataclass
class _Entry:
    # Mutable working copy; never leaves this module.
    start: float
    end: float
    text: str

    @property
    def duration(self) -> float:
        return self.end - self.start


class SubtitleRestructurer:
    """
    Applies four passes to a segment sequence:

    A. split entries that carry too much text or stay on screen too long,
    B. fold very short entries into their predecessor when the result fits,
    C. stretch entries shorter than the minimum duration,
    D. enforce the minimum gap, preferring minimum duration when both can't hold.
    """

    def __init__(self, rules: RestructureRules = None):
        self.rules = rules or RestructureRules()

    def restructure(self, segments: Sequence[Segment]) -> List[Segment]:
        if not segments:
            return []

        entries: List[_Entry] = []
        for segment in segments:
            entries.extend(self.split_segment(segment))

        entries = self._merge_short(entries)
        self._enforce_min_duration(entries)
        self._enforce_min_gap(entries)

        logger.info(f"Restructured {len(segments)} segments into {len(entries)} subtitle entries")
        return [Segment(start=e.start, end=e.end, text=e.text) for e in entries]

    # ------------------------------------------------------------------
    # Stage A
    # ------------------------------------------------------------------
    def required_parts(self, text: str, duration: float) -> int:
        rules = self.rules
        by_chars = math.ceil(len(text) / rules.max_chars)
        by_duration = math.ceil(duration / rules.max_duration)
        by_speed = math.ceil(len(text) / (rules.max_cps * rules.max_duration))
        return max(by_chars, by_duration, by_speed, 1)

    def split_segment(self, segment: Segment) -> List[_Entry]:
        rules = self.rules
        text = segment.text.strip()
        duration = segment.end - segment.start
        num_parts = self.required_parts(text, duration)
        parts = self.split_text(text, num_parts)
        # Awkward word lengths can still overflow the line layout; split finer.
        while num_parts < len(text) and not all(self.fits(p) for p in parts):
            num_parts += 1
            parts = self.split_text(text, num_parts)

        if len(parts) <= 1 and duration <= rules.max_duration:
            return [_Entry(segment.start, segment.end, self.wrap_lines(text))]

        total_chars = sum(len(p) for p in parts) or 1
        results: List[_Entry] = []
        current_start = segment.start

        for i, part in enumerate(parts):
            is_last = i == len(parts) - 1
            if is_last:
                # Last part ends on the original end (or later, for min_duration).
                part_end = max(segment.end, current_start + rules.min_duration)
            else:
                part_duration = max(duration * len(part) / total_chars, rules.min_duration)
                part_end = current_start + part_duration
            # The display cap wins over reaching the original end.
            part_end = min(part_end, current_start + rules.max_duration)
            results.append(_Entry(current_start, part_end, self.wrap_lines(part)))
            current_start = part_end + rules.min_gap

        logger.debug(f"Split {len(text)}-char, {duration:.2f}s segment into {len(results)} parts")
        return results

    def split_text(self, text: str, num_parts: int) -> List[str]:
        """
        Splits ``text`` into at most ``num_parts`` length-balanced groups,
        preferring sentence boundaries, then clause boundaries, then words.

        Text without usable word breaks (Japanese, Chinese, Thai) is cut into
        equal character runs when a word-level piece would still exceed the
        per-entry limit.
        """
        trimmed = text.strip()
        if num_parts <= 1:
            return [trimmed]

        flat = _WHITESPACE_RE.sub(" ", trimmed)
        sentences = [s for s in _SENTENCE_SPLIT_RE.split(flat) if s]
        if len(sentences) >= num_parts:
            return self._distribute(sentences, num_parts)

        clauses = [c for c in _CLAUSE_SPLIT_RE.split(flat) if c]
        if len(clauses) >= num_parts:
            return self._distribute(clauses, num_parts)

        pieces = self._distribute(flat.split(" "), num_parts)
        if len(pieces) < num_parts and any(len(p) > self.rules.max_chars for p in pieces):
            size = math.ceil(len(flat) / num_parts)
            chunks = (flat[i:i + size].strip() for i in range(0, len(flat), size))
            return [c for c in chunks if c]
        return pieces

    @staticmethod
    def _distribute(pieces: List[str], num_groups: int) -> List[str]:
        if len(pieces) <= num_groups:
            return [p.strip() for p in pieces if p.strip()]

        target = sum(len(p) for p in pieces) / num_groups
        groups: List[str] = []
        current: List[str] = []
        current_len = 0
        for piece in pieces:
            current.append(piece)
            current_len += len(piece)
            if current_len >= target and len(groups) < num_groups - 1:
                groups.append(_join(current))
                current = []
                current_len = 0
        if current:
            groups.append(_join(current))
        return [g for g in groups if g]

    def fits(self, text: str) -> bool:
        """True when ``text`` wraps into the allowed lines without overflow."""
        lines = self.wrap_lines(text).split("\n")
        return len(lines) <= self.rules.max_lines and all(
            len(line) <= self.rules.max_chars_per_line for line in lines
        )

    def wrap_lines(self, text: str) -> str:
        """
        Greedy word wrap to ``max_chars_per_line``, at most ``max_lines`` lines.

        Tokens longer than a line are hard-broken. Words that don't fit once
        the last line is reached are all kept on that line instead of being
        dropped.
        """
        rules = self.rules
        if len(text) <= rules.max_chars_per_line:
            return text

        words: List[str] = []
        for word in text.split():
            while len(word) > rules.max_chars_per_line:
                words.append(word[:rules.max_chars_per_line])
                word = word[rules.max_chars_per_line:]
            words.append(word)

        lines: List[str] = []
        current = ""
        for index, word in enumerate(words):
            candidate = f"{current} {word}" if current else word
            if len(candidate) <= rules.max_chars_per_line:
                current = candidate
                continue
            if current:
                lines.append(current)
            if len(lines) >= rules.max_lines - 1:
                lines.append(" ".join(words[index:]))
                return "\n".join(lines[:rules.max_lines])
            current = word
        if current:
            lines.append(current)
        return "\n".join(lines[:rules.max_lines])

    # ------------------------------------------------------------------
    # Stages B-D
    # ------------------------------------------------------------------
    def _merge_short(self, entries: List[_Entry]) -> List[_Entry]:
        rules = self.rules
        merged: List[_Entry] = []
        for entry in entries:
            if entry.duration < rules.merge_threshold and merged:
                prev = merged[-1]
                combined_text = f"{_flatten(prev.text)} {_flatten(entry.text)}".strip()
                combined_duration = entry.end - prev.start
                if (
                    len(combined_text) <= rules.max_chars
                    and combined_duration <= rules.max_duration
                    and self.fits(combined_text)
                ):
                    prev.end = entry.end
                    prev.text = self.wrap_lines(combined_text)
                    continue
            merged.append(_Entry(entry.start, entry.end, entry.text))
        return merged

    def _enforce_min_duration(self, entries: List[_Entry]) -> None:
        rules = self.rules
        for i, entry in enumerate(entries):
            if entry.duration >= rules.min_duration:
                continue
            if i < len(entries) - 1:
                max_end = entries[i + 1].start - rules.min_gap
            else:
                max_end = entry.start + rules.min_duration
            entry.end = max(entry.end, min(entry.start + rules.min_duration, max_end))

    def _enforce_min_gap(self, entries: List[_Entry]) -> None:
        rules = self.rules
        for current, following in zip(entries, entries[1:]):
            if following.start - current.end < rules.min_gap - _EPSILON:
                current.end = following.start - rules.min_gap
                if current.duration < rules.min_duration:
                    # Duration wins over gap.
                    current.end = current.start + rules.min_duration


def _flatten(text: str) -> str:
    return text.replace("\n", " ")


def _join(pieces: List[str]) -> str:
    joined = ""
    for piece in pieces:
        if joined and not joined.endswith(_FULL_WIDTH_BREAKS):
            joined += " "
        joined += piece
    return joined.strip()


def restructure(segments: Sequence[Segment], rules: RestructureRules = None) -> List[Segment]:
    """Restructures ``segments`` with the default (or given) rules."""
    return SubtitleRestructurer(rules).restructure(segments)
