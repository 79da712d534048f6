"""Removes transcript segments that are speech-model artifacts rather than speech."""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import RawTranscriptSegment, Segment

logger = logging.getLogger(__name__)

# Phrases Whisper-style models emit over silence or music. Anchored at the
# start of the trimmed text, case-insensitive.
HALLUCINATION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^sub(t[ií]tul|scri)",
        r"^subt[ií]tulos?\s+(por|de|provided|realizado)",
        r"^thanks?\s+for\s+watch",
        r"^thank\s+you\s+for\s+watch",
        r"^please\s+subscribe",
        r"^subscribe\s+(to|and)",
        r"^like\s+and\s+subscribe",
        r"^amara\.org",
        r"^www\.",
        r"^translated\s+by",
        r"^captioned\s+by",
        r"^copyright",
        r"^\[m[uú]sica\]$",
        r"^\[music\]$",
        r"^\[aplausos\]$",
        r"^\[applause\]$",
        r"^\[risas?\]$",
        r"^\[laughter\]$",
        r"^gracias\s+por\s+ver",
        r"^nos\s+vemos",
        r"^hasta\s+(la\s+pr[oó]xima|luego|pronto)\.?$",
    )
]

_NORMALIZE_RE = re.compile(r"[.,!?¡¿;:\s]+")


def normalize_text(text: str) -> str:
    """Lowercases and collapses punctuation/whitespace runs to single spaces."""
    return _NORMALIZE_RE.sub(" ", (text or "").strip().lower()).strip()


@dataclass
class HallucinationFilter:
    """
    Four-pass filter over raw transcript segments.

    1. Per-segment scores: empty text, ``no_speech_prob``, ``compression_ratio``
       and the known-phrase library.
    2. Runs of 2+ consecutive segments with identical normalized text.
    3. Normalized texts occurring ``global_repeat_threshold``+ times among the
       segments not yet marked.
    4. Survivors, in order, with the diagnostic fields dropped.

    Passes only ever mark; nothing marked is brought back.
    """

    no_speech_threshold: float = 0.6
    compression_ratio_threshold: float = 2.4
    consecutive_repeat_threshold: int = 2
    global_repeat_threshold: int = 4

    def filter(self, segments: Sequence[RawTranscriptSegment]) -> List[Segment]:
        if not segments:
            return []

        reasons: List[Optional[str]] = [self._score_reason(seg) for seg in segments]
        normalized = [normalize_text(seg.text) for seg in segments]

        self._mark_consecutive_runs(normalized, reasons)
        self._mark_global_repeats(normalized, reasons)

        kept: List[Segment] = []
        for seg, reason in zip(segments, reasons):
            if reason:
                logger.debug(f"[hallucination] Removed ({reason}): {seg.text.strip()[:60]!r}")
            else:
                kept.append(seg.to_segment())

        removed = len(segments) - len(kept)
        if removed:
            logger.info(f"Filtered {removed} hallucinated segments ({len(segments)} -> {len(kept)})")
        return kept

    def _score_reason(self, seg: RawTranscriptSegment) -> Optional[str]:
        text = (seg.text or "").strip()
        if not text:
            return "empty"
        if seg.no_speech_prob is not None and seg.no_speech_prob > self.no_speech_threshold:
            return f"no_speech_prob={seg.no_speech_prob:.2f}"
        if seg.compression_ratio is not None and seg.compression_ratio > self.compression_ratio_threshold:
            return f"compression_ratio={seg.compression_ratio:.2f}"
        if any(p.search(text) for p in HALLUCINATION_PATTERNS):
            return "pattern match"
        return None

    def _mark_consecutive_runs(self, normalized: List[str], reasons: List[Optional[str]]) -> None:
        i = 0
        while i < len(normalized):
            norm = normalized[i]
            if not norm:
                i += 1
                continue
            j = i + 1
            while j < len(normalized) and normalized[j] == norm:
                j += 1
            run_length = j - i
            if run_length >= self.consecutive_repeat_threshold:
                for k in range(i, j):
                    reasons[k] = f"repeated {run_length}x"
            i = j

    def _mark_global_repeats(self, normalized: List[str], reasons: List[Optional[str]]) -> None:
        counts = Counter(
            norm for norm, reason in zip(normalized, reasons) if norm and not reason
        )
        for k, norm in enumerate(normalized):
            if reasons[k] or not norm:
                continue
            if counts[norm] >= self.global_repeat_threshold:
                reasons[k] = f"appears {counts[norm]}x total"

    @classmethod
    def from_config(cls, config: dict) -> "HallucinationFilter":
        options = config.get("hallucination") or {}
        return cls(
            no_speech_threshold=float(options.get("no_speech_threshold", 0.6)),
            compression_ratio_threshold=float(options.get("compression_ratio_threshold", 2.4)),
            global_repeat_threshold=int(options.get("global_repeat_threshold", 4)),
        )


def filter_hallucinations(segments: Sequence[RawTranscriptSegment]) -> List[Segment]:
    """Applies a :class:`HallucinationFilter` with the default thresholds."""
    return HallucinationFilter().filter(segments)
