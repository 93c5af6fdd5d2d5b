# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Whole-document search used to recover from drift, skips and restarts.

The scan runs coarse-to-fine: windows are sampled every ``step`` words, each
window that clears the confidence threshold is refined word-by-word within
one step either side, and finally anchored to where the recognized words
begin inside it. Candidates are ranked by confidence plus a small bonus for
being close to the region the reader is currently looking at.
"""

import logging
from collections.abc import Sequence

from .matcher import MatchCandidate, MatcherConfig
from .similarity import match_confidence
from .tokenizer import join_words, words_of

logger = logging.getLogger(__name__)

MIN_GLOBAL_WORDS: int = 2
DEFAULT_PROXIMITY_WEIGHT: float = 0.1
DEFAULT_COARSE_DIVISIONS: int = 200


def _window_confidence(text: str, reference: Sequence[str], start: int, size: int) -> float:
    return match_confidence(text, join_words(reference[start:start + size]))


def _anchor(text: str, word_count: int, reference: Sequence[str],
            start: int, size: int) -> MatchCandidate:
    """Locate the start of the recognized words inside a matching window.

    Every sub-window of ``word_count`` words is scored; the earliest best
    offset wins.
    """
    best: MatchCandidate = MatchCandidate(
        start, _window_confidence(text, reference, start, word_count))
    for offset in range(1, size - word_count + 1):
        confidence: float = _window_confidence(text, reference, start + offset, word_count)
        if confidence > best.confidence:
            best = MatchCandidate(start + offset, confidence)
    return best


def find_global_position(
    recognized: str,
    reference: Sequence[str],
    config: MatcherConfig,
    hint_position: int = 0,
    proximity_weight: float = DEFAULT_PROXIMITY_WEIGHT,
    coarse_divisions: int = DEFAULT_COARSE_DIVISIONS
) -> MatchCandidate | None:
    """Search the whole script for the recognized text.

    Args:
        recognized: Recognized speech.
        reference: Word-only script sequence.
        config: Window size and confidence threshold are used.
        hint_position: Word index the reader is probably looking at.
        proximity_weight: Maximum bonus for a candidate at the hint.
        coarse_divisions: The coarse scan samples about this many windows.

    Returns:
        The best candidate, or None when fewer than two words were
        recognized or nothing clears the confidence threshold.
    """
    words: list[str] = words_of(recognized)
    count: int = len(words)
    total: int = len(reference)
    if count < MIN_GLOBAL_WORDS or total == 0:
        return None

    text: str = join_words(words)
    size: int = min(max(count, config.window_size), total)
    step: int = max(1, total // max(1, coarse_divisions))
    last_start: int = total - size

    candidates: list[MatchCandidate] = []
    for start in range(0, last_start + 1, step):
        confidence: float = _window_confidence(text, reference, start, size)
        if confidence >= config.confidence_threshold:
            candidates.append(MatchCandidate(start, confidence))

    if step > 1:
        refined: list[MatchCandidate] = []
        for candidate in candidates:
            best: MatchCandidate = candidate
            for start in range(max(0, candidate.word_index - step),
                               min(last_start, candidate.word_index + step) + 1):
                confidence = _window_confidence(text, reference, start, size)
                if confidence > best.confidence:
                    best = MatchCandidate(start, confidence)
            refined.append(best)
        candidates = refined

    if size > count:
        candidates = [_anchor(text, count, reference, c.word_index, size) for c in candidates]

    winner: MatchCandidate | None = None
    winner_score: float = 0.0
    for candidate in candidates:
        proximity: float = 1.0 - abs(candidate.word_index - hint_position) / total
        score: float = candidate.confidence + proximity * proximity_weight
        if winner is None or score > winner_score:
            winner = candidate
            winner_score = score

    if winner is None:
        logger.debug("Global search found no match for %r", text)
    else:
        logger.debug("Global search: %r -> %s (score=%.3f, hint=%d, %d candidates)",
                     text, winner, winner_score, hint_position, len(candidates))
    return winner
