# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Local (forward-only, windowed) alignment of recognized speech to the script.

The local matcher is the cheap, common path: starting from the current word
it looks a few words ahead for the prefix that best matches what was said,
checks the surrounding context for plausibility and caps how far a single
update may move. It never moves backwards.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .similarity import edit_distance, match_confidence
from .tokenizer import join_words, words_of

logger = logging.getLogger(__name__)

# Number of trailing recognized words used for the context confidence check
CONTEXT_RECENT_WORDS: int = 5
# Reference words either side of the candidate included in that check
CONTEXT_RADIUS: int = 3


@dataclass
class MatcherConfig:
    """Tuning values shared by local and global search."""
    window_size: int = 5
    max_jump_distance: int = 2
    confidence_threshold: float = 0.35


@dataclass(frozen=True)
class MatchCandidate:
    """A proposed script position with its confidence in [0, 1]."""
    word_index: int
    confidence: float

    def __repr__(self) -> str:
        return f"MatchCandidate({self.word_index}, conf={self.confidence:.2f})"


def _normalize(text: str) -> str:
    return join_words(words_of(text)).lower()


def compute_token_index(
    recognized: str,
    reference: Sequence[str],
    from_index: int,
    window_size: int
) -> int | None:
    """Find the reference word where the recognized text most likely ends.

    Each prefix of ``reference[from_index:from_index + window_size]`` is
    compared to the recognized text; the index of the last word of the
    closest prefix is returned (first minimum wins).

    Returns:
        Absolute word index, or None when the window or text is empty.
    """
    target: str = _normalize(recognized)
    window: Sequence[str] = reference[max(0, from_index):from_index + window_size]
    if not target or not window:
        return None

    best_offset: int = 0
    best_distance: int | None = None
    prefix: str = ""
    for offset, word in enumerate(window):
        prefix = word.lower() if offset == 0 else f"{prefix} {word.lower()}"
        distance: int = edit_distance(target, prefix)
        if best_distance is None or distance < best_distance:
            best_distance = distance
            best_offset = offset

    return max(0, from_index) + best_offset


def context_confidence(recognized: str, reference: Sequence[str], word_index: int) -> float:
    """Confidence of the last few recognized words against the script around word_index."""
    recent: list[str] = words_of(recognized)[-CONTEXT_RECENT_WORDS:]
    start: int = max(0, word_index - CONTEXT_RADIUS)
    context: Sequence[str] = reference[start:word_index + CONTEXT_RADIUS + 1]
    return match_confidence(join_words(recent), join_words(context))


def find_next_position(
    recognized: str,
    reference: Sequence[str],
    from_index: int,
    config: MatcherConfig
) -> MatchCandidate:
    """Propose the next position at or after from_index.

    The result is never behind from_index and never more than
    ``config.max_jump_distance`` ahead of it. When no alignment is found, or
    the context check falls below the confidence threshold, the current
    position is returned unchanged.
    """
    word_index: int | None = compute_token_index(
        recognized, reference, from_index, config.window_size)
    if word_index is None or word_index < from_index:
        return MatchCandidate(from_index, 0.0)

    confidence: float = context_confidence(recognized, reference, word_index)
    if confidence < config.confidence_threshold:
        logger.debug("Local match at %d rejected (conf=%.2f)", word_index, confidence)
        return MatchCandidate(from_index, confidence)

    capped: int = min(word_index, from_index + config.max_jump_distance)
    if capped != word_index:
        logger.debug("Local jump %d -> %d capped to %d", from_index, word_index, capped)
    return MatchCandidate(capped, confidence)
