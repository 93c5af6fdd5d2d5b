# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Mapping from word indices to vertical offsets in the rendered script.

The host supplies geometry through a LayoutContext. Positions are either
measured (the host reports one offset per word) or estimated by linear
interpolation over the total content height. Which one is used is a
configuration choice; the alignment logic only ever sees a WordPositionMap.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

logger = logging.getLogger(__name__)

PositionMode = Literal["estimated", "measured"]


@dataclass(frozen=True)
class WordPosition:
    """Vertical offset of one script word."""
    word_index: int
    offset: float
    text: str


class LayoutContext(ABC):
    """Geometry of the host view that displays the script."""

    @property
    @abstractmethod
    def content_height(self) -> float:
        """Total scrollable height of the script content."""

    @property
    @abstractmethod
    def viewport_height(self) -> float:
        """Visible height of the view."""

    @property
    @abstractmethod
    def scroll_offset(self) -> float:
        """Current scroll offset from the top."""

    @scroll_offset.setter
    @abstractmethod
    def scroll_offset(self, value: float) -> None:
        pass

    def word_offsets(self) -> Sequence[float] | None:
        """Measured per-word offsets, or None when the host cannot measure."""
        return None


@dataclass
class StaticLayout(LayoutContext):
    """In-memory layout, used by the terminal tools and in tests."""
    content: float = 0.0
    viewport: float = 0.0
    offset: float = 0.0
    measured: list[float] | None = field(default=None)

    @property
    def content_height(self) -> float:
        return self.content

    @property
    def viewport_height(self) -> float:
        return self.viewport

    @property
    def scroll_offset(self) -> float:
        return self.offset

    @scroll_offset.setter
    def scroll_offset(self, value: float) -> None:
        self.offset = value

    def word_offsets(self) -> Sequence[float] | None:
        return self.measured


class WordPositionMap:
    """Read-only word index to offset lookup."""

    def __init__(self, positions: Sequence[WordPosition]) -> None:
        self.positions: list[WordPosition] = list(positions)
        self._offsets: list[float] = [p.offset for p in self.positions]

    def __len__(self) -> int:
        return len(self.positions)

    def offset_of(self, word_index: int) -> float | None:
        """Offset of a word, or None when the index is out of range."""
        if 0 <= word_index < len(self.positions):
            return self.positions[word_index].offset
        return None

    def nearest_index(self, offset: float) -> int:
        """Index of the word whose offset is closest to the given offset.

        Returns 0 for an empty map. Ties go to the earlier word. Measured
        offsets need not be sorted, so every word is considered.
        """
        if not self._offsets:
            return 0
        return min(range(len(self._offsets)), key=lambda i: abs(self._offsets[i] - offset))


class WordPositionProvider(ABC):
    """Builds a WordPositionMap for a script in a given layout."""

    mode: PositionMode

    @abstractmethod
    def build(self, words: Sequence[str], layout: LayoutContext) -> WordPositionMap:
        """Compute positions for every word."""


class EstimatedPositions(WordPositionProvider):
    """Linear interpolation: word i of n sits at i / n of the content height."""

    mode: PositionMode = "estimated"

    def build(self, words: Sequence[str], layout: LayoutContext) -> WordPositionMap:
        total: int = len(words)
        height: float = layout.content_height
        return WordPositionMap([
            WordPosition(i, (i / total) * height, word)
            for i, word in enumerate(words)
        ])


class MeasuredPositions(WordPositionProvider):
    """Per-word offsets reported by the host layout."""

    mode: PositionMode = "measured"

    def __init__(self) -> None:
        self._fallback: EstimatedPositions = EstimatedPositions()

    def build(self, words: Sequence[str], layout: LayoutContext) -> WordPositionMap:
        offsets: Sequence[float] | None = layout.word_offsets()
        if offsets is None or len(offsets) < len(words):
            logger.warning(
                "Measured layout has %s offsets for %d words; using estimated positions",
                "no" if offsets is None else len(offsets), len(words))
            return self._fallback.build(words, layout)
        return WordPositionMap([
            WordPosition(i, float(offsets[i]), word)
            for i, word in enumerate(words)
        ])


def create_position_provider(mode: PositionMode = "estimated") -> WordPositionProvider:
    """Create a position provider by mode name.

    Raises:
        ValueError: If the mode is unknown.
    """
    if mode == "estimated":
        return EstimatedPositions()
    if mode == "measured":
        return MeasuredPositions()
    raise ValueError(f"Unknown position mode: {mode}. Available: estimated, measured")
