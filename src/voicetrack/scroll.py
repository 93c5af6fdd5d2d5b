# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Eased scrolling towards the word being spoken.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .positions import LayoutContext

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def ease_in_out_quad(t: float) -> float:
    """Quadratic ease-in-out on [0, 1]."""
    t = min(1.0, max(0.0, t))
    if t < 0.5:
        return 2 * t * t
    return 1 - (-2 * t + 2) ** 2 / 2


def target_scroll_offset(word_offset: float, viewport_height: float,
                         scroll_position_percent: float = 20.0) -> float:
    """Scroll offset that puts a word the given percentage down the viewport."""
    return max(0.0, word_offset - viewport_height * scroll_position_percent / 100.0)


def animation_duration_ms(jump_distance: int, base_ms: float = 400.0,
                          per_word_ms: float = 60.0) -> float:
    """Bigger jumps get proportionally longer animations."""
    return base_ms + per_word_ms * abs(jump_distance)


@dataclass
class ScrollAnimation:
    """One eased transition between two scroll offsets."""
    start_offset: float
    target_offset: float
    start_time: float  # Clock seconds
    duration_ms: float

    def progress(self, now: float) -> float:
        if self.duration_ms <= 0:
            return 1.0
        return min(1.0, max(0.0, (now - self.start_time) * 1000.0 / self.duration_ms))

    def offset_at(self, now: float) -> float:
        eased: float = ease_in_out_quad(self.progress(now))
        return self.start_offset + (self.target_offset - self.start_offset) * eased

    def finished(self, now: float) -> bool:
        return self.progress(now) >= 1.0


class ScrollAnimator:
    """Drives the layout's scroll offset towards a target.

    With a running asyncio loop the animation advances itself every frame;
    otherwise the host calls step() from its own frame callback.
    """

    def __init__(
        self,
        layout: LayoutContext,
        base_ms: float = 400.0,
        per_word_ms: float = 60.0,
        snap_threshold_px: float = 5.0,
        frame_interval_ms: float = 16.0,
        clock: Clock = time.monotonic
    ) -> None:
        self.layout: LayoutContext = layout
        self.base_ms: float = base_ms
        self.per_word_ms: float = per_word_ms
        self.snap_threshold_px: float = snap_threshold_px
        self.frame_interval_ms: float = frame_interval_ms
        self.clock: Clock = clock
        self.animation: ScrollAnimation | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def in_flight(self) -> bool:
        return self.animation is not None

    def scroll_to(self, target_offset: float, jump_distance: int) -> ScrollAnimation | None:
        """Start moving to target_offset, replacing any animation in flight.

        Returns:
            The new animation, or None if the distance was small enough to
            apply immediately.
        """
        self.cancel()
        start: float = self.layout.scroll_offset
        if abs(target_offset - start) < self.snap_threshold_px:
            self.layout.scroll_offset = target_offset
            return None

        self.animation = ScrollAnimation(
            start_offset=start,
            target_offset=target_offset,
            start_time=self.clock(),
            duration_ms=animation_duration_ms(jump_distance, self.base_ms, self.per_word_ms),
        )
        logger.debug("Scrolling %.0f -> %.0f over %.0fms",
                     start, target_offset, self.animation.duration_ms)
        self._start_driver()
        return self.animation

    def step(self, now: float | None = None) -> bool:
        """Advance the animation to now. Returns True while still animating."""
        animation: ScrollAnimation | None = self.animation
        if animation is None:
            return False
        if now is None:
            now = self.clock()
        self.layout.scroll_offset = animation.offset_at(now)
        if animation.finished(now):
            self.animation = None
            return False
        return True

    def cancel(self) -> None:
        """Stop the current animation where it is."""
        self.animation = None
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
            self._task = None

    def _start_driver(self) -> None:
        try:
            loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._task = loop.create_task(self._run())

    async def _run(self) -> None:
        while self.step():
            await asyncio.sleep(self.frame_interval_ms / 1000.0)
