# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for eased scroll animation.
"""

import asyncio

import pytest

from voicetrack.positions import StaticLayout
from voicetrack.replay import SimulatedClock
from voicetrack.scroll import (
    ScrollAnimation,
    ScrollAnimator,
    animation_duration_ms,
    ease_in_out_quad,
    target_scroll_offset,
)


class TestScrollMath:

    @pytest.mark.parametrize("t,expected", [
        (0.0, 0.0),
        (0.25, 0.125),
        (0.5, 0.5),
        (0.75, 0.875),
        (1.0, 1.0),
        (-1.0, 0.0),
        (2.0, 1.0),
    ])
    def test_ease_in_out_quad(self, t: float, expected: float) -> None:
        assert ease_in_out_quad(t) == pytest.approx(expected)

    def test_target_offset_leaves_context_above(self) -> None:
        assert target_scroll_offset(500.0, 1000.0, 20.0) == 300.0

    def test_target_offset_never_negative(self) -> None:
        assert target_scroll_offset(100.0, 1000.0, 20.0) == 0.0

    def test_duration_grows_with_jump(self) -> None:
        assert animation_duration_ms(0) == 400.0
        assert animation_duration_ms(3) == 580.0
        assert animation_duration_ms(-3) == 580.0
        assert animation_duration_ms(2, base_ms=100, per_word_ms=10) == 120.0

    def test_zero_duration_animation_is_finished(self) -> None:
        animation: ScrollAnimation = ScrollAnimation(0.0, 100.0, 5.0, 0.0)
        assert animation.finished(5.0)
        assert animation.offset_at(5.0) == 100.0


class TestScrollAnimator:
    """Tests for ScrollAnimator driven by step()."""

    def setup_method(self) -> None:
        self.clock: SimulatedClock = SimulatedClock()
        self.layout: StaticLayout = StaticLayout(content=5000, viewport=500)
        self.animator: ScrollAnimator = ScrollAnimator(self.layout, clock=self.clock)

    def test_animates_with_easing(self) -> None:
        animation: ScrollAnimation | None = self.animator.scroll_to(1000.0, 5)
        assert animation is not None
        assert animation.duration_ms == 700.0

        self.clock.advance_ms(350)
        assert self.animator.step()
        assert self.layout.scroll_offset == pytest.approx(500.0)

        self.clock.advance_ms(400)
        assert not self.animator.step()
        assert self.layout.scroll_offset == 1000.0
        assert not self.animator.in_flight

    def test_small_distance_snaps(self) -> None:
        self.layout.scroll_offset = 100.0
        assert self.animator.scroll_to(103.0, 1) is None
        assert self.layout.scroll_offset == 103.0
        assert not self.animator.in_flight

    def test_new_target_replaces_animation(self) -> None:
        """A new target starts from wherever the old animation had reached."""
        self.animator.scroll_to(1000.0, 5)
        self.clock.advance_ms(350)
        self.animator.step()

        animation: ScrollAnimation | None = self.animator.scroll_to(0.0, 2)
        assert animation is not None
        assert animation.start_offset == pytest.approx(500.0)
        assert animation.target_offset == 0.0

    def test_cancel_stops_in_place(self) -> None:
        self.animator.scroll_to(1000.0, 5)
        self.clock.advance_ms(350)
        self.animator.step()
        self.animator.cancel()
        assert not self.animator.in_flight
        assert not self.animator.step()
        assert self.layout.scroll_offset == pytest.approx(500.0)

    def test_step_without_animation(self) -> None:
        assert not self.animator.step()
        assert self.layout.scroll_offset == 0.0


class TestScrollAnimatorAsync:
    """Tests for the self-driving animation on a running event loop."""

    @pytest.mark.asyncio
    async def test_runs_to_completion(self) -> None:
        layout: StaticLayout = StaticLayout(content=1000, viewport=100)
        animator: ScrollAnimator = ScrollAnimator(
            layout, base_ms=20, per_word_ms=0, frame_interval_ms=1)
        animator.scroll_to(100.0, 0)
        await asyncio.sleep(0.2)
        assert layout.scroll_offset == 100.0
        assert not animator.in_flight

    @pytest.mark.asyncio
    async def test_cancel_stops_driver(self) -> None:
        layout: StaticLayout = StaticLayout(content=1000, viewport=100)
        animator: ScrollAnimator = ScrollAnimator(layout, base_ms=10000, frame_interval_ms=1)
        animator.scroll_to(500.0, 0)
        await asyncio.sleep(0.02)
        animator.cancel()
        stopped_at: float = layout.scroll_offset
        await asyncio.sleep(0.02)
        assert layout.scroll_offset == stopped_at
        assert stopped_at < 500.0
