# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for AlignmentService driven directly through handle_result().
"""

import asyncio
from unittest.mock import Mock

import pytest

from voicetrack.positions import StaticLayout
from voicetrack.replay import SimulatedClock
from voicetrack.service import AlignmentService

SCRIPT: str = "The quick brown fox jumps over the lazy dog."


def make_service(
    offset: float = 0.0,
    settings: dict | None = None,
    clock: SimulatedClock | None = None
) -> AlignmentService:
    """A listening service with one word per 100px in a 100px viewport."""
    service: AlignmentService = AlignmentService(settings=settings, clock=clock or SimulatedClock())
    service.initialize(SCRIPT, StaticLayout(content=900, viewport=100, offset=offset))
    asyncio.run(service.start())
    return service


def assert_scrolled_to(matches: Mock, word_index: int, target: float) -> None:
    """Positions are interpolated, so compare offsets approximately."""
    matches.assert_called_once()
    called_index, called_target = matches.call_args.args
    assert called_index == word_index
    assert called_target == pytest.approx(target)


class TestLocalTracking:
    """Tests for following the speaker through the local matcher."""

    def setup_method(self) -> None:
        self.clock: SimulatedClock = SimulatedClock()
        self.service: AlignmentService = make_service(clock=self.clock)
        self.service.session.needs_global_search = False
        self.matches: Mock = Mock()
        self.service.on_word_match = self.matches

    def _say(self, text: str, is_final: bool = True) -> int | None:
        self.clock.advance_ms(100)
        return self.service.handle_result(text, is_final)

    def test_repeated_results_commit_after_agreement(self) -> None:
        assert self._say("the quick brown") is None
        assert self._say("the quick brown") is None
        assert self._say("the quick brown") == 2
        assert self.service.current_word_index == 2
        # Word 2 sits at 200px; 20% of the viewport stays above it
        assert_scrolled_to(self.matches, 2, 180.0)

    def test_recognized_text_is_reported(self) -> None:
        texts: Mock = Mock()
        self.service.on_recognized_text = texts
        self._say("the quick", is_final=False)
        texts.assert_called_once_with("the quick", False)
        assert self.service.last_recognized_text == "the quick"

    def test_short_partial_does_not_move(self) -> None:
        assert self._say("the quick", is_final=False) is None
        assert self.service.session.consecutive_failed_matches == 0
        assert self.service.turn.accumulator == ()

    def test_blank_result_is_ignored(self) -> None:
        texts: Mock = Mock()
        self.service.on_recognized_text = texts
        assert self._say("   ") is None
        texts.assert_not_called()
        assert self.service.last_recognized_text == ""

    def test_blank_result_starts_turn(self) -> None:
        assert not self.service.turn.in_turn
        self._say("")
        assert self.service.turn.in_turn
        assert self.service.session.last_speech_activity == pytest.approx(0.1)

    def test_failed_matches_are_counted(self) -> None:
        self.service.session.current_word_index = 4
        self._say("xyzzy plugh qwerty")
        self._say("xyzzy plugh qwerty")
        assert self.service.session.consecutive_failed_matches == 2
        assert self.service.current_word_index == 4

    def test_pause_clears_pending_candidates(self) -> None:
        self._say("the quick brown")
        self._say("the quick brown")
        self.clock.advance_ms(1500)
        assert self.service.check_silence()
        assert self.service.turn.accumulator == ()
        # The next turn needs three fresh agreeing candidates
        assert self._say("the quick brown") is None

    def test_results_ignored_when_not_listening(self) -> None:
        self.service.stop()
        assert self._say("the quick brown") is None
        assert self.service.last_recognized_text == ""


class TestGlobalSearch:
    """Tests for locating the speaker anywhere in the script."""

    def test_finds_phrase_near_viewport(self) -> None:
        # Reading line at 700 + 20% of 100 = 720px, nearest word 7
        service: AlignmentService = make_service(offset=700.0)
        assert service.estimate_word_index_from_scroll() == 7

        matches: Mock = Mock()
        service.on_word_match = matches
        assert service.handle_result("over the lazy dog", True) == 5
        assert service.current_word_index == 5
        assert not service.session.needs_global_search
        assert service.session.last_search == "global"
        assert_scrolled_to(matches, 5, 480.0)

    def test_single_word_falls_back_to_local(self) -> None:
        service: AlignmentService = make_service()
        assert service.handle_result("fox", True) is None
        assert service.session.needs_global_search
        assert service.session.consecutive_failed_matches == 1

    def test_repeated_failures_trigger_global_search(self) -> None:
        service: AlignmentService = make_service()
        service.session.needs_global_search = False
        service.session.consecutive_failed_matches = 8
        assert service.handle_result("over the lazy dog", True) == 5
        assert service.session.consecutive_failed_matches == 0

    def test_failure_threshold_is_configurable(self) -> None:
        service: AlignmentService = make_service(settings={"failed_match_threshold": 2})
        service.session.needs_global_search = False
        service.session.consecutive_failed_matches = 2
        assert service.handle_result("over the lazy dog", True) == 5


class TestControl:
    """Tests for stop, reset, jump_to and content/config changes."""

    def setup_method(self) -> None:
        self.service: AlignmentService = make_service()

    def test_start_sets_listening(self) -> None:
        assert self.service.status == "listening"
        assert self.service.is_active

    def test_stop_forces_global_search(self) -> None:
        self.service.handle_result("over the lazy dog", True)
        self.service.session.consecutive_failed_matches = 3
        self.service.stop()
        assert self.service.status == "off"
        assert self.service.session.needs_global_search
        assert self.service.session.consecutive_failed_matches == 0
        assert not self.service.turn.in_turn
        assert self.service.current_word_index == 5

    def test_toggle(self) -> None:
        asyncio.run(self.service.toggle())
        assert self.service.status == "off"
        asyncio.run(self.service.toggle())
        assert self.service.status == "listening"

    def test_reset(self) -> None:
        self.service.handle_result("over the lazy dog", True)
        self.service.layout.scroll_offset = 480.0
        self.service.reset()
        assert self.service.current_word_index == 0
        assert self.service.session.needs_global_search
        assert self.service.layout.scroll_offset == 0.0

    def test_jump_to(self) -> None:
        matches: Mock = Mock()
        self.service.on_word_match = matches
        self.service.jump_to(6)
        assert self.service.current_word_index == 6
        assert not self.service.session.needs_global_search
        assert_scrolled_to(matches, 6, 580.0)

    def test_jump_to_is_clamped(self) -> None:
        self.service.jump_to(100)
        assert self.service.current_word_index == 8
        self.service.jump_to(-3)
        assert self.service.current_word_index == 0

    def test_update_content_restarts_session(self) -> None:
        self.service.jump_to(6)
        self.service.update_content("A completely new script")
        assert self.service.words == ["A", "completely", "new", "script"]
        assert self.service.current_word_index == 0
        assert self.service.session.needs_global_search

    def test_words_is_a_copy(self) -> None:
        self.service.words.append("extra")
        assert self.service.total_words == 9

    def test_update_layout_keeps_position(self) -> None:
        self.service.jump_to(4)
        self.service.update_layout(StaticLayout(content=1800, viewport=200))
        assert self.service.current_word_index == 4
        assert self.service.positions.offset_of(4) == pytest.approx(800.0)

    def test_update_config(self) -> None:
        self.service.update_config(window_size=7, max_spread=2)
        assert self.service.matcher_config.window_size == 7
        assert self.service.turn.config.max_spread == 2

    def test_update_config_pace_preset(self) -> None:
        self.service.update_config(pace_preset="responsive")
        assert self.service.matcher_config.window_size == 8
        assert self.service.matcher_config.max_jump_distance == 5
        assert self.service.matcher_config.confidence_threshold == 0.15
        assert self.service.turn.config.update_frequency_ms == 400
        assert self.service.animator.base_ms == 300

    def test_update_config_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown tracking settings"):
            self.service.update_config(scroll_speed=3)
        with pytest.raises(ValueError, match="Unknown pace preset"):
            self.service.update_config(pace_preset="sprint")

    def test_update_config_position_mode(self) -> None:
        self.service.update_config(position_mode="measured")
        assert self.service.position_provider.mode == "measured"

    def test_sessions_are_independent(self) -> None:
        other: AlignmentService = make_service()
        self.service.jump_to(6)
        assert other.current_word_index == 0

    def test_dispose_drops_callbacks(self) -> None:
        self.service.on_word_match = Mock()
        self.service.dispose()
        assert self.service.on_word_match is None
        assert self.service.status == "off"
