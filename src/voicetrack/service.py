# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Alignment service: follows a speaker through a script.

The service owns all mutable session state. Recognition events come in
through handle_result (normally from a SpeechSource subscription); each one
is routed to either the whole-document locator or the local matcher, passed
through the turn controller, and, when a decision is reached, turned into a
scroll target for the host.

Everything runs on one thread. With an asyncio loop running, the silence
timer and scroll animation schedule themselves on it; without one the host
drives them through check_silence() and animator.step().
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from . import debug_log
from .config import DEFAULT_CONFIG, TrackingSettings, apply_pace_preset
from .locator import find_global_position
from .matcher import MatchCandidate, MatcherConfig, find_next_position
from .positions import (
    LayoutContext,
    StaticLayout,
    WordPositionMap,
    WordPositionProvider,
    create_position_provider,
)
from .scroll import ScrollAnimator, target_scroll_offset
from .speech_source import SourceStatus, SpeechErrorCode, SpeechSource
from .tokenizer import TextElement, tokenize
from .turn_controller import TurnConfig, TurnController

logger = logging.getLogger(__name__)

# Nominal jump used to time the animation after a whole-document match
GLOBAL_JUMP_ANIMATION_WORDS: int = 5
MIN_PARTIAL_WORDS: int = 3


@dataclass
class SessionState:
    """Alignment state for one tracking session."""
    current_word_index: int = 0
    consecutive_failed_matches: int = 0
    needs_global_search: bool = True
    last_recognized_text: str = ""
    last_speech_activity: float | None = None
    # Which search produced the latest committed position ("local" or "global")
    last_search: str = ""


class AlignmentService:
    """Aligns recognized speech to a reference script and drives scrolling."""

    def __init__(
        self,
        speech_source: SpeechSource | None = None,
        settings: TrackingSettings | dict[str, Any] | None = None,
        position_provider: WordPositionProvider | None = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Args:
            speech_source: Recognizer to subscribe to, or None when results
                are fed in directly (replay, tests)
            settings: Tracking settings; missing keys take their defaults
            position_provider: Overrides the provider chosen by position_mode
            clock: Monotonic clock in seconds
        """
        self.speech_source: SpeechSource | None = speech_source
        self.clock: Callable[[], float] = clock

        # Event callbacks
        self.on_word_match: Callable[[int, float], None] | None = None
        self.on_status_change: Callable[[SourceStatus], None] | None = None
        self.on_recognized_text: Callable[[str, bool], None] | None = None
        self.on_error: Callable[[SpeechErrorCode, str], None] | None = None
        self.on_progress: Callable[[int, int], None] | None = None

        self.elements: list[TextElement] = []
        self._words: list[str] = []
        self.layout: LayoutContext = StaticLayout()
        self.positions: WordPositionMap = WordPositionMap([])
        self.session: SessionState = SessionState()
        self.turn: TurnController = TurnController()
        self.animator: ScrollAnimator = ScrollAnimator(self.layout, clock=clock)
        self.matcher_config: MatcherConfig = MatcherConfig()
        self._fixed_provider: bool = position_provider is not None
        self.position_provider: WordPositionProvider = (
            position_provider or create_position_provider())
        self._status: SourceStatus = "off"
        self._silence_timer: asyncio.TimerHandle | None = None

        merged: dict[str, Any] = {**DEFAULT_CONFIG["tracking"], **(settings or {})}
        self._apply_settings(merged)  # type: ignore[arg-type]

        if speech_source is not None:
            speech_source.on_result(self.handle_result)
            speech_source.on_status(self._set_status)
            speech_source.on_error(self._forward_error)
            speech_source.on_progress(self._forward_progress)

    # ------------------------------------------------------------------
    # Accessors

    @property
    def status(self) -> SourceStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status == "listening"

    @property
    def words(self) -> list[str]:
        """Word-only script sequence (read-only view)."""
        return list(self._words)

    @property
    def total_words(self) -> int:
        return len(self._words)

    @property
    def current_word_index(self) -> int:
        return self.session.current_word_index

    @property
    def last_recognized_text(self) -> str:
        return self.session.last_recognized_text

    # ------------------------------------------------------------------
    # Content and configuration

    def initialize(self, reference_text: str, layout: LayoutContext | None = None) -> None:
        """(Re)build the word sequence and position map for a script."""
        if layout is not None:
            self.layout = layout
            self.animator.layout = layout
        self.elements = tokenize(reference_text)
        self._words = [e.text for e in self.elements if e.is_token]
        self.session = SessionState()
        self.turn.reset()
        self._cancel_silence_timer()
        self.animator.cancel()
        self._build_positions()
        logger.info("Initialized with %d script words", len(self._words))

    def update_content(self, reference_text: str) -> None:
        """Switch to new script text; the session starts over."""
        self.initialize(reference_text)

    def update_layout(self, layout: LayoutContext | None = None) -> None:
        """Rebuild word positions after a layout change, keeping the position."""
        if layout is not None:
            self.layout = layout
            self.animator.layout = layout
        self._build_positions()

    def update_config(self, **changes: Any) -> None:
        """
        Change tracking settings while running.

        Raises:
            ValueError: For unknown setting names or pace presets.
        """
        unknown: list[str] = [k for k in changes if k not in DEFAULT_CONFIG["tracking"]]
        if unknown:
            raise ValueError(f"Unknown tracking settings: {unknown}")
        settings: dict[str, Any] = {**self.settings, **changes}
        if "pace_preset" in changes:
            settings = dict(apply_pace_preset(settings, changes["pace_preset"]))  # type: ignore[arg-type]
        self._apply_settings(settings)  # type: ignore[arg-type]

    def _apply_settings(self, settings: TrackingSettings) -> None:
        self.settings: TrackingSettings = settings
        self.matcher_config = MatcherConfig(
            window_size=settings["window_size"],
            max_jump_distance=settings["max_jump_distance"],
            confidence_threshold=settings["confidence_threshold"],
        )
        self.turn.config = TurnConfig(
            accumulator_size=settings["accumulator_size"],
            max_spread=settings["max_spread"],
            pause_threshold_ms=settings["pause_threshold_ms"],
            update_frequency_ms=settings["update_frequency_ms"],
            min_partial_words=MIN_PARTIAL_WORDS,
            min_jump_distance=settings["min_jump_distance"],
            pause_detection=settings["pause_detection"],
        )
        self.animator.base_ms = settings["animation_base_ms"]
        self.animator.per_word_ms = settings["animation_per_word_ms"]
        if not settings["pause_detection"]:
            self._cancel_silence_timer()

        if not self._fixed_provider and settings["position_mode"] != self.position_provider.mode:
            self.position_provider = create_position_provider(settings["position_mode"])  # type: ignore[arg-type]
            self._build_positions()

    def _build_positions(self) -> None:
        if not self._words:
            self.positions = WordPositionMap([])
            return
        self.positions = self.position_provider.build(self._words, self.layout)

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        """
        Start listening.

        Raises:
            SpeechSourceError: If the speech source cannot start (model or
                microphone problems). The error has already been reported
                through on_error.
        """
        if self.is_active:
            return
        debug_log.clear_log()
        if self.speech_source is None:
            self._set_status("listening")
            return
        if not self.speech_source.is_initialized:
            self._set_status("initializing")
            await self.speech_source.initialize()
        await self.speech_source.start()

    def stop(self) -> None:
        """Stop listening. The next start re-locates the speaker from scratch."""
        if self.speech_source is not None:
            self.speech_source.stop()
        self.session.last_recognized_text = ""
        self.session.needs_global_search = True
        self.session.consecutive_failed_matches = 0
        self.animator.cancel()
        self._cancel_silence_timer()
        self.turn.reset()
        self._set_status("off")

    async def toggle(self) -> None:
        if self.is_active:
            self.stop()
        else:
            await self.start()

    def reset(self) -> None:
        """Go back to the first word and scroll to the top."""
        self.session = SessionState()
        self.turn.reset()
        self._cancel_silence_timer()
        self.animator.cancel()
        self.layout.scroll_offset = 0.0

    def jump_to(self, word_index: int) -> None:
        """Manually position the tracker (e.g., the user clicked a word)."""
        if not self._words:
            return
        target: int = max(0, min(word_index, len(self._words) - 1))
        previous: int = self.session.current_word_index
        self.session.current_word_index = target
        self.session.needs_global_search = False
        self.session.consecutive_failed_matches = 0
        self.turn.clear_accumulator()
        debug_log.log_position_change(
            previous, target, self._words[min(previous, target):max(previous, target) + 1], "manual")
        self._scroll_to_word(target, abs(target - previous))

    def dispose(self) -> None:
        """Stop and release everything, including the speech source."""
        self.stop()
        if self.speech_source is not None:
            self.speech_source.dispose()
        self.on_word_match = None
        self.on_status_change = None
        self.on_recognized_text = None
        self.on_error = None
        self.on_progress = None

    # ------------------------------------------------------------------
    # Recognition

    def handle_result(self, text: str, is_final: bool) -> int | None:
        """
        Process one recognition event.

        Returns:
            The newly committed word index, or None if the position held.
        """
        if not self.is_active:
            logger.debug("Ignoring result while %s: %r", self._status, text)
            return None
        now: float = self.clock()
        self.session.last_speech_activity = now
        self._mark_speech_activity(now)
        if not text.strip():
            return None

        self.session.last_recognized_text = text
        debug_log.log_transcript(text, is_final)
        if self.on_recognized_text:
            self.on_recognized_text(text, is_final)

        if not self.turn.should_process(text, is_final, now):
            return None

        current: int = self.session.current_word_index
        if (self.session.needs_global_search
                or self.session.consecutive_failed_matches >= self.settings["failed_match_threshold"]):
            hint: int = self.estimate_word_index_from_scroll()
            found: MatchCandidate | None = find_global_position(
                text, self._words, self.matcher_config, hint,
                proximity_weight=self.settings["proximity_weight"])
            debug_log.log_match("global", current, -1 if found is None else found.word_index,
                                0.0 if found is None else found.confidence,
                                self._word_at(-1 if found is None else found.word_index))
            if found is not None:
                self.session.last_search = "global"
                self._apply_global_match(found.word_index)
                return found.word_index

        candidate: MatchCandidate = find_next_position(
            text, self._words, current, self.matcher_config)
        debug_log.log_match("local", current, candidate.word_index, candidate.confidence,
                            self._word_at(candidate.word_index))
        if candidate.word_index - current <= 0:
            self.session.consecutive_failed_matches += 1
        else:
            self.session.consecutive_failed_matches = 0

        if not self.turn.in_turn:
            return None
        decision: int | None = self.turn.offer(candidate.word_index, current, is_final)
        if decision is None:
            return None

        self.session.current_word_index = decision
        self.session.last_search = "local"
        debug_log.log_position_change(current, decision, self._words[current:decision + 1], "turn")
        self._scroll_to_word(decision, abs(decision - current))
        return decision

    def _apply_global_match(self, word_index: int) -> None:
        previous: int = self.session.current_word_index
        self.session.current_word_index = word_index
        self.session.needs_global_search = False
        self.session.consecutive_failed_matches = 0
        self.turn.clear_accumulator()
        logger.info("Located speaker at word %d (was %d)", word_index, previous)
        debug_log.log_position_change(
            previous, word_index,
            self._words[min(previous, word_index):max(previous, word_index) + 1], "global")
        self._scroll_to_word(word_index, GLOBAL_JUMP_ANIMATION_WORDS)

    def _word_at(self, word_index: int) -> str:
        if 0 <= word_index < len(self._words):
            return self._words[word_index]
        return ""

    def estimate_word_index_from_scroll(self) -> int:
        """Word nearest the reading line of the current viewport."""
        if len(self.positions) == 0:
            return 0
        reading_line: float = (self.layout.scroll_offset
                               + self.layout.viewport_height * self.settings["scroll_position"] / 100.0)
        return self.positions.nearest_index(reading_line)

    def _scroll_to_word(self, word_index: int, jump_distance: int) -> None:
        offset: float | None = self.positions.offset_of(word_index)
        if offset is None:
            return
        target: float = target_scroll_offset(
            offset, self.layout.viewport_height, self.settings["scroll_position"])
        if self.on_word_match:
            self.on_word_match(word_index, target)
        self.animator.scroll_to(target, jump_distance)

    # ------------------------------------------------------------------
    # Speech turns

    def _mark_speech_activity(self, now: float) -> None:
        self.turn.mark_activity(now)
        self._arm_silence_timer()

    def _arm_silence_timer(self) -> None:
        self._cancel_silence_timer()
        if not self.settings["pause_detection"]:
            return
        try:
            loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._silence_timer = loop.call_later(
            self.settings["pause_threshold_ms"] / 1000.0, self._on_silence)

    def _cancel_silence_timer(self) -> None:
        if self._silence_timer is not None:
            self._silence_timer.cancel()
            self._silence_timer = None

    def _on_silence(self) -> None:
        self._silence_timer = None
        self.turn.end_turn()

    def check_silence(self, now: float | None = None) -> bool:
        """End the speech turn if the pause threshold has passed. Returns True if it ended."""
        return self.turn.expire_if_silent(self.clock() if now is None else now)

    # ------------------------------------------------------------------
    # Speech source events

    def _set_status(self, status: SourceStatus) -> None:
        if status == self._status:
            return
        self._status = status
        logger.info("Status: %s", status)
        if self.on_status_change:
            self.on_status_change(status)

    def _forward_error(self, code: SpeechErrorCode, message: str) -> None:
        if self.on_error:
            self.on_error(code, message)

    def _forward_progress(self, loaded: int, total: int) -> None:
        if self.on_progress:
            self.on_progress(loaded, total)
