# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Turn-based debouncing of local match candidates.

Speech arrives in turns separated by pauses. Within a turn, forward
candidates from the local matcher are collected in a small FIFO and only
turned into a scroll decision once enough of them agree. A single wild match
can therefore never move the script on its own, which is what keeps small
recognition errors from snowballing into large drifts.

State is explicit: the controller is either ``Idle`` or ``InTurn`` and the
accumulator only exists while in a turn.
"""

import logging
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    """No speech activity within the pause threshold."""


@dataclass
class InTurn:
    """Speech is in progress; candidates are being accumulated."""
    last_activity: float  # Clock time (seconds) of the latest recognition event
    accumulator: deque[int] = field(default_factory=deque)


TurnState = Idle | InTurn

IDLE: Idle = Idle()


@dataclass
class TurnConfig:
    """Timing and consistency settings for the turn controller."""
    accumulator_size: int = 3
    max_spread: int = 5
    pause_threshold_ms: int = 1200
    update_frequency_ms: int = 800
    min_partial_words: int = 3
    min_jump_distance: int = 2
    pause_detection: bool = True


class TurnController:
    """Tracks speech turns and decides when accumulated candidates may scroll."""

    def __init__(self, config: TurnConfig | None = None) -> None:
        self.config: TurnConfig = config or TurnConfig()
        self.state: TurnState = IDLE
        # Non-forward candidates seen, for diagnostics only
        self.no_progress_count: int = 0
        self._last_processed: float | None = None

    @property
    def in_turn(self) -> bool:
        return isinstance(self.state, InTurn)

    @property
    def accumulator(self) -> tuple[int, ...]:
        """Snapshot of the accumulated candidates (empty when idle)."""
        if isinstance(self.state, InTurn):
            return tuple(self.state.accumulator)
        return ()

    def mark_activity(self, now: float) -> None:
        """Record a recognition event, starting a turn if idle."""
        self.expire_if_silent(now)
        if isinstance(self.state, InTurn):
            self.state.last_activity = now
        else:
            logger.debug("Speech turn started")
            self.state = InTurn(last_activity=now)

    def seconds_until_pause(self, now: float) -> float | None:
        """Time left before the current turn ends, or None when not timing."""
        if not self.config.pause_detection or not isinstance(self.state, InTurn):
            return None
        elapsed: float = now - self.state.last_activity
        return max(0.0, self.config.pause_threshold_ms / 1000.0 - elapsed)

    def expire_if_silent(self, now: float) -> bool:
        """End the turn if the pause threshold has elapsed since the last event.

        Returns:
            True if a turn was ended.
        """
        remaining: float | None = self.seconds_until_pause(now)
        if remaining is None or remaining > 0.0:
            return False
        self.end_turn()
        return True

    def end_turn(self) -> None:
        """Return to Idle, discarding any accumulated candidates."""
        if isinstance(self.state, InTurn):
            logger.debug("Speech turn ended (%d pending candidates dropped)",
                         len(self.state.accumulator))
        self.state = IDLE

    def should_process(self, text: str, is_final: bool, now: float) -> bool:
        """Throttle partial results against each other; final results always pass."""
        if is_final:
            return True
        if len(text.split()) < self.config.min_partial_words:
            return False
        if (self._last_processed is not None
                and (now - self._last_processed) * 1000.0 < self.config.update_frequency_ms):
            return False
        self._last_processed = now
        return True

    def offer(self, candidate: int, current: int, is_final: bool) -> int | None:
        """Feed a local-match candidate.

        Args:
            candidate: Proposed word index (already capped by the matcher).
            current: Committed word index.
            is_final: Whether the candidate came from a final result.

        Returns:
            The word index to scroll to, or None to hold.
        """
        if not isinstance(self.state, InTurn):
            return None

        jump: int = candidate - current
        at_start: bool = candidate == 0 and current == 0
        if jump <= 0 and not at_start:
            self.no_progress_count += 1
            return None

        min_jump: int = 1 if is_final else self.config.min_jump_distance
        if jump < min_jump and not at_start:
            return None

        return self.accumulate(candidate)

    def accumulate(self, candidate: int) -> int | None:
        """Push a candidate and emit the median once the FIFO is full and consistent."""
        if not isinstance(self.state, InTurn):
            return None
        pending: deque[int] = self.state.accumulator
        pending.append(candidate)
        while len(pending) > self.config.accumulator_size:
            pending.popleft()
        if len(pending) < self.config.accumulator_size:
            return None

        spread: int = max(pending) - min(pending)
        if spread > self.config.max_spread:
            logger.debug("Candidates %s too spread out (%d), waiting", list(pending), spread)
            pending.popleft()
            return None

        decision: int = sorted(pending)[len(pending) // 2]
        pending.clear()
        return decision

    def clear_accumulator(self) -> None:
        if isinstance(self.state, InTurn):
            self.state.accumulator.clear()

    def reset(self) -> None:
        """Forget all turn state."""
        self.state = IDLE
        self.no_progress_count = 0
        self._last_processed = None
