# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Debug tool for replaying a transcript through the alignment service.

This CLI tool takes a transcript file (one recognized utterance per line)
and a script file, feeds the utterances to an AlignmentService on a
simulated clock, and writes a report of every position decision to help
tune the tracking settings.
"""

import argparse
import asyncio
import math
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, TextIO

from .config import load_config, resolve_tracking_settings
from .positions import StaticLayout
from .script_text import load_script
from .service import AlignmentService

EventType = Literal["global", "advance", "hold"]

# Simulated timing
DEFAULT_LINE_GAP_MS: int = 500
DEFAULT_WORD_INTERVAL_MS: int = 300
# Simulated view: one line of text every 40px, ten words per line
LINE_HEIGHT_PX: float = 40.0
WORDS_PER_LINE: int = 10
VIEWPORT_HEIGHT_PX: float = 400.0


@dataclass
class ReplayEvent:
    """A single recognition event during transcript replay."""
    transcript_line: int
    text: str
    is_final: bool
    position_before: int
    position_after: int
    script_word: str
    event_type: EventType


class SimulatedClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 0.0) -> None:
        self.now: float = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


def load_transcript(path: Path) -> list[str]:
    """Load transcript file and extract transcript lines.

    Filters out metadata lines (starting with '===') and blank lines.
    """
    lines: list[str] = []
    with open(path, encoding='utf-8') as f:
        for line in f:
            stripped_line: str = line.strip()
            if stripped_line.startswith('===') or not stripped_line:
                continue
            lines.append(stripped_line)
    return lines


def create_replay_service(
    script_text: str,
    settings: dict[str, Any] | None = None,
    clock: SimulatedClock | None = None
) -> AlignmentService:
    """Build a listening service over a simulated layout."""
    service: AlignmentService = AlignmentService(settings=settings, clock=clock or SimulatedClock())
    service.initialize(script_text)
    lines: int = max(1, math.ceil(service.total_words / WORDS_PER_LINE))
    service.update_layout(StaticLayout(content=lines * LINE_HEIGHT_PX, viewport=VIEWPORT_HEIGHT_PX))
    asyncio.run(service.start())
    return service


def _line_events(lines: list[str]) -> Iterator[tuple[int, str, bool, float]]:
    for line_num, line in enumerate(lines, start=1):
        yield line_num, line, True, DEFAULT_LINE_GAP_MS


def _word_events(lines: list[str]) -> Iterator[tuple[int, str, bool, float]]:
    for line_num, line in enumerate(lines, start=1):
        words: list[str] = line.split()
        for word_idx in range(len(words)):
            is_final: bool = word_idx == len(words) - 1
            delay: float = DEFAULT_LINE_GAP_MS if word_idx == 0 else DEFAULT_WORD_INTERVAL_MS
            yield line_num, " ".join(words[:word_idx + 1]), is_final, delay


def _write_header(output: TextIO, title: str, service: AlignmentService, line_count: int) -> None:
    output.write("=" * 80 + "\n")
    output.write(f"{title}\n")
    output.write(f"Generated: {datetime.now().isoformat()}\n")
    output.write(f"Script words: {service.total_words}\n")
    output.write(f"Transcript lines: {line_count}\n")
    output.write("=" * 80 + "\n\n")
    output.write("TRACKING LOG:\n")
    output.write("-" * 40 + "\n")


def _write_summary(output: TextIO, service: AlignmentService, events: list[ReplayEvent]) -> None:
    output.write("\n" + "=" * 80 + "\n")
    output.write("SUMMARY:\n")
    output.write("-" * 40 + "\n")

    globals_: list[ReplayEvent] = [e for e in events if e.event_type == "global"]
    advances: list[ReplayEvent] = [e for e in events if e.event_type == "advance"]
    holds: list[ReplayEvent] = [e for e in events if e.event_type == "hold"]

    output.write(f"Events processed: {len(events)}\n")
    output.write(f"Final position: {service.current_word_index} / {service.total_words}\n")
    output.write(f"Advances: {len(advances)}\n")
    output.write(f"Holds: {len(holds)}\n")
    output.write(f"Global jumps: {len(globals_)}\n")

    if globals_:
        output.write("\nGlobal jump events:\n")
        for e in globals_:
            output.write(
                f"  Line {e.transcript_line}: -> position {e.position_after} "
                f"\"{e.script_word}\"\n"
            )


def replay_transcript(
    transcript_lines: list[str],
    script_text: str,
    output: TextIO,
    verbose: bool = False,
    word_by_word: bool = False,
    settings: dict[str, Any] | None = None
) -> list[ReplayEvent]:
    """Replay transcript through the alignment service and log events.

    Args:
        transcript_lines: Lines of transcript text
        script_text: The script content
        output: File handle to write log output
        verbose: If True, log every event. If False, only log position changes.
        word_by_word: Build each line up word by word as partial results,
            ending with the full line as a final result
        settings: Tracking settings for the service

    Returns:
        List of all replay events
    """
    clock: SimulatedClock = SimulatedClock()
    service: AlignmentService = create_replay_service(script_text, settings, clock)
    events: list[ReplayEvent] = []
    words: list[str] = service.words

    title: str = "TRANSCRIPT REPLAY LOG"
    if word_by_word:
        title += " (WORD-BY-WORD MODE)"
    _write_header(output, title, service, len(transcript_lines))

    source = _word_events(transcript_lines) if word_by_word else _line_events(transcript_lines)
    last_line: int = 0
    for line_num, text, is_final, delay_ms in source:
        if line_num != last_line:
            output.write(f"\n--- Line {line_num}: \"{transcript_lines[line_num - 1][:60]}\" ---\n")
            last_line = line_num

        clock.advance_ms(delay_ms)
        before: int = service.current_word_index
        decision: int | None = service.handle_result(text, is_final)
        after: int = service.current_word_index

        event_type: EventType
        if decision is None:
            event_type = "hold"
        elif service.session.last_search == "global":
            event_type = "global"
        else:
            event_type = "advance"
        script_word: str = words[after] if after < len(words) else "<END>"

        if event_type != "hold" or verbose:
            kind: str = "final" if is_final else "partial"
            output.write(
                f"  [{after:4d}] \"{script_word}\" ({event_type}, {kind}) "
                f"pos: {before} -> {after}\n"
            )

        events.append(ReplayEvent(
            transcript_line=line_num,
            text=text,
            is_final=is_final,
            position_before=before,
            position_after=after,
            script_word=script_word,
            event_type=event_type,
        ))

    _write_summary(output, service, events)
    service.dispose()
    return events


def main() -> None:
    """CLI entry point for the transcript replay tool."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Replay a recognized transcript through the alignment service"
    )
    parser.add_argument("transcript", type=Path, help="Path to transcript file")
    parser.add_argument("script", type=Path, help="Path to script file")
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output log file path (default: stdout)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every event, not just position changes"
    )
    parser.add_argument(
        "-w", "--word-by-word",
        action="store_true",
        help="Process transcript word-by-word (simulates partial results)"
    )
    parser.add_argument(
        "--preset",
        choices=["conservative", "balanced", "responsive", "custom"],
        default=None,
        help="Speaking pace preset (overrides the config file)"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default: .voicetrack.yaml in the current directory)"
    )

    args: argparse.Namespace = parser.parse_args()

    if not args.transcript.exists():
        print(f"Error: Transcript file not found: {args.transcript}", file=sys.stderr)
        sys.exit(1)
    if not args.script.exists():
        print(f"Error: Script file not found: {args.script}", file=sys.stderr)
        sys.exit(1)

    try:
        transcript_lines: list[str] = load_transcript(args.transcript)
        script_text: str = load_script(args.script)
    except OSError as e:
        print(f"Error loading files: {e}", file=sys.stderr)
        sys.exit(1)

    if not transcript_lines:
        print("Error: No transcript lines found", file=sys.stderr)
        sys.exit(1)

    config = load_config(args.config)
    if args.preset:
        config["tracking"]["pace_preset"] = args.preset
    settings: dict[str, Any] = dict(resolve_tracking_settings(config))

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            replay_transcript(transcript_lines, script_text, f, args.verbose,
                              args.word_by_word, settings)
        print(f"Replay log written to: {args.output}")
    else:
        replay_transcript(transcript_lines, script_text, sys.stdout, args.verbose,
                          args.word_by_word, settings)


if __name__ == "__main__":
    main()
