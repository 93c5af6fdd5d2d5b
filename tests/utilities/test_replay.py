"""Tests for the transcript replay tool."""

import io
from pathlib import Path

from voicetrack.replay import ReplayEvent, SimulatedClock, load_transcript, replay_transcript

SCRIPT = "The quick brown fox jumps over the lazy dog."


class TestLoadTranscript:
    """Test transcript file parsing."""

    def test_skips_markers_and_blank_lines(self, tmp_path: Path):
        transcript_path = tmp_path / "transcript.txt"
        transcript_path.write_text(
            "=== Transcript started ===\n"
            "hello there\n"
            "\n"
            "  second line  \n"
            "=== Transcript ended ===\n",
            encoding="utf-8",
        )
        assert load_transcript(transcript_path) == ["hello there", "second line"]


class TestSimulatedClock:

    def test_advance(self):
        clock = SimulatedClock()
        assert clock() == 0.0
        clock.advance_ms(250)
        assert clock() == 0.25


class TestReplayTranscript:
    """Test replaying lines through the alignment service."""

    def test_first_line_locates_speaker(self):
        output = io.StringIO()
        events: list[ReplayEvent] = replay_transcript(
            ["the quick brown fox", "jumps over the lazy dog"], SCRIPT, output)

        assert len(events) == 2
        assert events[0].event_type == "global"
        assert events[0].position_after == 0
        assert events[0].script_word == "The"
        assert all(e.is_final for e in events)

    def test_summary_written(self):
        output = io.StringIO()
        replay_transcript(["the quick brown fox"], SCRIPT, output)
        report = output.getvalue()

        assert "TRANSCRIPT REPLAY LOG" in report
        assert "Script words: 9" in report
        assert "Events processed: 1" in report
        assert "Global jumps: 1" in report

    def test_holds_only_logged_when_verbose(self):
        quiet = io.StringIO()
        replay_transcript(["fox"], SCRIPT, quiet)
        assert "(hold, final)" not in quiet.getvalue()

        verbose = io.StringIO()
        events = replay_transcript(["fox"], SCRIPT, verbose, verbose=True)
        assert events[0].event_type == "hold"
        assert "(hold, final)" in verbose.getvalue()

    def test_word_by_word(self):
        output = io.StringIO()
        events = replay_transcript(["the quick brown fox"], SCRIPT, output, word_by_word=True)

        assert [e.text for e in events] == [
            "the", "the quick", "the quick brown", "the quick brown fox"]
        assert [e.is_final for e in events] == [False, False, False, True]
        assert "WORD-BY-WORD MODE" in output.getvalue()

    def test_settings_are_applied(self):
        output = io.StringIO()
        events = replay_transcript(
            ["the quick brown fox"], SCRIPT, output,
            settings={"confidence_threshold": 0.99, "window_size": 9})
        # The whole script is one window, so the recognized words cannot clear 0.99
        assert events[0].event_type == "hold"
