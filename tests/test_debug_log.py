"""Tests for the debug_log module enable/disable functionality."""

from pathlib import Path
from unittest import mock

import pytest

from voicetrack import debug_log


class TestDebugLogEnableDisable:
    """Test the enable/disable functionality of debug logging."""

    def setup_method(self):
        """Reset debug log state before each test."""
        debug_log.disable()

    def teardown_method(self):
        debug_log.disable()

    def test_disabled_by_default(self):
        assert not debug_log.is_enabled()

    def test_enable(self):
        debug_log.enable()
        assert debug_log.is_enabled()

    def test_disable(self):
        debug_log.enable()
        debug_log.disable()
        assert not debug_log.is_enabled()

    def test_logging_is_no_op_when_disabled(self):
        """No log function touches the file system while disabled."""
        with mock.patch.object(debug_log, '_write') as mock_write:
            debug_log.log_transcript("hello", True)
            debug_log.log_match("local", 0, 2, 0.5, "brown")
            debug_log.log_position_change(0, 2, ["the", "quick", "brown"], "turn")
            mock_write.assert_not_called()

    def test_clear_log_no_op_when_disabled(self, tmp_path: Path):
        with mock.patch.object(debug_log, 'LOG_DIR', tmp_path / "logs"):
            debug_log.clear_log()
        assert not (tmp_path / "logs").exists()


class TestDebugLogOutput:
    """Test what gets written when logging is enabled."""

    @pytest.fixture
    def log_file(self, tmp_path: Path):
        log_dir = tmp_path / "logs"
        log_path = log_dir / "alignment.log"
        with mock.patch.object(debug_log, 'LOG_DIR', log_dir), \
                mock.patch.object(debug_log, 'ALIGNMENT_LOG', log_path):
            debug_log.enable()
            yield log_path
            debug_log.disable()

    def test_clear_log_starts_session(self, log_file: Path):
        debug_log.clear_log()
        assert log_file.read_text(encoding="utf-8").startswith("=== New session started")

    def test_clear_log_truncates(self, log_file: Path):
        debug_log.log_transcript("old text", True)
        debug_log.clear_log()
        assert "old text" not in log_file.read_text(encoding="utf-8")

    def test_log_transcript(self, log_file: Path):
        debug_log.log_transcript("the quick brown", False)
        content = log_file.read_text(encoding="utf-8")
        assert "partial" in content
        assert '"the quick brown"' in content

    def test_log_match(self, log_file: Path):
        debug_log.log_match("global", 0, 5, 1.0, "over")
        content = log_file.read_text(encoding="utf-8")
        assert "global" in content
        assert "->    5" in content
        assert "conf=1.00" in content
        assert 'word="over"' in content

    def test_log_position_change(self, log_file: Path):
        debug_log.log_position_change(0, 2, ["the", "quick", "brown"], "turn")
        content = log_file.read_text(encoding="utf-8")
        assert "POSITION CHANGE: 0 -> 2 (turn)" in content
        assert "['the', 'quick', 'brown']" in content
