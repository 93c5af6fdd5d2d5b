"""
Debug logging of alignment decisions.

Writes one line per decision to logs/alignment.log so a session can be
inspected afterwards: recognized text, local and global match results,
accumulator emissions and position changes.

Logging is disabled by default. Call enable() to turn it on.
"""

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

# Log files location (in project root)
LOG_DIR: Path = Path(__file__).parent.parent.parent / "logs"
ALIGNMENT_LOG: Path = LOG_DIR / "alignment.log"

# Global flag to control whether debug logging is enabled
_ENABLED: bool = False  # pylint: disable=invalid-name


def enable() -> None:
    """Enable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = True


def disable() -> None:
    """Disable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = False


def is_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _ENABLED


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def _write(line: str) -> None:
    LOG_DIR.mkdir(exist_ok=True)
    with open(ALIGNMENT_LOG, 'a', encoding='utf-8') as f:
        f.write(f"[{_timestamp()}] {line}\n")


def clear_log() -> None:
    """Start a fresh log for a new session."""
    if not _ENABLED:
        return
    LOG_DIR.mkdir(exist_ok=True)
    with open(ALIGNMENT_LOG, 'w', encoding='utf-8') as f:
        f.write(f"=== New session started at {datetime.now().isoformat()} ===\n\n")


def log_transcript(text: str, is_final: bool) -> None:
    """Log recognized text as it arrives."""
    if not _ENABLED:
        return
    kind: str = "final" if is_final else "partial"
    _write(f"{kind:8} \"{text[-80:]}\"")


def log_match(
    search: str,
    current: int,
    candidate: int,
    confidence: float,
    word: str = ""
) -> None:
    """
    Log one local or global search result.

    Args:
        search: "local" or "global"
        current: Committed position when the search ran
        candidate: Position proposed by the search (-1 for no match)
        confidence: Match confidence
        word: Script word at the candidate position
    """
    if not _ENABLED:
        return
    _write(f"{search:8} pos={current:4d} -> {candidate:4d} "
           f"conf={confidence:.2f} word=\"{word}\"")


def log_position_change(old_pos: int, new_pos: int, words: Sequence[str], reason: str) -> None:
    """Log a committed position change and the words it skipped over."""
    if not _ENABLED:
        return
    _write(f"POSITION CHANGE: {old_pos} -> {new_pos} ({reason})")
    _write(f"         words: {list(words)}")
