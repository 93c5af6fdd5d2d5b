"""
voicetrack - Speech-to-script alignment for voice-driven teleprompters.

Follows a speaker through a reference script from a stream of noisy speech
recognition results and turns the speaker's position into smooth scrolling.
"""

__version__ = "0.1.0"

from .locator import find_global_position
from .matcher import MatchCandidate, MatcherConfig, find_next_position
from .positions import LayoutContext, StaticLayout, WordPosition, create_position_provider
from .scroll import ScrollAnimator
from .service import AlignmentService, SessionState
from .speech_source import SpeechSource, SpeechSourceError
from .tokenizer import TextElement, tokenize
from .turn_controller import TurnController

__all__ = [
    "AlignmentService",
    "SessionState",
    "SpeechSource",
    "SpeechSourceError",
    "LayoutContext",
    "StaticLayout",
    "WordPosition",
    "create_position_provider",
    "ScrollAnimator",
    "TurnController",
    "MatchCandidate",
    "MatcherConfig",
    "find_next_position",
    "find_global_position",
    "TextElement",
    "tokenize",
]
