# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tokenizer for reference scripts and recognized speech.

Text is split into alternating TOKEN and DELIMITER elements. A TOKEN is a
maximal run of word characters (Unicode letters, digits, underscore); a
DELIMITER is everything in between. Bracketed stage directions such as
``[pause]`` are absorbed whole into the surrounding delimiter so they are
never matched against speech. Concatenating the element texts always
reproduces the input exactly.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

TokenKind = Literal["TOKEN", "DELIMITER"]

# An unclosed "[" swallows the rest of the text.
_ELEMENT_RE: re.Pattern[str] = re.compile(
    r"(?P<token>\w+)|(?P<delimiter>(?:\[[^\]]*\]?|[^\w\[])+)"
)
_NON_WORD_RE: re.Pattern[str] = re.compile(r"[^\w]")
_WHITESPACE_RE: re.Pattern[str] = re.compile(r"\s+")


@dataclass(frozen=True)
class TextElement:
    """A single token or delimiter span of the input text."""
    kind: TokenKind
    text: str
    index: int  # Position in the element sequence

    @property
    def is_token(self) -> bool:
        return self.kind == "TOKEN"

    def __repr__(self) -> str:
        return f"TextElement({self.index}: {self.kind} {self.text!r})"


def tokenize(text: str | None) -> list[TextElement]:
    """Split text into TOKEN and DELIMITER elements.

    Args:
        text: Input text. None or an empty string yields an empty list.

    Returns:
        Elements in input order, indexed sequentially from 0.
    """
    if not text:
        return []

    elements: list[TextElement] = []
    for match in _ELEMENT_RE.finditer(text):
        kind: TokenKind = "TOKEN" if match.group("token") is not None else "DELIMITER"
        elements.append(TextElement(kind, match.group(0), len(elements)))
    return elements


def tokenize_words(text: str | None) -> list[TextElement]:
    """Return only the TOKEN elements of text (original element indices kept)."""
    return [element for element in tokenize(text) if element.is_token]


def words_of(text: str | None) -> list[str]:
    """Return the word-only sequence for text.

    A word's position in this list is the coordinate used for all alignment.
    """
    return [element.text for element in tokenize_words(text)]


def join_words(words: Iterable[str]) -> str:
    """Join words with single spaces, collapsing any inner whitespace."""
    return _WHITESPACE_RE.sub(" ", " ".join(words)).strip()


def clean_word(word: str) -> str:
    """Lowercase a word and strip every non-word character."""
    return _NON_WORD_RE.sub("", word.lower())
