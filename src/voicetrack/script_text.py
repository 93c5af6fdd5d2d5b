# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Reference script loading.

Scripts are written in Markdown. Before alignment they are rendered to HTML
and reduced back to the prose a speaker will actually read, so that
formatting characters, code blocks and (optionally) headers never enter the
word sequence.
"""

import re
from html.parser import HTMLParser
from pathlib import Path

import markdown

# Content of these elements is never read aloud
SKIPPED_TAGS: frozenset[str] = frozenset(["pre", "code", "script", "style"])
HEADER_TAGS: frozenset[str] = frozenset(["h1", "h2", "h3", "h4", "h5", "h6"])
# Elements that end a line of prose
BLOCK_TAGS: frozenset[str] = frozenset([
    "p", "br", "li", "blockquote", "div", "tr", "hr",
    "h1", "h2", "h3", "h4", "h5", "h6",
])


class ProseExtractor(HTMLParser):
    """Collect readable text from rendered script HTML."""

    def __init__(self, skip_headers: bool = False) -> None:
        super().__init__()
        self.skip_headers: bool = skip_headers
        self.parts: list[str] = []
        self._skip_depth: int = 0

    def _is_skipped(self, tag: str) -> bool:
        return tag in SKIPPED_TAGS or (self.skip_headers and tag in HEADER_TAGS)

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self._is_skipped(tag):
            self._skip_depth += 1
        if tag in BLOCK_TAGS:
            self.parts.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if self._is_skipped(tag) and self._skip_depth > 0:
            self._skip_depth -= 1
        if tag in BLOCK_TAGS:
            self.parts.append("\n")

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in BLOCK_TAGS:
            self.parts.append("\n")

    def handle_data(self, data: str) -> None:
        if self._skip_depth == 0:
            self.parts.append(data)

    def get_text(self) -> str:
        text: str = "".join(self.parts)
        lines: list[str] = [re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines()]
        return "\n".join(line for line in lines if line)


def markdown_to_plain_text(text: str, skip_headers: bool = False) -> str:
    """
    Render Markdown and keep only the prose.

    Args:
        text: Script source in Markdown
        skip_headers: Drop header lines as well (they are shown but not read)

    Returns:
        Plain text, one block per line.
    """
    html: str = markdown.markdown(text, extensions=['nl2br', 'sane_lists'])
    extractor: ProseExtractor = ProseExtractor(skip_headers=skip_headers)
    extractor.feed(html)
    extractor.close()
    return extractor.get_text()


def load_script(path: Path, skip_headers: bool = False) -> str:
    """Load a script file; .md and .markdown files are reduced to prose."""
    content: str = path.read_text(encoding='utf-8')
    if path.suffix.lower() in (".md", ".markdown"):
        return markdown_to_plain_text(content, skip_headers=skip_headers)
    return content
