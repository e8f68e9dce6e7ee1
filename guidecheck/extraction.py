# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Command block extraction from installation guide markup.

Scans HTML line by line with a two-state machine. A block opens at a
container tag carrying the block class (``<div class="code-block">``) and
ends at either the copy control (``<button class="copy-button">``) or the
matching close tag (``</div>``), whichever comes first. Pages written with
and without a copy button are handled by the same scanner.

No DOM is built; tag attributes may appear in any order and the class
attribute may list other classes too.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, List, Match, Optional, Pattern, Tuple, Union

from guidecheck.models.config import MarkerConfig
from guidecheck.utils.logging import get_logger

logger = get_logger(__name__)


class ScanState(Enum):
    """Scanner state."""

    OUTSIDE = "outside"
    INSIDE = "inside"


@dataclass(frozen=True)
class RawBlock:
    """Text captured between a block-open marker and its terminator."""

    text: str
    start_line: int
    end_line: int


def _class_attr_pattern(css_class: str) -> str:
    """Pattern for a class attribute whose class list contains css_class."""
    token = rf"(?<![\w-]){re.escape(css_class)}(?![\w-])"
    return rf"""\bclass\s*=\s*(?:"[^"]*{token}[^"]*"|'[^']*{token}[^']*')"""


def build_open_pattern(markers: MarkerConfig) -> Pattern[str]:
    tag = re.escape(markers.container_tag)
    return re.compile(
        rf"<{tag}\b[^>]*?{_class_attr_pattern(markers.container_class)}[^>]*>",
        re.IGNORECASE,
    )


def build_control_pattern(markers: MarkerConfig) -> Pattern[str]:
    tag = re.escape(markers.control_tag)
    return re.compile(
        rf"<{tag}\b[^>]*?{_class_attr_pattern(markers.control_class)}",
        re.IGNORECASE,
    )


def build_close_pattern(markers: MarkerConfig) -> Pattern[str]:
    return re.compile(rf"</{re.escape(markers.container_tag)}\s*>", re.IGNORECASE)


class BlockExtractor:
    """Recover raw command blocks from markup, in document order."""

    def __init__(self, markers: Optional[MarkerConfig] = None):
        self.markers = markers or MarkerConfig()
        self._open = build_open_pattern(self.markers)
        self._control = build_control_pattern(self.markers)
        self._close = build_close_pattern(self.markers)

    def _first_terminator(self, text: str) -> Tuple[Optional[Match[str]], bool]:
        """Find the earliest terminator in text.

        Returns:
            Tuple of (match, is_control). match is None when the line holds
            no terminator.
        """
        control = self._control.search(text)
        close = self._close.search(text)
        if control and (close is None or control.start() <= close.start()):
            return control, True
        return close, False

    def extract(self, lines: Iterable[str]) -> Iterator[RawBlock]:
        """Yield blocks from an iterable of lines.

        Single forward pass: the returned iterator can't be restarted. A
        block still open when the input ends is malformed and dropped.
        """
        state = ScanState.OUTSIDE
        buffer: List[str] = []
        start_line = 0
        lineno = 0

        for lineno, line in enumerate(lines, start=1):
            rest = line.rstrip("\r\n")
            opened_here = False

            while True:
                if state is ScanState.OUTSIDE:
                    match = self._open.search(rest)
                    if match is None:
                        break
                    state = ScanState.INSIDE
                    buffer = []
                    start_line = lineno
                    opened_here = True
                    rest = rest[match.end() :]
                    continue

                terminator, is_control = self._first_terminator(rest)
                if terminator is None:
                    # Blank remainder of the opening line is not content
                    if not opened_here or rest.strip():
                        buffer.append(rest)
                    break

                head = rest[: terminator.start()]
                if head.strip():
                    buffer.append(head)

                text = "\n".join(buffer)
                if text.strip():
                    yield RawBlock(text=text, start_line=start_line, end_line=lineno)
                else:
                    logger.debug(f"Dropping empty block at line {start_line}")

                state = ScanState.OUTSIDE
                buffer = []
                if is_control:
                    # Whatever follows the copy control on this line is UI
                    break
                rest = rest[terminator.end() :]
                opened_here = False

        if state is ScanState.INSIDE:
            logger.debug(
                f"Discarding unterminated block opened at line {start_line} "
                f"(input ended at line {lineno})"
            )

    def extract_text(self, text: str) -> Iterator[RawBlock]:
        """Yield blocks from an in-memory document."""
        return self.extract(text.splitlines())

    def extract_file(self, path: Union[str, Path]) -> Iterator[RawBlock]:
        """Yield blocks from a file, reading it lazily."""
        with open(path, encoding="utf-8", errors="replace") as f:
            yield from self.extract(f)


def extract_blocks(
    source: Union[str, Iterable[str]],
    markers: Optional[MarkerConfig] = None,
) -> Iterator[RawBlock]:
    """Convenience wrapper: extract blocks from a string or line iterable."""
    extractor = BlockExtractor(markers)
    if isinstance(source, str):
        return extractor.extract_text(source)
    return extractor.extract(source)
