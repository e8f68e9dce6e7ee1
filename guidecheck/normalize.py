# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Turn raw blocks into an ordered, de-duplicated command set."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from guidecheck.extraction import RawBlock
from guidecheck.models.config import DEFAULT_DENYLIST, PatternRule
from guidecheck.utils.logging import get_logger

logger = get_logger(__name__)

ENTITIES = {
    "&lt;": "<",
    "&gt;": ">",
    "&amp;": "&",
    "&quot;": '"',
}
_ENTITY_RE = re.compile("|".join(re.escape(entity) for entity in ENTITIES))

# An unescaped tag left in the raw text means the scanner caught markup,
# not a command
_MARKUP_TAG_RE = re.compile(r"</?[a-zA-Z][a-zA-Z0-9-]*(?:\s[^<>]*)?/?>")

# Characters besides alphanumerics that can start a shell command line:
# paths (./ / ~), variable or subshell expansion, grouping, negation, quoting
COMMAND_START_CHARS = frozenset("./~_$({[!\"'\\")


@dataclass(frozen=True)
class Command:
    """A cleaned, unique unit of shell text.

    index is 1-based and doubles as the step number shown to users.
    """

    text: str
    index: int
    origin: RawBlock

    @property
    def one_line(self) -> str:
        """The command with newlines flattened, for display only."""
        return " ".join(part.strip() for part in self.text.splitlines() if part.strip())


class CommandSet:
    """Immutable ordered sequence of unique commands."""

    def __init__(self, commands: Iterable[Command] = ()):
        self._commands: Tuple[Command, ...] = tuple(commands)

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __getitem__(self, position: int) -> Command:
        return self._commands[position]

    def __bool__(self) -> bool:
        return bool(self._commands)

    def __repr__(self) -> str:
        return f"CommandSet({len(self._commands)} commands)"

    @property
    def texts(self) -> List[str]:
        return [command.text for command in self._commands]

    def by_index(self, index: int) -> Optional[Command]:
        for command in self._commands:
            if command.index == index:
                return command
        return None


def decode_entities(text: str) -> str:
    """Decode the four standard entity escapes in a single pass.

    ``&amp;lt;`` becomes ``&lt;``, it is not decoded twice.
    """
    return _ENTITY_RE.sub(lambda match: ENTITIES[match.group(0)], text)


def clean_block_text(text: str) -> str:
    """Decode entities and trim trailing whitespace per line and blank edges."""
    decoded = decode_entities(text)
    lines = [line.rstrip() for line in decoded.splitlines()]
    return "\n".join(lines).strip()


def has_markup_tag(text: str) -> bool:
    return _MARKUP_TAG_RE.search(text) is not None


def starts_like_command(text: str) -> bool:
    """Check that the first non-space character can begin a shell command."""
    stripped = text.lstrip()
    if not stripped:
        return False
    first = stripped[0]
    return first.isalnum() or first in COMMAND_START_CHARS


def rejection_reason(
    raw_text: str,
    cleaned: str,
    denylist: Sequence[PatternRule],
) -> Optional[str]:
    """Return why a block is not a command, or None to keep it."""
    if not cleaned.strip():
        return "empty"
    if has_markup_tag(raw_text):
        return "markup artifact"
    if not starts_like_command(cleaned):
        return f"starts with {cleaned.lstrip()[0]!r}"
    for rule in denylist:
        if rule.matches(cleaned):
            return f"denylisted ({rule.id})"
    return None


def normalize_blocks(
    blocks: Iterable[RawBlock],
    denylist: Optional[Sequence[PatternRule]] = None,
) -> CommandSet:
    """Clean, filter and de-duplicate blocks into a CommandSet.

    Rejected blocks are dropped silently (logged at debug level). Exact
    duplicates keep the first occurrence; order indexes are assigned to
    survivors in document order starting at 1.

    Args:
        blocks: Raw blocks in document order
        denylist: Informational commands to drop (defaults to DEFAULT_DENYLIST)

    Returns:
        CommandSet of unique commands
    """
    rules = DEFAULT_DENYLIST if denylist is None else denylist
    seen = set()
    commands: List[Command] = []

    for block in blocks:
        cleaned = clean_block_text(block.text)
        reason = rejection_reason(block.text, cleaned, rules)
        if reason:
            logger.debug(f"Skipping block at line {block.start_line}: {reason}")
            continue
        if cleaned in seen:
            logger.debug(f"Skipping duplicate block at line {block.start_line}")
            continue
        seen.add(cleaned)
        commands.append(Command(text=cleaned, index=len(commands) + 1, origin=block))

    return CommandSet(commands)
