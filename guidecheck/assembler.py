# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Render a command set into one self-contained installation script.

Layout:
    prologue   strict mode, non-interactive apt, prerequisite packages
    segments   one per command: step announcement + strategy output
    epilogue   informational probes and the success marker

Each command goes through a strategy table; the first strategy whose
classifier matches renders the segment. The table ends with the verbatim
strategy, which always matches.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from guidecheck.errors import AssemblyError
from guidecheck.models.config import (
    DEFAULT_FINGERPRINT,
    DEFAULT_PREREQUISITES,
    GuidecheckConfigModel,
)
from guidecheck.normalize import Command, CommandSet
from guidecheck.utils.logging import get_logger

logger = get_logger(__name__)

SUCCESS_MARKER = "Installation completed successfully!"

# Tokens apt accepts between "install" and the package names
_APT_INSTALL_RE = re.compile(
    r"^(?:sudo\s+)?apt(?:-get)?\s+(?:-\S+\s+)*install\s+(?P<args>[^;&|<>`$()]+)$"
)
_KEY_IMPORT_RE = re.compile(
    r"\bgpg\b[^|]*--(?:import|show-keys?|with-fingerprint|fingerprint)\b"
)
_TEXT_EXTRACTION_RE = re.compile(r"\|\s*(?:sudo\s+)?(?:awk|grep|sed|cut|tr|head|tail)\b")
_KEY_FILE_RE = re.compile(r"[\w./~-]*[\w-]\.(?:asc|gpg|key|pub)")
# gpg options whose value is some other file, never the key being checked
_GPG_FILE_OPTIONS = frozenset(
    {"--keyring", "--primary-keyring", "--secret-keyring", "--homedir", "--output", "-o", "--trustdb-name"}
)


def _gpg_key_operand(invocation: str) -> Optional[str]:
    """First key-file operand of a gpg invocation, skipping option values."""
    try:
        tokens = shlex.split(invocation)
    except ValueError:
        return None
    skip_next = False
    for token in tokens[1:]:
        if skip_next:
            skip_next = False
        elif token in _GPG_FILE_OPTIONS:
            skip_next = True
        elif not token.startswith("-") and _KEY_FILE_RE.fullmatch(token):
            return token
    return None


class SegmentKind(Enum):
    """How a command is rendered into the script."""

    PREREQUISITE = "prerequisite"
    KEY_VERIFICATION = "key-verification"
    VERBATIM = "verbatim"


class SegmentStrategy(NamedTuple):
    """Classifier/renderer pair in the strategy table.

    classify returns None when the strategy doesn't apply, otherwise a
    context value handed to render.
    """

    kind: SegmentKind
    classify: Callable[[Command], Optional[Any]]
    render: Callable[[Command, Any], List[str]]


@dataclass(frozen=True)
class AssembledScript:
    """The generated script and what went into it."""

    text: str
    run_id: str
    command_count: int
    kinds: Sequence[SegmentKind] = ()

    def write(self, path: Path) -> Path:
        """Write the script to path and mark it executable."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.text, encoding="utf-8")
        path.chmod(0o755)
        return path


def escape_double_quoted(text: str) -> str:
    """Escape text for embedding between double quotes in bash.

    Escapes the characters that stay special inside double quotes, so the
    string expands back to exactly ``text``.
    """
    for char in ("\\", '"', "$", "`"):
        text = text.replace(char, "\\" + char)
    return text


class ScriptAssembler:
    """Builds installation scripts from command sets."""

    def __init__(
        self,
        prerequisites: Iterable[str] = DEFAULT_PREREQUISITES,
        expected_fingerprint: str = DEFAULT_FINGERPRINT,
        product_name: str = "mina",
    ):
        self.prerequisites = list(prerequisites)
        self.expected_fingerprint = expected_fingerprint
        self.product_name = product_name
        self.strategies: List[SegmentStrategy] = [
            SegmentStrategy(SegmentKind.PREREQUISITE, self._classify_prerequisite, self._render_noop),
            SegmentStrategy(SegmentKind.KEY_VERIFICATION, self._classify_key_check, self._render_key_check),
            SegmentStrategy(SegmentKind.VERBATIM, lambda command: command, self._render_verbatim),
        ]

    @classmethod
    def from_config(cls, config: GuidecheckConfigModel) -> "ScriptAssembler":
        return cls(
            prerequisites=config.prerequisites,
            expected_fingerprint=config.expected_fingerprint,
            product_name=config.product_name,
        )

    # ========== Classifiers ==========

    def _classify_prerequisite(self, command: Command) -> Optional[List[str]]:
        """Match an apt install of packages the prologue already installed."""
        if "\n" in command.text:
            return None
        match = _APT_INSTALL_RE.match(command.text.strip())
        if not match:
            return None
        try:
            args = shlex.split(match.group("args"))
        except ValueError:
            return None
        packages = [arg for arg in args if not arg.startswith("-")]
        if packages and set(packages) <= set(self.prerequisites):
            return packages
        return None

    def _classify_key_check(self, command: Command) -> Optional[str]:
        """Match a gpg key import piped into a text-extraction tool.

        Returns the key file path, which the replacement block needs.
        """
        text = command.text
        key_import = _KEY_IMPORT_RE.search(text)
        if not (key_import and _TEXT_EXTRACTION_RE.search(text, key_import.end())):
            return None
        pipe = text.find("|", key_import.start())
        # A key piped in from a download has no file to re-read
        key_file = _gpg_key_operand(text[key_import.start() : pipe])
        if not key_file:
            logger.debug(f"Step {command.index} looks like a key check but names no key file")
        return key_file

    def classify(self, command: Command) -> Tuple[SegmentStrategy, Any]:
        for strategy in self.strategies:
            context = strategy.classify(command)
            if context is not None:
                return strategy, context
        raise AssemblyError(f"No strategy matched step {command.index}")

    # ========== Renderers ==========

    def _render_noop(self, command: Command, packages: List[str]) -> List[str]:
        return [f"# Skipped: {' '.join(packages)} already installed by the prologue"]

    def _render_key_check(self, command: Command, key_file: str) -> List[str]:
        return [
            f"GUIDECHECK_KEY_FILE={shlex.quote(key_file)}",
            f'GUIDECHECK_EXPECTED_FPR="{self.expected_fingerprint}"',
            'gpg --batch --yes --import "$GUIDECHECK_KEY_FILE"',
            "GUIDECHECK_ACTUAL_FPR=\"$(gpg --batch --with-colons --show-keys \"$GUIDECHECK_KEY_FILE\""
            " | awk -F: '$1 == \"fpr\" {print $10; exit}')\"",
            'if [ "$GUIDECHECK_ACTUAL_FPR" != "$GUIDECHECK_EXPECTED_FPR" ]; then',
            '    echo "Key fingerprint mismatch for $GUIDECHECK_KEY_FILE" >&2',
            '    echo "  expected: $GUIDECHECK_EXPECTED_FPR" >&2',
            '    echo "  actual:   ${GUIDECHECK_ACTUAL_FPR:-<none>}" >&2',
            "    exit 1",
            "fi",
            'echo "Key fingerprint verified: $GUIDECHECK_ACTUAL_FPR"',
        ]

    def _render_verbatim(self, command: Command, _context: Any) -> List[str]:
        return [f'eval "{escape_double_quoted(command.text)}"']

    def render_segment(self, command: Command, total: int) -> Tuple[SegmentKind, List[str]]:
        """Render one command's announcement and body."""
        strategy, context = self.classify(command)
        body = strategy.render(command, context)
        if not body:
            raise AssemblyError(f"Empty segment rendered for step {command.index}")
        announce = f"==> [{command.index}/{total}] {command.one_line}"
        lines = [f"# --- step {command.index} ({strategy.kind.value}) ---", f"echo {shlex.quote(announce)}"]
        return strategy.kind, lines + body

    # ========== Script parts ==========

    def prologue(self, run_id: str) -> List[str]:
        lines = [
            "#!/bin/bash",
            "# Installation script generated by guidecheck",
            f"# Run: {run_id}",
            "set -e",
            "export DEBIAN_FRONTEND=noninteractive",
        ]
        if self.prerequisites:
            packages = " ".join(shlex.quote(pkg) for pkg in self.prerequisites)
            lines += [
                "",
                f"echo {shlex.quote('==> Installing prerequisites: ' + ' '.join(self.prerequisites))}",
                "apt-get update -qq",
                f"apt-get install -y -qq --no-install-recommends {packages}",
            ]
        return lines

    def epilogue(self) -> List[str]:
        name = shlex.quote(self.product_name)
        return [
            "# --- verification ---",
            "echo '==> Post-install verification'",
            f"if command -v {name} >/dev/null 2>&1; then",
            f'    echo "{escape_double_quoted(self.product_name)} found at $(command -v {name})"',
            "else",
            f"    echo {shlex.quote(self.product_name + ' not found on PATH (informational)')}",
            "fi",
            "if command -v dpkg >/dev/null 2>&1; then",
            f"    dpkg -l | grep -i -- {name} || echo {shlex.quote('No installed packages match ' + self.product_name)}",
            "fi",
            f"echo {shlex.quote(SUCCESS_MARKER)}",
        ]

    def assemble(self, commands: CommandSet, run_id: str) -> AssembledScript:
        """Render the full script.

        Output depends only on the command set, the assembler settings and
        run_id; the run id appears once, in the header.

        Raises:
            AssemblyError: Empty command set or a strategy rendered nothing
        """
        if not commands:
            raise AssemblyError("Cannot assemble a script from an empty command set")

        total = len(commands)
        lines = self.prologue(run_id)
        kinds: List[SegmentKind] = []
        for command in commands:
            kind, segment = self.render_segment(command, total)
            kinds.append(kind)
            lines.append("")
            lines.extend(segment)
        lines.append("")
        lines.extend(self.epilogue())

        logger.debug(
            f"Assembled {total} step(s): "
            + ", ".join(f"{index}={kind.value}" for index, kind in enumerate(kinds, start=1))
        )
        return AssembledScript(
            text="\n".join(lines) + "\n",
            run_id=run_id,
            command_count=total,
            kinds=tuple(kinds),
        )
