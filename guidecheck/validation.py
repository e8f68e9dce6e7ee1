# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Static checks on an extracted command set.

Three rule categories:
- required: each configured pattern must be matched by some command (warning)
- danger: destructive commands such as ``sudo rm -rf`` (error)
- syntax: each command must parse under ``bash -n`` (error)

Validation never raises for rule violations; the caller decides whether
error findings abort the run.
"""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from guidecheck.models.config import (
    DEFAULT_DANGER_PATTERNS,
    DEFAULT_REQUIRED_PATTERNS,
    PatternRule,
)
from guidecheck.normalize import CommandSet
from guidecheck.utils.logging import get_logger

logger = get_logger(__name__)

SYNTAX_CHECK_TIMEOUT = 10.0


class Severity(Enum):
    """Finding severity."""

    WARNING = "warning"
    ERROR = "error"


class RuleCategory(Enum):
    """Validation rule category, used for the summary."""

    REQUIRED = "required"
    DANGER = "danger"
    SYNTAX = "syntax"


@dataclass(frozen=True)
class ValidationFinding:
    """A single validation result."""

    severity: Severity
    rule_id: str
    message: str
    category: RuleCategory
    command_index: Optional[int] = None

    @property
    def is_blocking(self) -> bool:
        return self.severity is Severity.ERROR


def check_syntax(text: str, shell: str = "bash") -> Optional[str]:
    """Parse text as a shell script without running it.

    Args:
        text: Shell text (a shebang line is prepended)
        shell: Shell used for the parse

    Returns:
        The parser's error message, or None when the text parses

    Raises:
        FileNotFoundError: The shell isn't installed
    """
    script = f"#!/bin/bash\n{text}\n"
    try:
        result = subprocess.run(
            [shell, "-n"],
            input=script,
            capture_output=True,
            text=True,
            timeout=SYNTAX_CHECK_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        return f"parse did not finish within {SYNTAX_CHECK_TIMEOUT:.0f}s"

    if result.returncode == 0:
        return None
    return result.stderr.strip() or f"{shell} -n exited {result.returncode}"


class CommandValidator:
    """Checks a CommandSet against configured rule tables."""

    def __init__(
        self,
        required_patterns: Optional[Sequence[PatternRule]] = None,
        danger_patterns: Optional[Sequence[PatternRule]] = None,
        check_shell_syntax: bool = True,
    ):
        self.required_patterns = list(
            DEFAULT_REQUIRED_PATTERNS if required_patterns is None else required_patterns
        )
        self.danger_patterns = list(
            DEFAULT_DANGER_PATTERNS if danger_patterns is None else danger_patterns
        )
        self.check_shell_syntax = check_shell_syntax

    def validate(self, commands: CommandSet) -> List[ValidationFinding]:
        """Run every rule and return findings in category order."""
        findings: List[ValidationFinding] = []
        findings.extend(self._check_required(commands))
        findings.extend(self._check_danger(commands))
        if self.check_shell_syntax:
            findings.extend(self._check_syntax(commands))
        return findings

    def _check_required(self, commands: CommandSet) -> List[ValidationFinding]:
        findings = []
        for rule in self.required_patterns:
            if any(rule.matches(command.text) for command in commands):
                continue
            findings.append(
                ValidationFinding(
                    severity=Severity.WARNING,
                    rule_id=rule.id,
                    message=rule.message,
                    category=RuleCategory.REQUIRED,
                )
            )
        return findings

    def _check_danger(self, commands: CommandSet) -> List[ValidationFinding]:
        findings = []
        for command in commands:
            for rule in self.danger_patterns:
                if rule.matches(command.text):
                    findings.append(
                        ValidationFinding(
                            severity=Severity.ERROR,
                            rule_id=rule.id,
                            message=f"{rule.message}: {command.one_line}",
                            category=RuleCategory.DANGER,
                            command_index=command.index,
                        )
                    )
        return findings

    def _check_syntax(self, commands: CommandSet) -> List[ValidationFinding]:
        shell = shutil.which("bash")
        if shell is None:
            logger.debug("bash not found, skipping syntax check")
            return [
                ValidationFinding(
                    severity=Severity.WARNING,
                    rule_id="syntax-unchecked",
                    message="bash is not installed; shell syntax was not checked",
                    category=RuleCategory.SYNTAX,
                )
            ]

        findings = []
        for command in commands:
            error = check_syntax(command.text, shell=shell)
            if error is None:
                continue
            findings.append(
                ValidationFinding(
                    severity=Severity.ERROR,
                    rule_id="shell-syntax",
                    message=f"Command {command.index} does not parse: {error}",
                    category=RuleCategory.SYNTAX,
                    command_index=command.index,
                )
            )
        return findings


def blocking_findings(findings: Sequence[ValidationFinding]) -> List[ValidationFinding]:
    return [finding for finding in findings if finding.is_blocking]


def summarize(findings: Sequence[ValidationFinding]) -> Dict[RuleCategory, str]:
    """Collapse findings into PASS / WARN / FAIL per category."""
    summary = {category: "PASS" for category in RuleCategory}
    for finding in findings:
        if finding.severity is Severity.ERROR:
            summary[finding.category] = "FAIL"
        elif summary[finding.category] == "PASS":
            summary[finding.category] = "WARN"
    return summary
