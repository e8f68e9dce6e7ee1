# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Exception classes for guidecheck.

Every pipeline stage raises a subclass of GuidecheckError. The CLI's
handle_errors decorator renders them as a panel and exits with
``exit_code``.
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from guidecheck.executor import ExecutionResult
    from guidecheck.validation import ValidationFinding


class ExitCode:
    """Process exit codes."""

    OK = 0
    FAILED = 1
    SCRIPT_FAILED = 2
    LAUNCH_FAILED = 3
    TIMED_OUT = 4
    INTERRUPTED = 130


class GuidecheckError(Exception):
    """Base class for pipeline failures.

    This exception bubbles up to handle_errors which formats it nicely.
    """

    stage = "guidecheck"
    exit_code = ExitCode.FAILED

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        command_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.hint = hint
        self.command_index = command_index


class ConfigError(GuidecheckError):
    """Raised when the configuration file can't be read or is invalid."""

    stage = "configuration"


class ExtractionEmpty(GuidecheckError):
    """Raised when no command could be recovered from the input."""

    stage = "extraction"


class ValidationError(GuidecheckError):
    """Raised when validation produced at least one blocking finding."""

    stage = "validation"

    def __init__(self, findings: List["ValidationFinding"], hint: Optional[str] = None):
        first = findings[0]
        super().__init__(
            f"{len(findings)} blocking finding(s); first: {first.message}",
            hint=hint,
            command_index=first.command_index,
        )
        self.findings = findings


class AssemblyError(GuidecheckError):
    """Raised when the script assembler hits an internal invariant violation."""

    stage = "assembly"


class _ExecutionError(GuidecheckError):
    """Base for failures that carry an execution result."""

    stage = "execution"

    def __init__(self, message: str, result: "ExecutionResult", hint: Optional[str] = None):
        super().__init__(message, hint=hint)
        self.result = result


class ExecutionLaunchFailure(_ExecutionError):
    """Raised when the sandbox environment could not be started."""

    exit_code = ExitCode.LAUNCH_FAILED


class ExecutionFailure(_ExecutionError):
    """Raised when the installation script exited non-zero."""

    exit_code = ExitCode.SCRIPT_FAILED


class ExecutionTimeout(_ExecutionError):
    """Raised when the installation script did not finish in time."""

    exit_code = ExitCode.TIMED_OUT
