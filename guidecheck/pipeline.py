# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""End-to-end verification of one HTML guide.

Stages run strictly in order, each consuming the complete output of the
previous one:

    extract -> normalize -> validate -> assemble -> execute

Pipeline exposes each stage so the CLI can report between them;
run_pipeline() chains them for library use.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from guidecheck import naming
from guidecheck.assembler import AssembledScript, ScriptAssembler
from guidecheck.errors import (
    ExecutionFailure,
    ExecutionLaunchFailure,
    ExecutionTimeout,
    ExtractionEmpty,
    ValidationError,
)
from guidecheck.executor import ExecutionController, ExecutionResult, ExecutionStatus
from guidecheck.extraction import BlockExtractor
from guidecheck.models.config import GuidecheckConfigModel
from guidecheck.normalize import CommandSet, normalize_blocks
from guidecheck.runtime import DockerRuntime, OutputCallback
from guidecheck.utils.logging import get_logger
from guidecheck.validation import CommandValidator, ValidationFinding, blocking_findings

logger = get_logger(__name__)


@dataclass
class PipelineReport:
    """Everything a run produced, stage by stage."""

    source: Path
    commands: CommandSet
    findings: List[ValidationFinding] = field(default_factory=list)
    script: Optional[AssembledScript] = None
    kept_script: Optional[Path] = None
    result: Optional[ExecutionResult] = None

    @property
    def executed(self) -> bool:
        return self.result is not None

    @property
    def warnings(self) -> List[ValidationFinding]:
        return [finding for finding in self.findings if not finding.is_blocking]


def raise_for_result(result: ExecutionResult) -> None:
    """Turn a non-successful execution result into its error.

    Raises:
        ExecutionLaunchFailure: The sandbox could not be started
        ExecutionTimeout: The script was killed after the timeout
        ExecutionFailure: The script exited non-zero
    """
    if result.succeeded:
        return

    hint = None
    if result.instance_id and result.preserved:
        hint = f"docker logs {result.instance_id}  /  docker start -ai {result.instance_id}"

    if result.status is ExecutionStatus.LAUNCH_FAILED:
        raise ExecutionLaunchFailure(
            f"Could not launch sandbox: {result.cause}",
            result,
            hint="Check that the Docker daemon is running and the image name is correct",
        )
    if result.status is ExecutionStatus.TIMED_OUT:
        raise ExecutionTimeout(f"Installation timed out: {result.cause}", result, hint=hint)
    raise ExecutionFailure(
        result.cause or f"Installation failed ({result.status.value})",
        result,
        hint=hint,
    )


class Pipeline:
    """Stage runner bound to one configuration."""

    def __init__(
        self,
        config: Optional[GuidecheckConfigModel] = None,
        runtime: Optional[DockerRuntime] = None,
        on_output: Optional[OutputCallback] = None,
        check_shell_syntax: bool = True,
    ):
        self.config = config or GuidecheckConfigModel()
        self.runtime = runtime
        self.on_output = on_output
        self.validator = CommandValidator(
            required_patterns=self.config.required_patterns,
            danger_patterns=self.config.danger_patterns,
            check_shell_syntax=check_shell_syntax,
        )
        self.assembler = ScriptAssembler.from_config(self.config)

    def extract(self, source: Union[str, Path]) -> CommandSet:
        """Extract and normalize the commands of an HTML file.

        Raises:
            ExtractionEmpty: No command survived normalization
            OSError: The file can't be read
        """
        source = Path(source)
        commands = normalize_blocks(
            BlockExtractor(self.config.markers).extract_file(source),
            denylist=self.config.denylist,
        )
        if not commands:
            raise ExtractionEmpty(
                f"No commands found in {source}",
                hint=(
                    f'Code blocks must sit in <{self.config.markers.container_tag} '
                    f'class="{self.config.markers.container_class}"> containers'
                ),
            )
        logger.debug(f"Extracted {len(commands)} command(s) from {source}")
        return commands

    def validate(self, commands: CommandSet) -> List[ValidationFinding]:
        """Run every validation rule; findings of all severities."""
        return self.validator.validate(commands)

    def enforce(self, findings: List[ValidationFinding]) -> None:
        """Stop the run when validation produced errors.

        Raises:
            ValidationError: At least one error finding
        """
        blocking = blocking_findings(findings)
        if blocking:
            raise ValidationError(
                blocking,
                hint="Fix the guide, or adjust danger_patterns in the config file",
            )

    def assemble(self, commands: CommandSet, run_id: Optional[str] = None) -> AssembledScript:
        return self.assembler.assemble(commands, run_id or naming.generate_run_id())

    def execute(self, script: AssembledScript) -> ExecutionResult:
        """Run script in the sandbox; raise if it did not succeed."""
        controller = ExecutionController(
            runtime=self.runtime,
            work_dir=self.config.work_dir,
            timeout=self.config.timeout_seconds,
            on_output=self.on_output,
        )
        result = controller.run(script, self.config.image)
        raise_for_result(result)
        return result

    @property
    def should_execute(self) -> bool:
        return self.config.execute and not self.config.extract_only


def run_pipeline(
    source: Union[str, Path],
    config: Optional[GuidecheckConfigModel] = None,
    runtime: Optional[DockerRuntime] = None,
    keep_script: Optional[Path] = None,
    on_output: Optional[OutputCallback] = None,
    check_shell_syntax: bool = True,
) -> PipelineReport:
    """Verify one guide end to end.

    Args:
        source: HTML file
        config: Settings (defaults when None)
        runtime: Sandbox runtime (DockerRuntime when None)
        keep_script: Also write the assembled script here
        on_output: Called with each sandbox output line
        check_shell_syntax: Run the bash -n check

    Returns:
        PipelineReport; assembly and execution are skipped in extract-only
        mode, execution is skipped unless enabled

    Raises:
        GuidecheckError: The first stage that failed
    """
    pipeline = Pipeline(
        config=config,
        runtime=runtime,
        on_output=on_output,
        check_shell_syntax=check_shell_syntax,
    )
    report = PipelineReport(source=Path(source), commands=pipeline.extract(source))
    report.findings = pipeline.validate(report.commands)
    pipeline.enforce(report.findings)
    if pipeline.config.extract_only:
        return report

    report.script = pipeline.assemble(report.commands)
    if keep_script:
        report.kept_script = report.script.write(keep_script)

    if pipeline.should_execute:
        report.result = pipeline.execute(report.script)
    return report
