# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Run an assembled script in a sandbox and keep the evidence on failure.

Each run writes the script (and the sandbox output) under a unique name in
the work directory, launches one uniquely named container and waits for it.
One finalizer decides what survives: a successful run removes the container,
the script and the log; any other outcome leaves all three for inspection.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from guidecheck import naming
from guidecheck.assembler import AssembledScript
from guidecheck.paths import HostPaths
from guidecheck.runtime import (
    DockerRuntime,
    OutputCallback,
    RuntimeLaunchError,
    RuntimeTimeout,
)
from guidecheck.utils.logging import get_logger

logger = get_logger(__name__)


class ExecutionStatus(Enum):
    """Outcome of a sandbox run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    LAUNCH_FAILED = "launch-failed"
    TIMED_OUT = "timed-out"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class ExecutionResult:
    """Terminal artifact of a run.

    When preserved is True the container (if one was created), the script
    and the log are still on disk / in Docker under the names given here.
    """

    status: ExecutionStatus
    run_id: str
    exit_status: Optional[int]
    instance_id: Optional[str]
    script_path: Optional[Path]
    log_path: Optional[Path]
    preserved: bool
    cause: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ExecutionStatus.SUCCEEDED


def is_run_active(run_id: str, running_runs: Iterable[str] = ()) -> bool:
    """True while a run's container or the process that started it is alive."""
    return run_id in running_runs or naming.pid_alive(naming.run_pid(run_id))


def find_preserved_instances(instances: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """Containers kept by finished runs.

    Running containers and containers of runs whose process is still alive
    belong to an invocation in progress and are left out.
    """
    return [
        instance
        for instance in instances
        if instance["status"] != "running" and not is_run_active(instance["run_id"])
    ]


def running_runs(instances: List[Dict[str, str]]) -> Set[str]:
    """Run ids whose container is still running."""
    return {instance["run_id"] for instance in instances if instance["status"] == "running"}


def find_preserved_artifacts(
    work_dir: Optional[Path] = None, running: Iterable[str] = ()
) -> List[Path]:
    """Scripts and logs left behind by failed runs, sorted by name.

    Only files named after a run id are returned, and only for runs that
    are no longer active (see is_run_active).
    """
    work_dir = Path(work_dir) if work_dir else HostPaths.work_dir()
    if not work_dir.is_dir():
        return []
    running = set(running)
    artifacts = []
    for path in work_dir.iterdir():
        if path.suffix not in (".sh", ".log") or not path.name.startswith(naming.CONTAINER_PREFIX):
            continue
        run_id = path.stem[len(naming.CONTAINER_PREFIX) :]
        if naming.is_run_id(run_id) and not is_run_active(run_id, running):
            artifacts.append(path)
    return sorted(artifacts)


class ExecutionController:
    """Launches assembled scripts through a runtime."""

    def __init__(
        self,
        runtime: Optional[DockerRuntime] = None,
        work_dir: Optional[Path] = None,
        timeout: Optional[float] = None,
        on_output: Optional[OutputCallback] = None,
    ):
        """Initialize the controller.

        Args:
            runtime: Sandbox runtime (defaults to DockerRuntime)
            work_dir: Where scripts and logs are written
            timeout: Seconds before the sandbox is killed; None or 0 waits forever
            on_output: Called with each line the sandbox prints
        """
        self.runtime = runtime or DockerRuntime()
        self.work_dir = Path(work_dir) if work_dir else HostPaths.work_dir()
        self.timeout = timeout or None
        self.on_output = on_output

    def materialize(self, script: AssembledScript) -> Path:
        """Write the script under its run-unique name."""
        path = self.work_dir / naming.script_filename(script.run_id)
        return script.write(path)

    def run(self, script: AssembledScript, image: str) -> ExecutionResult:
        """Execute script in a fresh container from image.

        Never raises for script or launch failures; they come back as the
        result's status. KeyboardInterrupt propagates after the finalizer
        has preserved the run.
        """
        run_id = script.run_id
        name = naming.container_name(run_id)
        log_path = self.work_dir / naming.log_filename(run_id)

        try:
            script_path = self.materialize(script)
        except OSError as e:
            return ExecutionResult(
                status=ExecutionStatus.LAUNCH_FAILED,
                run_id=run_id,
                exit_status=None,
                instance_id=None,
                script_path=None,
                log_path=None,
                preserved=False,
                cause=f"Could not write script to {self.work_dir}: {e}",
            )

        logger.info(f"Running {script.command_count} step(s) in {image} as {name}")
        logger.debug(f"Script: {script_path}, log: {log_path}, timeout: {self.timeout}")

        status = ExecutionStatus.INTERRUPTED
        exit_status: Optional[int] = None
        instance_id: Optional[str] = name
        cause: Optional[str] = None
        try:
            outcome = self.runtime.launch(
                image,
                script_path,
                name,
                timeout=self.timeout,
                log_path=log_path,
                on_output=self.on_output,
            )
            exit_status = outcome.exit_status
            instance_id = outcome.instance_id
            if exit_status == 0:
                status = ExecutionStatus.SUCCEEDED
            else:
                status = ExecutionStatus.FAILED
                cause = f"Script exited with status {exit_status}"
        except RuntimeLaunchError as e:
            status = ExecutionStatus.LAUNCH_FAILED
            instance_id = e.instance_id
            cause = str(e)
        except RuntimeTimeout as e:
            status = ExecutionStatus.TIMED_OUT
            instance_id = e.instance_id
            cause = str(e)
        finally:
            preserved = self._finalize(status, instance_id, script_path, log_path)

        return ExecutionResult(
            status=status,
            run_id=run_id,
            exit_status=exit_status,
            instance_id=instance_id,
            script_path=script_path if preserved else None,
            log_path=log_path if preserved and log_path.exists() else None,
            preserved=preserved,
            cause=cause,
        )

    def _finalize(
        self,
        status: ExecutionStatus,
        instance_id: Optional[str],
        script_path: Path,
        log_path: Path,
    ) -> bool:
        """Tear down after success, preserve everything otherwise.

        Returns:
            True when artifacts were left in place
        """
        if status is not ExecutionStatus.SUCCEEDED:
            logger.warning(f"Run {status.value}: keeping artifacts for inspection")
            if instance_id:
                logger.warning(f"  container: {instance_id}")
            logger.warning(f"  script:    {script_path}")
            if log_path.exists():
                logger.warning(f"  log:       {log_path}")
            return True

        if instance_id:
            try:
                self.runtime.destroy(instance_id)
            except Exception as e:
                logger.warning(f"Could not remove container {instance_id}: {e}")
        script_path.unlink(missing_ok=True)
        log_path.unlink(missing_ok=True)
        logger.debug(f"Cleaned up run artifacts for {instance_id}")
        return False
