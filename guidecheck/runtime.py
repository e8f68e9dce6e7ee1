# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Docker sandbox runtime for installation scripts.

The execution controller only needs three operations from a runtime:
launch a script in a fresh container and wait for it, destroy a container,
and list containers left behind by earlier runs. DockerRuntime provides
them on top of the Docker SDK.
"""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import docker
import requests
from docker.models.containers import Container

from guidecheck.paths import ContainerDefaults, ContainerPaths
from guidecheck.utils.logging import get_logger

logger = get_logger(__name__)

OutputCallback = Callable[[str], None]


class RuntimeLaunchError(Exception):
    """Raised when the sandbox couldn't be created, started or reached."""

    def __init__(self, message: str, instance_id: Optional[str] = None):
        super().__init__(message)
        self.instance_id = instance_id


class RuntimeTimeout(Exception):
    """Raised when the sandbox process outlived its timeout and was killed."""

    def __init__(self, instance_id: str, timeout: float):
        super().__init__(f"{instance_id} did not finish within {timeout:.0f}s")
        self.instance_id = instance_id
        self.timeout = timeout


@dataclass(frozen=True)
class LaunchOutcome:
    """Exit status of the sandbox's entry process."""

    exit_status: int
    instance_id: str


class DockerRuntime:
    """Runs scripts in throwaway Docker containers."""

    # How long to wait for the log streamer after the container exits
    LOG_DRAIN_TIMEOUT = 5.0

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        shell: str = ContainerPaths.SHELL,
    ):
        """Initialize the runtime.

        Args:
            client: Docker client (connects from the environment when None)
            shell: Interpreter that runs the mounted script
        """
        self._client = client
        self.shell = shell

    @property
    def client(self) -> docker.DockerClient:
        """Docker client, connected on first use.

        Raises:
            RuntimeLaunchError: Docker daemon not reachable
        """
        if self._client is None:
            try:
                self._client = docker.from_env()
            except docker.errors.DockerException as e:
                raise RuntimeLaunchError(f"Could not connect to Docker: {e}")
        return self._client

    def _get_container(self, instance_id: str) -> Optional[Container]:
        try:
            return self.client.containers.get(instance_id)
        except docker.errors.NotFound:
            return None

    def _stream_logs(
        self,
        container: Container,
        log_path: Optional[Path],
        on_output: Optional[OutputCallback],
    ) -> None:
        """Copy combined stdout/stderr to the log file and callback until exit."""
        log_file = open(log_path, "w", encoding="utf-8") if log_path else None
        try:
            pending = ""
            for chunk in container.logs(stream=True, follow=True, stdout=True, stderr=True):
                text = chunk.decode("utf-8", errors="replace")
                if log_file:
                    log_file.write(text)
                    log_file.flush()
                if on_output:
                    pending += text
                    *lines, pending = pending.split("\n")
                    for line in lines:
                        on_output(line)
            if on_output and pending:
                on_output(pending)
        except (docker.errors.APIError, requests.exceptions.RequestException) as e:
            logger.debug(f"Log stream for {container.name} ended: {e}")
        finally:
            if log_file:
                log_file.close()

    def launch(
        self,
        image: str,
        script_path: Path,
        name: str,
        timeout: Optional[float] = None,
        log_path: Optional[Path] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> LaunchOutcome:
        """Run script_path in a new container and block until it exits.

        The script is bind-mounted read-only and run by the shell as the
        container's entry process. The container is not removed here.

        Args:
            image: Base image (pulled by Docker if missing)
            script_path: Script on the host
            name: Container name, must be unique
            timeout: Seconds to wait; None or 0 waits forever
            log_path: Where to copy the container's output
            on_output: Called with each output line

        Returns:
            LaunchOutcome with the script's exit status

        Raises:
            RuntimeLaunchError: Docker unreachable, image unavailable, API error
                or connection lost while waiting without a timeout
            RuntimeTimeout: Script still running after timeout (container killed)
        """
        volumes = {
            str(Path(script_path).absolute()): {"bind": ContainerPaths.SCRIPT_MOUNT, "mode": "ro"},
        }
        try:
            container = self.client.containers.run(
                image,
                command=[ContainerPaths.SCRIPT_MOUNT],
                entrypoint=[self.shell],
                name=name,
                volumes=volumes,
                labels={ContainerDefaults.RUN_LABEL: name},
                detach=True,
            )
        except docker.errors.ImageNotFound as e:
            raise RuntimeLaunchError(f"Image {image} not found: {e}")
        except docker.errors.APIError as e:
            # The container may exist even though start failed
            raise RuntimeLaunchError(
                f"Error starting container: {e}",
                instance_id=name if self._get_container(name) else None,
            )
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise RuntimeLaunchError(f"Docker request failed: {e}")

        logger.debug(f"Started container {container.name} ({container.short_id}) from {image}")

        streamer = threading.Thread(
            target=self._stream_logs,
            args=(container, log_path, on_output),
            daemon=True,
            name=f"logs-{name}",
        )
        streamer.start()

        try:
            result = container.wait(timeout=timeout or None)
        except (requests.exceptions.ReadTimeout, requests.exceptions.ConnectionError) as e:
            # Read timeouts surface as ConnectionError on some urllib3 versions
            if not timeout:
                raise RuntimeLaunchError(
                    f"Lost connection to Docker while waiting for {name}: {e}",
                    instance_id=name,
                ) from e
            logger.debug(f"Timeout waiting for {name}, killing container")
            self.kill(name)
            streamer.join(self.LOG_DRAIN_TIMEOUT)
            raise RuntimeTimeout(name, timeout)
        except docker.errors.APIError as e:
            raise RuntimeLaunchError(f"Error waiting for {name}: {e}", instance_id=name) from e
        except KeyboardInterrupt:
            # Leave the container in place, stopped
            self.kill(name)
            raise

        streamer.join(self.LOG_DRAIN_TIMEOUT)
        exit_status = int(result.get("StatusCode", 1))
        if result.get("Error"):
            logger.debug(f"Container {name} reported error: {result['Error']}")
        return LaunchOutcome(exit_status=exit_status, instance_id=name)

    def kill(self, instance_id: str) -> None:
        """Stop a container without removing it."""
        container = self._get_container(instance_id)
        if container is None:
            return
        try:
            container.kill()
        except docker.errors.APIError as e:
            # Already exited
            logger.debug(f"Could not kill {instance_id}: {e}")

    def destroy(self, instance_id: str) -> None:
        """Force-remove a container. Missing containers are ignored."""
        container = self._get_container(instance_id)
        if container is None:
            logger.debug(f"Container {instance_id} already gone")
            return
        container.remove(force=True)
        logger.debug(f"Removed container {instance_id}")

    def list_instances(self) -> List[Dict[str, str]]:
        """List guidecheck containers, running or not."""
        containers = self.client.containers.list(
            all=True, filters={"label": ContainerDefaults.RUN_LABEL}
        )
        result = []
        for container in containers:
            result.append(
                {
                    "name": container.name,
                    "status": container.status,
                    "image": container.attrs.get("Config", {}).get("Image", ""),
                    "run_id": ContainerDefaults.run_from_container(container.name),
                }
            )
        return sorted(result, key=lambda c: c["name"])
