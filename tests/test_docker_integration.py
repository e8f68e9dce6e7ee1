# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Sandbox runs against a real Docker daemon.

Skipped unless Docker is reachable and an ``alpine`` image is present
locally. alpine has no bash, so these runs use /bin/sh and hand-written
POSIX scripts.
"""

import pytest

from guidecheck import naming
from guidecheck.assembler import AssembledScript
from guidecheck.executor import ExecutionController, ExecutionStatus
from guidecheck.runtime import DockerRuntime

pytestmark = pytest.mark.docker

IMAGE = "alpine"


def make_script(body, run_id=None):
    return AssembledScript(
        text=f"#!/bin/sh\nset -e\n{body}\n",
        run_id=run_id or naming.generate_run_id(),
        command_count=1,
    )


@pytest.fixture
def runtime(docker_available):
    return DockerRuntime(client=docker_available, shell="/bin/sh")


@pytest.fixture
def cleanup_containers(docker_available):
    names = []
    yield names
    for name in names:
        try:
            docker_available.containers.get(name).remove(force=True)
        except Exception:
            pass


def test_successful_run_leaves_nothing(runtime, tmp_path, docker_available):
    """Exit 0: container, script and log are all removed."""
    lines = []
    script = make_script("echo hello from the sandbox")
    result = ExecutionController(runtime=runtime, work_dir=tmp_path, timeout=120, on_output=lines.append).run(
        script, IMAGE
    )

    assert result.status is ExecutionStatus.SUCCEEDED, result.cause
    assert "hello from the sandbox" in lines
    assert list(tmp_path.iterdir()) == []
    assert naming.container_name(script.run_id) not in [c["name"] for c in runtime.list_instances()]


def test_failed_run_is_preserved(runtime, tmp_path, cleanup_containers):
    """Exit 1: container, script and log stay for inspection."""
    script = make_script("echo about to fail\nexit 3")
    cleanup_containers.append(naming.container_name(script.run_id))
    result = ExecutionController(runtime=runtime, work_dir=tmp_path, timeout=120).run(script, IMAGE)

    assert result.status is ExecutionStatus.FAILED
    assert result.exit_status == 3
    assert result.script_path.exists()
    assert "about to fail" in result.log_path.read_text()
    assert result.instance_id in [c["name"] for c in runtime.list_instances()]


def test_timeout_kills_and_preserves(runtime, tmp_path, cleanup_containers):
    script = make_script("sleep 60")
    cleanup_containers.append(naming.container_name(script.run_id))
    result = ExecutionController(runtime=runtime, work_dir=tmp_path, timeout=2).run(script, IMAGE)

    assert result.status is ExecutionStatus.TIMED_OUT
    assert result.preserved
    instances = {c["name"]: c for c in runtime.list_instances()}
    assert instances[result.instance_id]["status"] != "running"


def test_script_is_mounted_read_only(runtime, tmp_path, cleanup_containers):
    script = make_script("echo tampered >> /guidecheck/install.sh")
    cleanup_containers.append(naming.container_name(script.run_id))
    result = ExecutionController(runtime=runtime, work_dir=tmp_path, timeout=120).run(script, IMAGE)

    assert result.status is ExecutionStatus.FAILED
    assert "tampered" not in result.script_path.read_text()
