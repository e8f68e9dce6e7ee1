# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Pytest fixtures for guidecheck tests.

Unit tests import the package directly. CLI tests call the CLI via
``python -m guidecheck`` in a subprocess so they exercise the local code,
not whatever version is installed.
"""

import os
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

# Keep the test run's log out of the user's state directory
os.environ.setdefault(
    "GUIDECHECK_LOG_FILE", str(Path(tempfile.gettempdir()) / "guidecheck-tests.log")
)

PROJECT_ROOT = Path(__file__).parent.parent

GUIDE_TEMPLATE = """<!DOCTYPE html>
<html>
<head><title>Install guide</title></head>
<body>
<h1>Installing from the package repository</h1>
{blocks}
</body>
</html>
"""

BLOCK_TEMPLATE = """<p>Step {number}</p>
<div class="code-block">
{text}
<button class="copy-button">Copy</button>
</div>
"""


def make_guide(*commands: str) -> str:
    """Build an HTML guide with one code block per command."""
    blocks = "".join(
        BLOCK_TEMPLATE.format(number=number, text=text)
        for number, text in enumerate(commands, start=1)
    )
    return GUIDE_TEMPLATE.format(blocks=blocks)


# A guide that satisfies every default required pattern
FULL_GUIDE_COMMANDS = (
    "wget -q https://packages.example.org/repo-signing.key.asc -O repo-signing.key.asc",
    "gpg --show-keys --with-colons repo-signing.key.asc | awk -F: '$1 == \"fpr\" {print $10}'",
    "gpg --dearmor &lt; repo-signing.key.asc &gt; /etc/apt/trusted.gpg.d/example.gpg",
    'echo "deb https://packages.example.org $(lsb_release -cs) stable" '
    "| sudo tee /etc/apt/sources.list.d/example.list",
    "lsb_release -a",
    "sudo apt-get update &amp;&amp; sudo apt-get install -y mina",
)


def run_guidecheck(*args, cwd=None, env=None, check=False, input=None):
    """Run the guidecheck CLI via python module.

    Args:
        *args: Command arguments
        cwd: Working directory
        env: Extra environment variables
        check: Raise on non-zero exit
        input: Text sent to stdin

    Returns:
        subprocess.CompletedProcess with text stdout/stderr
    """
    full_env = os.environ.copy()
    full_env["PYTHONPATH"] = str(PROJECT_ROOT)
    # Wide console so rich doesn't wrap assertions apart
    full_env["COLUMNS"] = "200"
    full_env.pop("GUIDECHECK_CONFIG", None)
    full_env.pop("GUIDECHECK_DEBUG", None)
    if env:
        full_env.update(env)

    return subprocess.run(
        [sys.executable, "-m", "guidecheck", *args],
        cwd=cwd,
        check=check,
        capture_output=True,
        text=True,
        env=full_env,
        input=input,
    )


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Point config and state lookups at a per-test directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    monkeypatch.delenv("GUIDECHECK_CONFIG", raising=False)
    return tmp_path


@pytest.fixture
def guide_file(tmp_path):
    """Factory writing an HTML guide and returning its path."""

    def _write(*commands: str, name: str = "guide.html") -> Path:
        path = tmp_path / name
        path.write_text(make_guide(*commands), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def full_guide(guide_file):
    return guide_file(*FULL_GUIDE_COMMANDS)


@pytest.fixture(scope="session")
def docker_available():
    """Check that Docker and a local alpine image are available. Skip tests if not."""
    docker = pytest.importorskip("docker")
    try:
        client = docker.from_env()
        client.ping()
        client.images.get("alpine")
    except docker.errors.DockerException as e:
        pytest.skip(f"Docker not available: {e}")
    return client
