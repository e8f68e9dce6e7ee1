# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Centralized path definitions for guidecheck.

This module provides a single source of truth for all paths used throughout
the guidecheck codebase. Paths are organized by context:

- HostPaths: Paths on the host machine (where the guidecheck CLI runs)
- ContainerPaths: Paths inside the sandbox container
- ContainerDefaults: Naming and labelling of sandbox containers

Usage:
    from guidecheck.paths import HostPaths, ContainerPaths

    config_file = HostPaths.config_file()
    mount_point = ContainerPaths.SCRIPT_MOUNT
"""

import os
import tempfile
from pathlib import Path


class HostPaths:
    """Paths on the host machine where the guidecheck CLI runs."""

    # XDG config directory for guidecheck
    @staticmethod
    def config_dir() -> Path:
        """~/.config/guidecheck/"""
        xdg = os.getenv("XDG_CONFIG_HOME")
        if xdg:
            return Path(xdg) / "guidecheck"
        return Path.home() / ".config" / "guidecheck"

    @staticmethod
    def config_file() -> Path:
        """~/.config/guidecheck/config.yml"""
        return HostPaths.config_dir() / "config.yml"

    # XDG state directory
    @staticmethod
    def state_dir() -> Path:
        """~/.local/state/guidecheck/"""
        xdg = os.getenv("XDG_STATE_HOME")
        if xdg:
            return Path(xdg) / "guidecheck"
        return Path.home() / ".local" / "state" / "guidecheck"

    @staticmethod
    def log_dir() -> Path:
        """~/.local/state/guidecheck/logs/"""
        return HostPaths.state_dir() / "logs"

    @staticmethod
    def work_dir() -> Path:
        """Default location for materialized scripts and run logs.

        Lives under the system temp dir so Docker Desktop setups that only
        share /tmp can still bind-mount the script.
        """
        return Path(tempfile.gettempdir()) / "guidecheck"


class ContainerPaths:
    """Paths inside the sandbox container."""

    # Read-only mount point of the assembled script
    SCRIPT_MOUNT = "/guidecheck/install.sh"

    # Interpreter used as the container's entry process
    SHELL = "/bin/bash"


class ContainerDefaults:
    """Default values for sandbox containers."""

    # Container naming
    CONTAINER_PREFIX = "guidecheck-"

    # Docker image
    BASE_IMAGE = "ubuntu:focal"

    # Label carried by every sandbox container, value is the run name
    RUN_LABEL = "guidecheck.run"

    @staticmethod
    def container_name(run_id: str) -> str:
        """Get container name for a run."""
        return f"{ContainerDefaults.CONTAINER_PREFIX}{run_id}"

    @staticmethod
    def run_from_container(container_name: str) -> str:
        """Extract run id from container name."""
        prefix = ContainerDefaults.CONTAINER_PREFIX
        if container_name.startswith(prefix):
            return container_name[len(prefix) :]
        return container_name
