# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Run naming - single source of truth.

Every run gets one id used for the sandbox container, the materialized
script and the run log, so a preserved failure can be matched to its
artifacts. Ids combine the process id with a timestamp so runs in parallel
processes, or a rerun after a preserved failure, never collide.
"""

import os
import re
import time
from typing import Optional

from guidecheck.paths import ContainerDefaults

CONTAINER_PREFIX = ContainerDefaults.CONTAINER_PREFIX

_RUN_ID_RE = re.compile(r"^(?P<pid>\d+)-(?P<stamp>\d{8}T\d{6})-(?P<millis>\d{3})$")


def generate_run_id(pid: Optional[int] = None, now: Optional[float] = None) -> str:
    """Generate a run id like ``4242-20250101T120000-123``.

    Args:
        pid: Process id (defaults to the current process)
        now: Epoch seconds (defaults to the current time)
    """
    pid = os.getpid() if pid is None else pid
    now = time.time() if now is None else now
    stamp = time.strftime("%Y%m%dT%H%M%S", time.gmtime(now))
    millis = int((now % 1) * 1000)
    return f"{pid}-{stamp}-{millis:03d}"


def container_name(run_id: str) -> str:
    """Container name for a run."""
    return ContainerDefaults.container_name(run_id)


def script_filename(run_id: str) -> str:
    """File name of the materialized script for a run."""
    return f"{CONTAINER_PREFIX}{run_id}.sh"


def log_filename(run_id: str) -> str:
    """File name of the captured sandbox output for a run."""
    return f"{CONTAINER_PREFIX}{run_id}.log"


def is_run_id(value: str) -> bool:
    return _RUN_ID_RE.match(value) is not None


def run_pid(run_id: str) -> Optional[int]:
    """Process id that started a run, or None for a malformed id."""
    match = _RUN_ID_RE.match(run_id)
    return int(match.group("pid")) if match else None


def pid_alive(pid: Optional[int]) -> bool:
    """True if a process with this id exists on this host."""
    if not pid or pid <= 0:
        return False
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OverflowError:
        return False
