# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Commands for artifacts kept by failed runs."""

from pathlib import Path
from typing import Dict, List, Tuple

import click

from guidecheck.cli import cli
from guidecheck.cli.helpers import (
    config_options,
    console,
    handle_errors,
    load_cli_config,
    render_artifacts,
    render_instances,
)
from guidecheck.executor import (
    find_preserved_artifacts,
    find_preserved_instances,
    running_runs,
)
from guidecheck.runtime import DockerRuntime, RuntimeLaunchError
from guidecheck.utils.logging import get_logger

logger = get_logger(__name__)


def _find_leftovers(runtime: DockerRuntime, work_dir) -> Tuple[List[Dict[str, str]], List[Path]]:
    """Containers and files of finished runs; runs in progress are skipped.

    Without Docker only files are returned.
    """
    try:
        instances = runtime.list_instances()
    except RuntimeLaunchError as e:
        logger.warning(f"Docker unavailable, containers not listed: {e}")
        instances = []
    artifacts = find_preserved_artifacts(work_dir, running=running_runs(instances))
    return find_preserved_instances(instances), artifacts


@cli.command()
@config_options
@handle_errors
def preserved(config_path, debug):
    """List containers, scripts and logs kept by failed runs."""
    config = load_cli_config(config_path, debug)
    instances, artifacts = _find_leftovers(DockerRuntime(), config.work_dir)
    render_instances(instances)
    render_artifacts(artifacts)


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation")
@config_options
@handle_errors
def cleanup(yes, config_path, debug):
    """Remove containers, scripts and logs kept by failed runs.

    Runs still in progress in another guidecheck process are left alone.
    """
    config = load_cli_config(config_path, debug)
    runtime = DockerRuntime()
    instances, artifacts = _find_leftovers(runtime, config.work_dir)

    if not instances and not artifacts:
        console.print("[dim]Nothing to clean up[/dim]")
        return

    render_instances(instances)
    render_artifacts(artifacts)
    if not yes and not click.confirm("\nRemove all of the above?", default=False):
        console.print("[yellow]Aborted[/yellow]")
        return

    for instance in instances:
        runtime.destroy(instance["name"])
        logger.info(f"Removed container {instance['name']}")
    for path in artifacts:
        path.unlink(missing_ok=True)
        logger.info(f"Removed {path}")
    logger.success(f"Cleaned up {len(instances)} container(s) and {len(artifacts)} file(s)")
