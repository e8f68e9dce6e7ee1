# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Guide verification commands (check, extract, script)."""

from pathlib import Path

import click

from guidecheck.cli import cli
from guidecheck.cli.helpers import (
    config_options,
    console,
    err_console,
    handle_errors,
    load_cli_config,
    print_output_line,
    render_commands,
    render_findings,
    render_summary,
)
from guidecheck.pipeline import Pipeline
from guidecheck.utils.logging import get_logger

logger = get_logger(__name__)

_html_argument = click.argument(
    "html_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)


@cli.command()
@_html_argument
@click.option(
    "--image",
    "--distribution",
    "image",
    default=None,
    help="Base image for the sandbox (default: ubuntu:focal)",
)
@click.option(
    "--docker/--no-docker",
    "execute",
    default=None,
    help="Run the assembled script in a sandbox container",
)
@click.option(
    "--extract-only",
    is_flag=True,
    default=False,
    help="Extract and validate only; no script is assembled or run",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds before the sandbox is killed (0 = no limit)",
)
@click.option(
    "--keep-script",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the assembled script to this path",
)
@config_options
@handle_errors
def check(html_file, image, execute, extract_only, timeout, keep_script, config_path, debug):
    """Extract, validate, assemble and (with --docker) run a guide.

    HTML_FILE is the saved installation guide page.
    """
    config = load_cli_config(
        config_path,
        debug,
        image=image,
        execute=execute,
        extract_only=extract_only or None,
        timeout_seconds=timeout,
    )
    pipeline = Pipeline(config, on_output=print_output_line)

    commands = pipeline.extract(html_file)
    render_commands(commands)

    findings = pipeline.validate(commands)
    render_summary(findings)
    pipeline.enforce(findings)
    if config.extract_only:
        logger.success(f"Extracted and validated {len(commands)} command(s)")
        return

    script = pipeline.assemble(commands)
    if keep_script:
        logger.info(f"Script written to {script.write(keep_script)}")

    if not pipeline.should_execute:
        logger.success("Static checks passed")
        console.print("[dim]Sandbox run skipped (enable with --docker)[/dim]")
        return

    pipeline.execute(script)
    logger.success(f"Installation completed successfully in {config.image}")


@cli.command()
@_html_argument
@config_options
@handle_errors
def extract(html_file, config_path, debug):
    """List the commands found in HTML_FILE."""
    config = load_cli_config(config_path, debug)
    commands = Pipeline(config).extract(html_file)
    render_commands(commands)


@cli.command()
@_html_argument
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the script here instead of stdout",
)
@config_options
@handle_errors
def script(html_file, output, config_path, debug):
    """Print the installation script assembled from HTML_FILE.

    The script is not run. Validation errors still abort.
    """
    config = load_cli_config(config_path, debug)
    pipeline = Pipeline(config)

    commands = pipeline.extract(html_file)
    findings = pipeline.validate(commands)
    render_findings([finding for finding in findings if not finding.is_blocking], err_console)
    pipeline.enforce(findings)

    assembled = pipeline.assemble(commands)
    if output:
        assembled.write(output)
        logger.success(f"Wrote {assembled.command_count} step(s) to {output}")
    else:
        click.echo(assembled.text, nl=False)
