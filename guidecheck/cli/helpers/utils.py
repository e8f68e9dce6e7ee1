# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Utility functions for CLI helpers."""

import functools
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from guidecheck.config import load_config
from guidecheck.errors import ExitCode, GuidecheckError, ValidationError
from guidecheck.models.config import GuidecheckConfigModel
from guidecheck.utils.logging import configure_logging, get_logger, log_startup_info

_console = Console()
logger = get_logger(__name__)


def config_options(func: Callable) -> Callable:
    """Add --config and --debug to a command."""
    func = click.option(
        "--debug",
        is_flag=True,
        default=False,
        help="Show debug output (same as GUIDECHECK_DEBUG=1)",
    )(func)
    func = click.option(
        "--config",
        "config_path",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Config file (default: ~/.config/guidecheck/config.yml)",
    )(func)
    return func


def load_cli_config(
    config_path: Optional[Path],
    debug: bool = False,
    **overrides: Any,
) -> GuidecheckConfigModel:
    """Set up logging and load configuration with CLI overrides applied.

    Options the user did not give should be passed as None.
    """
    configure_logging(debug=debug)
    log_startup_info()
    return load_config(config_path, overrides)


def show_error_panel(title: str, message: str, hint: str = None) -> None:
    """Print a red error panel."""
    content = escape(message)
    if hint:
        content += f"\n\n[blue]Try:[/blue]\n  {escape(hint)}"
    _console.print(Panel(content, title=f"[red]{title}[/red]", border_style="red"))


def show_stage_error(exc: GuidecheckError) -> None:
    """Render a pipeline error with its stage, step and preserved artifacts."""
    lines = [escape(str(exc))]

    if isinstance(exc, ValidationError):
        lines.append("")
        for finding in exc.findings:
            step = f"step {finding.command_index}: " if finding.command_index else ""
            lines.append(f"  [red]✗[/red] {escape(step + finding.message)}")
    elif exc.command_index is not None:
        lines.append(f"[bold]Step:[/bold] {exc.command_index}")

    result = getattr(exc, "result", None)
    if result is not None and result.preserved:
        lines.append("")
        lines.append("[bold]Preserved for inspection:[/bold]")
        if result.instance_id:
            lines.append(f"  container: {escape(result.instance_id)}")
        if result.script_path:
            lines.append(f"  script:    {escape(str(result.script_path))}")
        if result.log_path:
            lines.append(f"  log:       {escape(str(result.log_path))}")

    if exc.hint:
        lines.append("")
        lines.append(f"[blue]Try:[/blue]\n  {escape(exc.hint)}")

    title = f"[red]{exc.stage.capitalize()} failed[/red]"
    _console.print(Panel("\n".join(lines), title=title, border_style="red"))


def handle_errors(func: Callable) -> Callable:
    """Decorator that wraps CLI commands with standard error handling.

    Catches exceptions, prints the error in a panel and exits.
    Special handling for:
    - GuidecheckError: panel titled with the failing stage, exit code of the error
    - KeyboardInterrupt: exit 130 (artifacts of a running sandbox are kept)
    - ClickException: left to Click
    - Other exceptions: generic error panel, exit 1

    Usage:
        @cli.command()
        @handle_errors
        def my_command():
            ...
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SystemExit:
            raise  # Let sys.exit() pass through
        except click.ClickException:
            raise
        except KeyboardInterrupt:
            _console.print("\n[yellow]Interrupted[/yellow]")
            sys.exit(ExitCode.INTERRUPTED)
        except GuidecheckError as exc:
            logger.debug(f"{exc.stage} failed: {exc}")
            show_stage_error(exc)
            sys.exit(exc.exit_code)
        except OSError as exc:
            show_error_panel("Error", str(exc))
            sys.exit(ExitCode.FAILED)
        except Exception as exc:
            logger.exception(f"Unexpected error: {exc}")
            show_error_panel("Error", str(exc), hint="Rerun with --debug and check the log file")
            sys.exit(ExitCode.FAILED)

    return wrapper
