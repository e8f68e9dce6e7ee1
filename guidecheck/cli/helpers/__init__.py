# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Shared helpers for the guidecheck CLI.

- utils.py: error handling, config loading, shared options
- report.py: rich rendering of listings, summaries and verdicts

All functions are re-exported here for convenience.
"""

from rich.console import Console

console = Console()
err_console = Console(stderr=True)

from guidecheck.cli.helpers.utils import (  # noqa: E402
    config_options,
    handle_errors,
    load_cli_config,
    show_error_panel,
    show_stage_error,
)
from guidecheck.cli.helpers.report import (  # noqa: E402
    print_output_line,
    render_artifacts,
    render_commands,
    render_findings,
    render_instances,
    render_summary,
)

__all__ = [
    "console",
    "err_console",
    "config_options",
    "handle_errors",
    "load_cli_config",
    "show_error_panel",
    "show_stage_error",
    "print_output_line",
    "render_artifacts",
    "render_commands",
    "render_findings",
    "render_instances",
    "render_summary",
]
