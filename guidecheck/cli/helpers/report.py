# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Rich rendering of pipeline results."""

from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from guidecheck.cli.helpers import console
from guidecheck.normalize import CommandSet
from guidecheck.validation import Severity, ValidationFinding, summarize

_STATUS_STYLE = {"PASS": "green", "WARN": "yellow", "FAIL": "red"}


def render_commands(commands: CommandSet, out: Optional[Console] = None) -> None:
    """Numbered listing of the extracted commands."""
    out = out or console
    table = Table(title=f"Extracted commands ({len(commands)})", show_lines=True)
    table.add_column("#", justify="right", style="cyan", no_wrap=True)
    table.add_column("Command", overflow="fold")
    table.add_column("Line", justify="right", style="dim", no_wrap=True)
    for command in commands:
        table.add_row(str(command.index), escape(command.text), str(command.origin.start_line))
    out.print(table)


def render_summary(findings: Sequence[ValidationFinding], out: Optional[Console] = None) -> None:
    """PASS / WARN / FAIL per rule category, then each finding."""
    out = out or console
    table = Table(title="Validation")
    table.add_column("Category")
    table.add_column("Result")
    for category, status in summarize(findings).items():
        style = _STATUS_STYLE[status]
        table.add_row(category.value, f"[{style}]{status}[/{style}]")
    out.print(table)
    render_findings(findings, out)


def render_findings(findings: Sequence[ValidationFinding], out: Optional[Console] = None) -> None:
    out = out or console
    for finding in findings:
        step = f"step {finding.command_index}: " if finding.command_index else ""
        text = escape(f"[{finding.rule_id}] {step}{finding.message}")
        if finding.severity is Severity.ERROR:
            out.print(f"[red]✗ {text}[/red]")
        else:
            out.print(f"[yellow]⚠ {text}[/yellow]")


def print_output_line(line: str) -> None:
    """Echo one line of sandbox output."""
    console.print(line, style="dim", markup=False, highlight=False)


def render_instances(instances: List[Dict[str, str]]) -> None:
    if not instances:
        console.print("[dim]No preserved containers[/dim]")
        return
    table = Table(title="Preserved containers")
    table.add_column("Container", style="cyan")
    table.add_column("Status")
    table.add_column("Image", style="dim")
    for instance in instances:
        status = instance["status"]
        style = "green" if status == "running" else "yellow"
        table.add_row(
            escape(instance["name"]),
            f"[{style}]{escape(status)}[/{style}]",
            escape(instance["image"]),
        )
    console.print(table)


def render_artifacts(artifacts: List[Path]) -> None:
    if not artifacts:
        console.print("[dim]No preserved scripts or logs[/dim]")
        return
    table = Table(title="Preserved files")
    table.add_column("File", style="cyan")
    table.add_column("Size", justify="right", style="dim")
    for path in artifacts:
        table.add_row(escape(str(path)), f"{path.stat().st_size} B")
    console.print(table)
