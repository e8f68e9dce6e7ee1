# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""guidecheck CLI package."""

import click

from guidecheck import __version__


@click.group()
@click.version_option(version=__version__, prog_name="guidecheck")
def cli():
    """guidecheck - Verify the install commands of an HTML guide in a sandbox."""


def main():
    """Main entry point."""
    cli()


from guidecheck.cli.commands import check  # noqa: E402,F401
from guidecheck.cli.commands import runs  # noqa: E402,F401
