"""
savekeep CLI -- manifest maintenance and cloud sync from the command line.

Each command group lives in its own module and is attached to the main
Click group through a register function.

Entry point: savekeep.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ..log import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="savekeep")
@click.option("-v", "--verbose", count=True, help="Increase log output (-vvv for trace).")
def main(verbose):
    """savekeep -- game save backup with cloud sync."""
    setup_logging(verbose)


# ---------------------------------------------------------------------------
# Register all command groups from modular files
# ---------------------------------------------------------------------------

from .manifest_cmd import register_manifest_commands
from .cloud_cmd import register_cloud_commands

register_manifest_commands(main)
register_cloud_commands(main)
