"""CLI entry point for prsage.

Commands:
  review   run the AI review pipeline on a pull request
  config   show the effective configuration
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prsage_cli.commands.config import config_cmd
from prsage_cli.commands.review import review_cmd

console = Console()


@click.group()
@click.version_option(
    version=importlib.metadata.version("prsage"),
    prog_name="prsage",
)
@click.option(
    "--config",
    "config_path",
    default=".prsage.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSAGE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show pipeline logs.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI code review for GitHub pull requests, enriched with best-practice context."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


main.add_command(review_cmd)
main.add_command(config_cmd)
