"""config command: print the effective configuration."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()

_SECRET_KEYS = ("github_token", "anthropic_api_key", "openai_api_key", "dify_api_key")


def _mask(value) -> str:
    if not value:
        return "[red]not set[/red]"
    text = str(value)
    return f"{text[:4]}…" if len(text) > 8 else "****"


@click.command("config")
@click.pass_context
def config_cmd(ctx):
    """Show the merged configuration (defaults, config file, environment)."""
    from prsage_core.config import ReviewOptions, load_config

    config = load_config(ctx.obj.get("config_path", ".prsage.yml") if ctx.obj else ".prsage.yml")

    table = Table(title="prsage configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key in sorted(config):
        value = _mask(config[key]) if key in _SECRET_KEYS else escape(repr(config[key]))
        table.add_row(key, value)
    console.print(table)

    try:
        ReviewOptions.from_config(config)
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")
