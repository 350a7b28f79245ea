"""CLI entry point for snaplens.

Commands:
  review   — review a line range of a file and optionally keep the conversation going
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from snaplens_cli.commands.review import review_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("snaplens"),
    prog_name="snaplens",
)
@click.option(
    "--config",
    "config_path",
    default=".snaplens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="SNAPLENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log request dispatch and retries to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI review of a selected code range, as a threaded conversation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)
