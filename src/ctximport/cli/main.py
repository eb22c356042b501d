"""Typer app: top-level command groups and the local import commands."""

from __future__ import annotations

from typing import Optional

import typer

from ctximport import __version__
from ctximport.cli._shared import configure_logging
from ctximport.utils.output import info

app = typer.Typer(
    name="context-import",
    help="Context Import: pull Jira issues, GitHub docs, email, files and text into context items.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        info(f"context-import {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    configure_logging(verbose)


# Register subcommand groups
from ctximport.cli.jira_cmd import jira_app
from ctximport.cli.git_cmd import git_app
from ctximport.cli.email_cmd import email_app
from ctximport.cli.config_cmd import config_app
from ctximport.cli.local_cmd import register_local_commands

app.add_typer(jira_app, name="jira", help="Search and bulk-import Jira issues")
app.add_typer(git_app, name="git", help="Import documentation from a GitHub repository")
app.add_typer(email_app, name="email", help="Email provider information")
app.add_typer(config_app, name="config", help="Manage global configuration")

register_local_commands(app)
