"""Email subcommands."""

from __future__ import annotations

from typing import Optional

import typer

from ctximport.cli._shared import FORMAT_OPTION
from ctximport.sources.email import EmailImporter
from ctximport.utils.output import output_table

email_app = typer.Typer(no_args_is_help=True)


@email_app.command("providers")
def email_providers(fmt: Optional[str] = FORMAT_OPTION) -> None:
    """List supported mail providers and the config fields each one needs."""
    rows = [
        {
            "type": p.type,
            "name": p.name,
            "auth": "oauth" if p.auth_required else "password",
            "required": ", ".join(p.required_keys),
        }
        for p in EmailImporter.providers()
    ]
    output_table(rows, ["type", "name", "auth", "required"], fmt=fmt)
