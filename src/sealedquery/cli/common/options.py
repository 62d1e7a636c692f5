"""
Reusable Typer Options Module

Common option definitions shared by the main callback and the commands.
"""

from __future__ import annotations

import typer

log_level_option = typer.Option(
    "--log-level",
    case_sensitive=False,
    help="Set the logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Default: WARNING.",
)

json_output_option = typer.Option(
    "--json",
    help="Enable machine-readable JSON output instead of human-readable format.",
)

config_option = typer.Option(
    "--config",
    "-c",
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    help="Path of a TOML configuration file.",
)

version_option = typer.Option(
    "--version",
    "-V",
    help="Show version information and exit.",
    is_eager=True,
)

__all__ = [
    "config_option",
    "json_output_option",
    "log_level_option",
    "version_option",
]
