"""
SealedQuery Typer CLI Application

Command-line entry point: establish a session, fetch the index, run
queries and check service health. Results are printed as rich tables
or, with --json, as machine-readable JSON.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, TypeVar

import typer
from rich.console import Console

from sealedquery.cli.common.context import (
    CliContext,
    LogLevel,
    get_cli_context,
    set_cli_context,
)
from sealedquery.cli.common.error_handler import (
    format_json_output,
    handle_cli_error,
    write_json,
)
from sealedquery.cli.common.options import (
    config_option,
    json_output_option,
    log_level_option,
    version_option,
)
from sealedquery.cli.formatting import render_index_result, render_query_result
from sealedquery.config import Settings, load_settings
from sealedquery.services.client import SealedQueryClient
from sealedquery.services.query_models import QueryFilters, QueryParams
from sealedquery.shared.constants import Application, CustomMode
from sealedquery.shared.logging import setup_structured_logger
from sealedquery.shared.number_utils import parse_custom_numbers

T = TypeVar("T")

console = Console()


class CustomModeChoice(str, Enum):
    """How --custom numbers are applied."""

    INCLUDE = CustomMode.INCLUDE
    EXCLUDE = CustomMode.EXCLUDE


app = typer.Typer(
    name=Application.NAME,
    help="Client for the encrypted number-query service.",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
    invoke_without_command=True,
)


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(f"{Application.NAME} {Application.VERSION}")
        raise typer.Exit


@app.callback()
def main(
    log_level: Annotated[LogLevel, log_level_option] = LogLevel.WARNING,
    json_output: Annotated[bool, json_output_option] = False,
    config_path: Annotated[Path | None, config_option] = None,
    version: Annotated[bool, version_option] = False,
) -> None:
    """Process the common options before any command runs."""
    if version:
        version_callback(value=True)

    set_cli_context(
        CliContext(
            log_level=log_level,
            json_output=json_output,
            config_path=config_path,
        ),
    )


def _run_command(
    command: str,
    action: Callable[[SealedQueryClient], Awaitable[T]],
    render: Callable[[T], None],
    to_json: Callable[[T], dict[str, Any]],
) -> None:
    """Load settings, run one async action on a fresh client and print it."""
    context = get_cli_context()
    language = "en"
    try:
        settings: Settings = load_settings(context.config_path)
        language = settings.app.language
        setup_structured_logger(
            level=context.log_level.value,
            log_file=settings.logging.file,
            use_rich_console=settings.logging.use_rich and not context.json_output,
        )

        async def runner() -> T:
            async with SealedQueryClient(settings) as client:
                return await action(client)

        result = asyncio.run(runner())
    except (Exception, KeyboardInterrupt) as e:
        exit_code = handle_cli_error(
            e,
            command,
            json_output=context.json_output,
            language=language,
        )
        raise typer.Exit(exit_code) from e

    if context.json_output:
        write_json(format_json_output(command, success=True, data=to_json(result)))
    else:
        render(result)


@app.command("handshake")
def handshake_command() -> None:
    """Establish a secure session and show its (non-secret) details."""

    def render(info: dict[str, Any]) -> None:
        console.print(f"[green]Session {info['state']}[/green] in {info['duration_ms']} ms")
        console.print(f"Device salt: {info['device_salt']}")
        console.print(f"Expires: {info['expiry'] or 'not reported'}")

    _run_command("handshake", lambda client: client.handshake(), render, lambda info: info)


@app.command("index")
def index_command() -> None:
    """Fetch and show the number index."""
    _run_command(
        "index",
        lambda client: client.fetch_index(),
        lambda result: render_index_result(console, result),
        lambda result: result.model_dump(mode="json"),
    )


@app.command("query")
def query_command(
    prefixes: Annotated[
        list[str] | None,
        typer.Option("--prefix", "-p", help="Number prefix; repeat for several."),
    ] = None,
    no4: Annotated[bool, typer.Option("--no4", help="Exclude numbers containing 4.")] = False,
    nice: Annotated[bool, typer.Option("--nice", help="Only nice (ascending run) numbers.")] = False,
    custom: Annotated[
        str | None,
        typer.Option("--custom", help="Custom digit groups, separated by commas or spaces."),
    ] = None,
    mode: Annotated[
        CustomModeChoice,
        typer.Option("--mode", case_sensitive=False, help="Include or exclude --custom numbers."),
    ] = CustomModeChoice.INCLUDE,
    search: Annotated[str, typer.Option("--search", "-s", help="Search text.")] = "",
    page: Annotated[int, typer.Option("--page", min=1, help="Page number.")] = 1,
    page_size: Annotated[
        int | None,
        typer.Option("--page-size", min=1, help="Items per page."),
    ] = None,
) -> None:
    """Run one query and show the matching numbers."""
    filters = QueryFilters(
        prefixes=prefixes or [],
        no4=no4,
        nice=nice,
        custom_numbers=parse_custom_numbers(custom),
        custom_mode=mode.value,
    )

    async def action(client: SealedQueryClient):
        params = QueryParams(
            filters=filters,
            search=search,
            page=page,
            page_size=page_size or client.settings.query.default_page_size,
        )
        return await client.query(params)

    _run_command(
        "query",
        action,
        lambda result: render_query_result(console, result),
        lambda result: result.model_dump(mode="json"),
    )


@app.command("health")
def health_command() -> None:
    """Check that the service is reachable."""

    def render(info: dict[str, Any]) -> None:
        console.print(f"[green]Service healthy[/green] (HTTP {info['http_status']})")
        for key, value in info.items():
            if key != "http_status":
                console.print(f"  {key}: {value}")

    _run_command("health", lambda client: client.health(), render, lambda info: info)


if __name__ == "__main__":
    app()
