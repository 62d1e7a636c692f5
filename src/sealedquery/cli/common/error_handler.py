"""
CLI Error Handling Utilities

Consistent error output for CLI commands: every error is mapped to a
CliError with an exit code, logged with structured context, and shown
either as JSON on stdout or as the catalogue message on stderr.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from sealedquery.shared.error_messages import DEFAULT_LANGUAGE, describe_error
from sealedquery.shared.errors import (
    CliError,
    ErrorCode,
    SealedQueryError,
    create_cli_error,
)

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def format_json_output(
    command: str,
    *,
    success: bool,
    errors: list[str] | None = None,
    data: dict[str, Any] | None = None,
) -> bytes:
    """Format command output as JSON.

    Args:
        command: The command that was executed
        success: Whether the operation was successful
        errors: List of error messages
        data: Additional data to include

    Returns:
        JSON-formatted bytes for output
    """
    output: dict[str, Any] = {
        "success": success,
        "command": command,
    }

    if errors:
        output["errors"] = errors

    if data:
        output["data"] = data

    return json.dumps(output, indent=2, ensure_ascii=False, default=str).encode("utf-8")


def write_json(payload: bytes) -> None:
    sys.stdout.buffer.write(payload)
    sys.stdout.buffer.write(b"\n")
    sys.stdout.buffer.flush()


def handle_cli_error(
    error: BaseException,
    command: str,
    *,
    json_output: bool = False,
    language: str = DEFAULT_LANGUAGE,
) -> int:
    """Handle CLI errors with consistent formatting and logging.

    Args:
        error: The exception that occurred
        command: The CLI command being executed
        json_output: Whether to output JSON format
        language: Language of the user-visible message

    Returns:
        Exit code for the CLI command
    """
    cli_error = _map_error_to_cli_error(error, command)
    user_message = describe_error(
        cli_error.original_error if isinstance(cli_error.original_error, SealedQueryError) else error,
        language,
    )
    error_context = {
        "command": command,
        "error_type": type(error).__name__,
        "error_code": cli_error.code.value,
    }

    if isinstance(error, KeyboardInterrupt):
        logger.warning("Command interrupted: %s", command, extra={"context": error_context})
    else:
        logger.error(
            "CLI error in %s: %s",
            command,
            cli_error.message,
            extra={"context": error_context},
            exc_info=not isinstance(error, SealedQueryError),
        )

    if json_output:
        write_json(
            format_json_output(
                command,
                success=False,
                errors=[user_message.message],
                data={
                    "error_code": cli_error.code.value,
                    "error_type": type(error).__name__,
                    "category": user_message.category.value,
                    "requires_manual_refresh": user_message.requires_manual_refresh,
                    "detail": cli_error.message,
                    "exit_code": cli_error.exit_code,
                },
            ),
        )
    else:
        sys.stderr.write(f"Error: {user_message.message}\n")
        sys.stderr.write(f"  ({cli_error.message})\n")

    return cli_error.exit_code


def _map_error_to_cli_error(error: BaseException, command: str) -> CliError:
    """Map specific exception types to CLI errors."""
    if isinstance(error, CliError):
        return error

    if isinstance(error, SealedQueryError):
        return CliError(
            error.code,
            error.message,
            error.context,
            original_error=error,
        )

    if isinstance(error, KeyboardInterrupt):
        return create_cli_error(
            message="Command interrupted by user",
            command=command,
            exit_code=EXIT_INTERRUPTED,
        )

    cli_error = create_cli_error(
        message=f"Unexpected error: {error}",
        command=command,
        original_error=error if isinstance(error, Exception) else None,
    )
    cli_error.code = ErrorCode.CLI_UNEXPECTED_ERROR
    return cli_error
