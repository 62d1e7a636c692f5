"""SealedQuery Error Handling Module

This module defines the error handling system for SealedQuery, providing
structured error classes with context information and user-friendly messages.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- Typed Reasons: Handshake and decrypt failures carry a reason enum
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]

# Default keys to mask in safe_dict
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ("user_id",)


class ErrorCode(str, Enum):
    """Error codes for SealedQuery.

    This enum serves as the single source of truth for all error codes
    used throughout the application.
    """

    # Network and API Errors
    NETWORK_ERROR = "NETWORK_ERROR"
    API_TIMEOUT = "API_TIMEOUT"
    API_RATE_LIMIT = "API_RATE_LIMIT"
    API_AUTHENTICATION_FAILED = "API_AUTHENTICATION_FAILED"
    API_REQUEST_FAILED = "API_REQUEST_FAILED"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    API_INVALID_RESPONSE = "API_INVALID_RESPONSE"

    # Session and Cryptography Errors
    HANDSHAKE_FAILED = "HANDSHAKE_FAILED"
    SESSION_UNAVAILABLE = "SESSION_UNAVAILABLE"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"
    DECODE_FAILED = "DECODE_FAILED"

    # Query Errors
    QUERY_SUPERSEDED = "QUERY_SUPERSEDED"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

    # Configuration Errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    MISSING_CONFIG = "MISSING_CONFIG"

    # CLI Errors
    CLI_COMMAND_FAILED = "CLI_COMMAND_FAILED"
    CLI_UNEXPECTED_ERROR = "CLI_UNEXPECTED_ERROR"

    # Application Errors
    APPLICATION_ERROR = "APPLICATION_ERROR"


class HandshakeFailure(str, Enum):
    """Step of the key-exchange handshake that failed."""

    PUBLIC_KEY_UNAVAILABLE = "public_key_unavailable"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"


class DecryptFailure(str, Enum):
    """Reason an encrypted envelope was rejected."""

    MALFORMED_ENVELOPE = "malformed_envelope"
    NO_KEY = "no_key"
    AUTHENTICATION_FAILED = "authentication_failed"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContextModel:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data so that contexts serialize safely and never carry
    key material or other secrets by accident.

    Attributes:
        operation: Optional operation name that caused the error
        endpoint: Optional API endpoint involved in the error
        user_id: Optional user ID (masked in logs)
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    endpoint: str | None = None
    user_id: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Post-initialization validation and coercion."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Export context as dict with sensitive fields masked.

        Args:
            mask_keys: Fields to exclude from output. Defaults to SAFE_DICT_MASK_KEYS.

        Returns:
            Dictionary with masked sensitive fields and guaranteed additional_data key.

        Example:
            >>> context = ErrorContextModel(user_id="12345", endpoint="/index")
            >>> context.safe_dict()
            {'endpoint': '/index', 'additional_data': {}}
        """
        if mask_keys is None:
            mask_keys = SAFE_DICT_MASK_KEYS

        data: dict[str, Any] = {}
        if self.operation is not None and "operation" not in mask_keys:
            data["operation"] = self.operation
        if self.endpoint is not None and "endpoint" not in mask_keys:
            data["endpoint"] = self.endpoint
        if self.user_id is not None and "user_id" not in mask_keys:
            data["user_id"] = self.user_id

        if self.additional_data is not None and "additional_data" not in mask_keys:
            data["additional_data"] = self.additional_data
        else:
            data["additional_data"] = {}

        return data


ErrorContext = ErrorContextModel


class SealedQueryError(Exception):
    """Base exception class for all SealedQuery errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize SealedQueryError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error

        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error with code, message,
            masked context, and original_error (if present)
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class InfrastructureError(SealedQueryError):
    """Errors raised while talking to the remote service.

    Examples:
    - Connection failures and timeouts
    - Non-success HTTP status codes
    - Rate limiting
    - Response bodies that do not have the expected shape
    """


class SecurityError(SealedQueryError):
    """Errors raised by the session and cryptography layer.

    Examples:
    - Public key unavailable or token exchange rejected
    - Envelope tampered with or encrypted under another key
    - Obfuscated values that cannot be decoded
    """


class ApplicationError(SealedQueryError):
    """Application-level errors such as invalid configuration."""


class NetworkError(InfrastructureError):
    """The request never produced an HTTP response."""


class HttpError(InfrastructureError):
    """The server answered with a non-success HTTP status."""

    def __init__(
        self,
        status: int,
        message: str | None = None,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.status = status
        if status == 401:
            code = ErrorCode.API_AUTHENTICATION_FAILED
        elif status >= 500:
            code = ErrorCode.API_SERVER_ERROR
        else:
            code = ErrorCode.API_REQUEST_FAILED
        super().__init__(
            code,
            message or f"Request failed with HTTP status {status}",
            context,
            original_error,
        )


class RateLimitedError(InfrastructureError):
    """The server kept answering 429 after all automatic retries."""

    def __init__(
        self,
        attempts: int,
        context: ErrorContext | None = None,
    ) -> None:
        self.attempts = attempts
        super().__init__(
            ErrorCode.API_RATE_LIMIT,
            f"Rate limited after {attempts} automatic retries",
            context,
        )


class ResponseFormatError(InfrastructureError):
    """The response body is missing required fields or has the wrong shape."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(ErrorCode.API_INVALID_RESPONSE, message, context, original_error)


class DecodeError(SecurityError):
    """An obfuscated transport value could not be decoded."""

    def __init__(
        self,
        message: str = "Invalid obfuscated value",
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(ErrorCode.DECODE_FAILED, message, context, original_error)


class HandshakeError(SecurityError):
    """The key-exchange handshake failed at one of its steps."""

    def __init__(
        self,
        reason: HandshakeFailure,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.reason = reason
        super().__init__(ErrorCode.HANDSHAKE_FAILED, message, context, original_error)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason.value
        return data


class DecryptError(SecurityError):
    """An encrypted envelope could not be verified and decrypted."""

    def __init__(
        self,
        reason: DecryptFailure,
        message: str = "Decryption failed",
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.reason = reason
        super().__init__(ErrorCode.DECRYPTION_FAILED, message, context, original_error)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason.value
        return data


class SessionError(SecurityError):
    """The session could not be established; wraps the HandshakeError."""

    def __init__(
        self,
        handshake_error: HandshakeError,
        context: ErrorContext | None = None,
    ) -> None:
        self.handshake_error = handshake_error
        super().__init__(
            ErrorCode.SESSION_UNAVAILABLE,
            f"Secure session unavailable: {handshake_error.message}",
            context or handshake_error.context,
            original_error=handshake_error,
        )

    @property
    def reason(self) -> HandshakeFailure:
        """Handshake step that failed."""
        return self.handshake_error.reason


class QuerySupersededError(SealedQueryError):
    """A pending query was cancelled because a different query replaced it."""

    def __init__(self, signature: str) -> None:
        self.signature = signature
        super().__init__(
            ErrorCode.QUERY_SUPERSEDED,
            "Query was superseded by a newer request",
            ErrorContext(operation="query", additional_data={"signature": signature}),
        )


def create_config_error(
    message: str,
    setting: str | None = None,
    original_error: Exception | None = None,
) -> ApplicationError:
    """Create a configuration error with context."""
    context = ErrorContext(
        operation="load_config",
        additional_data={"setting": setting} if setting else None,
    )
    return ApplicationError(
        ErrorCode.CONFIGURATION_ERROR,
        message,
        context,
        original_error,
    )


def create_missing_field_error(
    field: str,
    operation: str,
    endpoint: str | None = None,
) -> ResponseFormatError:
    """Create an error for a response that lacks a required field."""
    return ResponseFormatError(
        f"Response is missing required field: {field}",
        ErrorContext(
            operation=operation,
            endpoint=endpoint,
            additional_data={"field": field},
        ),
    )


class CliError(ApplicationError):
    """CLI-specific errors carrying an exit code."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        exit_code: int = 1,
    ) -> None:
        super().__init__(code, message, context, original_error)
        self.exit_code = exit_code


def create_cli_error(
    message: str,
    command: str,
    original_error: Exception | None = None,
    exit_code: int = 1,
) -> CliError:
    """Create a CLI error with command context."""
    context = ErrorContext(
        operation=f"cli_{command}",
        additional_data={"command": command},
    )
    return CliError(
        ErrorCode.CLI_COMMAND_FAILED,
        message,
        context,
        original_error,
        exit_code,
    )
