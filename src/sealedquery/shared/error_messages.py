"""
SealedQuery Error Messages Module

User-visible messages for errors surfaced by the query client. Every
error is mapped to a coarse category so that a consumer can show one
message per category; terminal errors carry a manual-refresh
instruction.

The module follows these principles:
- One Source of Truth: All user-visible messages are centralized here
- Actionable: Terminal errors tell the user to refresh manually
- Multilingual: Supports English and Chinese
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import (
    DecryptError,
    ErrorCode,
    HttpError,
    RateLimitedError,
    SealedQueryError,
)

DEFAULT_LANGUAGE = "en"


class ErrorCategory(str, Enum):
    """Coarse, user-facing error categories."""

    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    DECRYPTION = "decryption"
    SESSION = "session"
    SERVER = "server"
    INVALID_RESPONSE = "invalid_response"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


_CATEGORY_BY_CODE: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.API_RATE_LIMIT: ErrorCategory.RATE_LIMITED,
    ErrorCode.NETWORK_ERROR: ErrorCategory.NETWORK,
    ErrorCode.API_TIMEOUT: ErrorCategory.NETWORK,
    ErrorCode.DECRYPTION_FAILED: ErrorCategory.DECRYPTION,
    ErrorCode.DECODE_FAILED: ErrorCategory.DECRYPTION,
    ErrorCode.HANDSHAKE_FAILED: ErrorCategory.SESSION,
    ErrorCode.SESSION_UNAVAILABLE: ErrorCategory.SESSION,
    ErrorCode.API_AUTHENTICATION_FAILED: ErrorCategory.SESSION,
    ErrorCode.API_SERVER_ERROR: ErrorCategory.SERVER,
    ErrorCode.API_REQUEST_FAILED: ErrorCategory.SERVER,
    ErrorCode.API_INVALID_RESPONSE: ErrorCategory.INVALID_RESPONSE,
    ErrorCode.MISSING_REQUIRED_FIELD: ErrorCategory.INVALID_RESPONSE,
    ErrorCode.CONFIGURATION_ERROR: ErrorCategory.CONFIGURATION,
    ErrorCode.MISSING_CONFIG: ErrorCategory.CONFIGURATION,
}

ERROR_MESSAGES: dict[str, dict[ErrorCategory, str]] = {
    "en": {
        ErrorCategory.RATE_LIMITED: "Too many requests. Please refresh manually in a moment.",
        ErrorCategory.NETWORK: "Network connection problem. Please check your network.",
        ErrorCategory.DECRYPTION: "Response could not be decrypted. Please refresh manually.",
        ErrorCategory.SESSION: "Secure session could not be established. Please refresh manually.",
        ErrorCategory.SERVER: "Query failed (HTTP {status}). Please try again.",
        ErrorCategory.INVALID_RESPONSE: "The server sent an unexpected response. Please try again.",
        ErrorCategory.CONFIGURATION: "Configuration problem: {detail}",
        ErrorCategory.UNKNOWN: "Query failed. Please try again.",
    },
    "zh": {
        ErrorCategory.RATE_LIMITED: "请求次数过多，请稍后手动刷新页面",
        ErrorCategory.NETWORK: "网络连接异常，请检查网络",
        ErrorCategory.DECRYPTION: "数据解密失败，请刷新页面",
        ErrorCategory.SESSION: "安全会话建立失败，请刷新页面",
        ErrorCategory.SERVER: "请求失败 ({status})，请重试",
        ErrorCategory.INVALID_RESPONSE: "数据格式错误，请重试",
        ErrorCategory.CONFIGURATION: "配置错误: {detail}",
        ErrorCategory.UNKNOWN: "查询失败，请重试",
    },
}

# Categories whose message asks the user to refresh by hand
_REFRESH_CATEGORIES = frozenset(
    {ErrorCategory.RATE_LIMITED, ErrorCategory.DECRYPTION, ErrorCategory.SESSION},
)


@dataclass(frozen=True)
class UserMessage:
    """A user-visible description of a surfaced error."""

    category: ErrorCategory
    message: str
    requires_manual_refresh: bool


def categorize_error(error: BaseException) -> ErrorCategory:
    """Map an exception to its user-facing category."""
    if isinstance(error, RateLimitedError):
        return ErrorCategory.RATE_LIMITED
    if isinstance(error, DecryptError):
        return ErrorCategory.DECRYPTION
    if isinstance(error, SealedQueryError):
        return _CATEGORY_BY_CODE.get(error.code, ErrorCategory.UNKNOWN)
    return ErrorCategory.UNKNOWN


def get_error_message(
    category: ErrorCategory,
    language: str = DEFAULT_LANGUAGE,
    **kwargs: Any,
) -> str:
    """Get the message template for a category, formatted with kwargs.

    Args:
        category: Error category
        language: Language code ('en' or 'zh'), defaults to 'en'
        **kwargs: Values substituted into the template

    Returns:
        Formatted message
    """
    if language not in ERROR_MESSAGES:
        language = DEFAULT_LANGUAGE

    template = ERROR_MESSAGES[language].get(
        category,
        ERROR_MESSAGES[language][ErrorCategory.UNKNOWN],
    )

    try:
        return template.format(**kwargs)
    except KeyError as e:
        return f"{template} [Format error: missing {e}]"


def describe_error(error: BaseException, language: str = DEFAULT_LANGUAGE) -> UserMessage:
    """Build the user-visible message for a surfaced error.

    Args:
        error: The error surfaced by the orchestrator or the session
        language: Language code ('en' or 'zh')

    Returns:
        UserMessage with category, text and refresh flag
    """
    category = categorize_error(error)
    kwargs: dict[str, Any] = {}
    if isinstance(error, HttpError):
        kwargs["status"] = error.status
    elif category == ErrorCategory.SERVER:
        kwargs["status"] = "?"
    if category == ErrorCategory.CONFIGURATION:
        kwargs["detail"] = getattr(error, "message", str(error))

    return UserMessage(
        category=category,
        message=get_error_message(category, language, **kwargs),
        requires_manual_refresh=category in _REFRESH_CATEGORIES,
    )


def get_available_languages() -> list[str]:
    """Get list of available languages for error messages."""
    return list(ERROR_MESSAGES.keys())
