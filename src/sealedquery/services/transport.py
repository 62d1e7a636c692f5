"""Async HTTP transport for the query service.

This module owns the aiohttp.ClientSession used for every call to the
service and turns responses into TransportResponse objects. HTTP status
codes are returned to the caller rather than raised, since the
orchestrator handles 401 and 429 itself.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from sealedquery.shared.constants import APIHeaders, Application
from sealedquery.shared.errors import ErrorCode, ErrorContext, NetworkError
from sealedquery.shared.logging import log_api_call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Status and decoded JSON body of one HTTP exchange.

    Attributes:
        status: HTTP status code
        payload: Decoded JSON body, or None when the body is not JSON
    """

    status: int
    payload: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    """Anything that can perform a JSON request against the service."""

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> TransportResponse: ...


class HttpTransport:
    """aiohttp-backed transport bound to one base URL.

    The ClientSession is created lazily on first use and closed by
    close() or by leaving the async context.

    Args:
        base_url: Base URL the endpoint paths are appended to
        timeout: Total request timeout in seconds
    """

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def __aenter__(self) -> HttpTransport:
        await self._get_session()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                    headers={
                        "User-Agent": f"{Application.NAME}/{Application.VERSION}",
                        APIHeaders.ACCEPT: APIHeaders.CONTENT_TYPE_JSON,
                    },
                    raise_for_status=False,
                )
                logger.debug("aiohttp.ClientSession created for %s", self.base_url)
            return self._session

    async def close(self) -> None:
        """Close the HTTP session and release its connections."""
        async with self._session_lock:
            if self._session is not None and not self._session.closed:
                await self._session.close()
                logger.debug("aiohttp.ClientSession closed")
            self._session = None

    def build_url(self, path: str) -> str:
        normalized = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}{normalized}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> TransportResponse:
        """Perform one request and decode the JSON body.

        Raises:
            NetworkError: If no HTTP response was received
        """
        session = await self._get_session()
        url = self.build_url(path)
        start = time.perf_counter()
        context = ErrorContext(
            operation="http_request",
            endpoint=path,
            additional_data={"method": method},
        )

        try:
            async with session.request(
                method,
                url,
                headers=headers,
                json=json_body,
            ) as response:
                raw = await response.read()
                status = response.status
        except asyncio.TimeoutError as e:
            raise NetworkError(
                ErrorCode.API_TIMEOUT,
                f"Request to {path} timed out",
                context,
                original_error=e,
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(
                ErrorCode.NETWORK_ERROR,
                f"Request to {path} failed: {e}",
                context,
                original_error=e,
            ) from e

        log_api_call(
            logger,
            endpoint=path,
            method=method,
            status_code=status,
            duration_ms=(time.perf_counter() - start) * 1000,
        )

        # Bodies that are not UTF-8 JSON (proxy error pages) leave the status to decide
        try:
            payload = json.loads(raw.decode("utf-8")) if raw else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            payload = None

        return TransportResponse(status=status, payload=payload)
