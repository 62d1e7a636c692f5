"""Query orchestration over the secure session.

The QueryOrchestrator runs every logical call against the query and
index endpoints through the same pipeline:

1. coalesce with an identical in-flight call, or cancel a different one
2. throttle against the last dispatched call
3. serve a fresh cached result for a repeated signature
4. ensure the session, send with per-attempt auth headers
5. back off on 429, re-handshake once on 401 and once on a decrypt failure
6. validate the decrypted payload, cache it and return it

At most one call is in flight per orchestrator. A superseded caller
receives QuerySupersededError; its task never writes to the cache.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, TypeVar, Union

from pydantic import ValidationError

from sealedquery.config.models.api_settings import APISettings
from sealedquery.config.models.query_settings import QuerySettings
from sealedquery.shared.constants import APIFields, HTTPStatusCodes
from sealedquery.shared.errors import (
    DecryptError,
    ErrorContext,
    HttpError,
    QuerySupersededError,
    RateLimitedError,
    ResponseFormatError,
    SealedQueryError,
    create_missing_field_error,
)
from sealedquery.shared.logging import log_operation_error, log_operation_success

from .query_models import IndexResult, QueryParams, QueryResult
from .response_cache import ResponseCache
from .session_manager import SessionManager
from .signature import index_signature, query_signature
from .state_machine import RateLimitStateMachine, RetryState
from .transport import Transport, TransportResponse

logger = logging.getLogger(__name__)

ResultKind = Literal["query", "index"]
R = TypeVar("R", QueryResult, IndexResult)
Sender = Callable[[dict[str, str]], Awaitable[TransportResponse]]


@dataclass(frozen=True)
class InFlightRequest:
    """The single logical call currently running."""

    signature: str
    task: asyncio.Task


def _retrieve_exception(task: asyncio.Task) -> None:
    # Keeps asyncio from reporting errors of tasks nobody awaits any more
    if not task.cancelled():
        task.exception()


class QueryOrchestrator:
    """Deduplicating, caching, throttling query client.

    Args:
        session: Session manager providing auth headers and decryption
        transport: Transport used for the query and index calls
        settings: Query timing policy
        api: Endpoint paths
        clock: Monotonic clock, injectable for tests
        sleep: Awaitable sleep, injectable for tests
    """

    def __init__(
        self,
        session: SessionManager,
        transport: Transport,
        settings: QuerySettings | None = None,
        api: APISettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self.transport = transport
        self.settings = settings or QuerySettings()
        self.api = api or APISettings()
        self._clock = clock
        self._sleep = sleep

        self.cache = ResponseCache(ttl=self.settings.cache_ttl, clock=clock)
        self.rate_limit = RateLimitStateMachine(
            max_retries=self.settings.max_rate_limit_retries,
            backoff_base=self.settings.backoff_base,
            backoff_cap=self.settings.backoff_cap,
            clock=clock,
        )

        self._inflight: InFlightRequest | None = None
        self._last_dispatch_at: float | None = None
        self._last_signature: dict[str, str] = {}
        self._produced: set[str] = set()
        self._effective_page_size: int | None = None
        self._dispatch_count = 0

    @property
    def effective_page_size(self) -> int | None:
        """Page size last reported by the server."""
        return self._effective_page_size

    @property
    def dispatch_count(self) -> int:
        """Number of logical calls that went to the network."""
        return self._dispatch_count

    def has_produced_data(self, kind: ResultKind = "query") -> bool:
        return kind in self._produced

    async def query(self, params: QueryParams, *, force: bool = False) -> QueryResult:
        """Run one query.

        Args:
            params: Filters, search text and paging
            force: Skip the cache, as a manual refresh does

        Raises:
            QuerySupersededError: If a different call replaced this one
            RateLimitedError: After the automatic 429 retries are spent
            SessionError: If no session can be established
            HttpError, NetworkError, ResponseFormatError, DecryptError
        """
        endpoint = self.api.query_path
        signature = query_signature(params, endpoint)
        body = params.to_body()

        async def send(headers: dict[str, str]) -> TransportResponse:
            return await self.transport.request(
                "POST",
                endpoint,
                headers=headers,
                json_body=body,
            )

        return await self._run(
            signature,
            lambda: self._execute("query", signature, endpoint, send, force),
        )

    async def fetch_index(self, *, force: bool = False) -> IndexResult:
        """Fetch the index structure through the same pipeline as query()."""
        endpoint = self.api.index_path
        signature = index_signature(endpoint)

        async def send(headers: dict[str, str]) -> TransportResponse:
            return await self.transport.request("GET", endpoint, headers=headers)

        return await self._run(
            signature,
            lambda: self._execute("index", signature, endpoint, send, force),
        )

    def placeholder_for(self, kind: ResultKind) -> Union[QueryResult, IndexResult, None]:
        """Fallback content shown before any real data has been produced.

        Returns None once the orchestrator has produced data of this kind.
        Consumers must check ``is_placeholder`` on what they get.
        """
        if kind in self._produced:
            return None
        if kind == "index":
            return IndexResult.placeholder()
        return QueryResult.placeholder()

    def cancel(self) -> None:
        """Cancel the in-flight call, if any."""
        if self._inflight is not None and not self._inflight.task.done():
            self._inflight.task.cancel()
        self._inflight = None

    async def _run(self, signature: str, factory: Callable[[], Awaitable[R]]) -> R:
        current = self._inflight
        if current is not None and not current.task.done():
            if current.signature == signature:
                logger.debug("Joining in-flight call %s", signature[:16])
                return await self._await(current.task, signature)
            logger.debug("Superseding in-flight call %s", current.signature[:16])
            current.task.cancel()

        task = asyncio.create_task(factory())
        task.add_done_callback(_retrieve_exception)
        self._inflight = InFlightRequest(signature, task)
        try:
            return await self._await(task, signature)
        finally:
            if self._inflight is not None and self._inflight.task is task and task.done():
                self._inflight = None

    @staticmethod
    async def _await(task: asyncio.Task, signature: str) -> Any:
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise QuerySupersededError(signature) from None
            raise

    async def _throttle(self) -> None:
        if self._last_dispatch_at is None:
            return
        interval = (
            self.settings.rate_limited_interval
            if self.rate_limit.is_rate_limited
            else self.settings.min_interval
        )
        remaining = interval - (self._clock() - self._last_dispatch_at)
        if remaining > 0:
            logger.debug("Throttling for %.3fs", remaining)
            await self._sleep(remaining)

    async def _execute(
        self,
        kind: ResultKind,
        signature: str,
        endpoint: str,
        send: Sender,
        force: bool,
    ) -> Any:
        await self._throttle()

        if not force and signature == self._last_signature.get(kind):
            cached = self.cache.get(signature)
            if cached is not None:
                logger.debug("Serving %s from cache", kind)
                return cached

        self._last_signature[kind] = signature
        self._last_dispatch_at = self._clock()
        self._dispatch_count += 1
        start = self._clock()

        try:
            data, outer = await self._dispatch(kind, endpoint, send)
            result = self._build_result(kind, endpoint, data, outer)
        except SealedQueryError as e:
            log_operation_error(
                logger,
                e,
                operation=f"fetch_{kind}",
                additional_context={"endpoint": endpoint},
            )
            raise

        if isinstance(result, QueryResult) and result.effective_page_size:
            self._effective_page_size = result.effective_page_size

        self.cache.put(signature, result)
        self._produced.add(kind)
        log_operation_success(
            logger,
            f"fetch_{kind}",
            duration_ms=(self._clock() - start) * 1000,
            result_info={"items": len(result.items)} if kind == "query" else None,
        )
        return result

    async def _dispatch(
        self,
        kind: ResultKind,
        endpoint: str,
        send: Sender,
    ) -> tuple[Any, dict[str, Any]]:
        """Send until a valid decrypted payload arrives or an error is terminal.

        The loop is bounded: max_rate_limit_retries 429 retries, one
        re-handshake for 401 and one for a decrypt failure.
        """
        context = ErrorContext(operation=f"fetch_{kind}", endpoint=endpoint)
        retry = RetryState()
        auth_retried = False
        decrypt_retried = False

        while True:
            await self.session.ensure_ready()
            response = await send(self.session.auth_headers())

            if response.status == HTTPStatusCodes.TOO_MANY_REQUESTS:
                delay = self.rate_limit.handle_429(retry)
                if delay is None:
                    raise RateLimitedError(self.rate_limit.max_retries, context)
                logger.warning(
                    "Rate limited, retrying in %.1fs (attempt %d/%d)",
                    delay,
                    retry.attempt_count,
                    self.rate_limit.max_retries,
                )
                await self._sleep(delay)
                continue

            if response.status == HTTPStatusCodes.UNAUTHORIZED and not auth_retried:
                auth_retried = True
                logger.info("Session rejected, re-establishing and retrying once")
                await self.session.force_reestablish()
                continue

            if not response.ok:
                raise HttpError(response.status, context=context)

            envelope, alg = self._unwrap(response, endpoint)
            try:
                payload = self.session.decrypt(envelope, alg)
            except DecryptError as e:
                if decrypt_retried:
                    raise
                decrypt_retried = True
                logger.warning(
                    "Decryption failed (%s), re-establishing session and retrying once",
                    e.reason.value,
                )
                await self.session.force_reestablish()
                continue

            self.rate_limit.handle_success(retry)
            return self._validate_payload(kind, endpoint, payload), payload

    @staticmethod
    def _unwrap(response: TransportResponse, endpoint: str) -> tuple[str, str | None]:
        body = response.payload
        if (
            not isinstance(body, dict)
            or body.get(APIFields.ENCRYPTED) is not True
            or not isinstance(body.get(APIFields.DATA), str)
        ):
            raise ResponseFormatError(
                "Response is not an encrypted envelope",
                ErrorContext(operation="unwrap_response", endpoint=endpoint),
            )
        alg = body.get(APIFields.ALG)
        return body[APIFields.DATA], alg if isinstance(alg, str) else None

    @staticmethod
    def _build_result(
        kind: ResultKind,
        endpoint: str,
        data: Any,
        payload: dict[str, Any],
    ) -> QueryResult | IndexResult:
        try:
            if kind == "query":
                return QueryResult.from_payload(data, payload.get(APIFields.PAGINATION))
            return IndexResult(data=data)
        except ValidationError as e:
            raise ResponseFormatError(
                f"Malformed {kind} response: {e.error_count()} invalid field(s)",
                ErrorContext(operation=f"fetch_{kind}", endpoint=endpoint),
                original_error=e,
            ) from e

    @staticmethod
    def _validate_payload(kind: ResultKind, endpoint: str, payload: Any) -> Any:
        operation = f"fetch_{kind}"
        if not isinstance(payload, dict) or not payload.get(APIFields.SUCCESS):
            raise ResponseFormatError(
                "Server reported an unsuccessful response",
                ErrorContext(operation=operation, endpoint=endpoint),
            )
        if APIFields.DATA not in payload:
            raise create_missing_field_error(APIFields.DATA, operation, endpoint)

        data = payload[APIFields.DATA]
        expected = list if kind == "query" else dict
        if not isinstance(data, expected):
            raise ResponseFormatError(
                f"Field '{APIFields.DATA}' must be a {expected.__name__}",
                ErrorContext(operation=operation, endpoint=endpoint),
            )
        return data
