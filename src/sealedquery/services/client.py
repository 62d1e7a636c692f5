"""Client facade wiring transport, session and orchestrator together.

One SealedQueryClient owns one HTTP transport, one session and one
orchestrator for its lifetime. It is the entry point used by the CLI.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from sealedquery.config.models.settings import Settings
from sealedquery.shared.errors import ErrorContext, HttpError

from .query_events import QueryController
from .query_models import IndexResult, QueryParams, QueryResult
from .query_orchestrator import QueryOrchestrator
from .session_manager import SessionManager
from .transport import HttpTransport, Transport

logger = logging.getLogger(__name__)


class SealedQueryClient:
    """Asynchronous client for the encrypted number-query service.

    Args:
        settings: Loaded settings
        transport: Transport to use instead of an HttpTransport for api.base_url
        device_salt: Fingerprint salt; computed from the environment if None
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: Transport | None = None,
        device_salt: str | None = None,
    ) -> None:
        self.settings = settings or Settings()
        api = self.settings.api
        self._owns_transport = transport is None
        self.transport: Transport = transport or HttpTransport(api.base_url, timeout=api.timeout)

        self.session = SessionManager(
            self.transport,
            device_salt=device_salt,
            obfuscation_label=self.settings.security.obfuscation_label,
            public_key_path=api.public_key_path,
            session_init_path=api.session_init_path,
        )
        self.orchestrator = QueryOrchestrator(
            self.session,
            self.transport,
            settings=self.settings.query,
            api=api,
        )

    async def __aenter__(self) -> SealedQueryClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Cancel pending work, drop the session and close owned resources."""
        self.orchestrator.cancel()
        self.session.discard()
        if self._owns_transport and isinstance(self.transport, HttpTransport):
            await self.transport.close()

    def controller(self) -> QueryController:
        """Create an event controller bound to this client's orchestrator."""
        return QueryController(
            self.orchestrator,
            self.settings.query,
            language=self.settings.app.language,
        )

    async def handshake(self) -> dict[str, Any]:
        """Establish the secure session and describe it (no secrets)."""
        start = time.perf_counter()
        await self.session.ensure_ready()
        expiry = self.session.expiry
        return {
            "state": self.session.state.value,
            "device_salt": self.session.device_salt,
            "expiry": expiry.isoformat() if expiry else None,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
        }

    async def query(self, params: QueryParams) -> QueryResult:
        return await self.orchestrator.query(params)

    async def fetch_index(self) -> IndexResult:
        return await self.orchestrator.fetch_index()

    async def health(self) -> dict[str, Any]:
        """Call the unauthenticated health endpoint.

        Raises:
            HttpError: If the endpoint answers with a non-success status
            NetworkError: If the service is unreachable
        """
        path = self.settings.api.health_path
        response = await self.transport.request("GET", path)
        if not response.ok:
            raise HttpError(
                response.status,
                context=ErrorContext(operation="health", endpoint=path),
            )
        payload = response.payload if isinstance(response.payload, dict) else {}
        return {"http_status": response.status, **payload}
