"""
Pytest configuration and shared fixtures for SealedQuery tests.

The network is replaced by FakeService, an in-memory transport that
implements the server side of the protocol with a real RSA key pair.
Timers use FakeClock, whose sleep advances the clock instead of waiting.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Union

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from sealedquery.config.models.query_settings import QuerySettings
from sealedquery.security.decryptor import encrypt_envelope
from sealedquery.security.handshake import OAEP_PADDING
from sealedquery.security.obfuscation import TransportObfuscator
from sealedquery.services.query_orchestrator import QueryOrchestrator
from sealedquery.services.session_manager import SessionManager
from sealedquery.services.transport import TransportResponse
from sealedquery.shared.constants import APIEndpoints, APIHeaders

TEST_SALT = "0123456789abcdef0123456789abcdef"

Override = Union[int, TransportResponse, Exception, Callable[..., TransportResponse]]


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += max(delay, 0.0)
        # Give other tasks a chance to run, like a real timer would
        await asyncio.sleep(0)


@dataclass
class RecordedCall:
    method: str
    path: str
    headers: dict[str, str]
    body: dict[str, Any] | None


@dataclass
class FakeService:
    """Server side of the protocol, used as the client's transport.

    Attributes:
        private_key: RSA key whose public half is served
        items: Items returned by the query endpoint
        pagination: Pagination returned by the query endpoint
        index_data: Structure returned by the index endpoint
        overrides: Per-path queue of responses served before normal handling;
            an int is a bare status, a callable receives (service, call)
        gates: Per-path events awaited before a request is answered
    """

    private_key: rsa.RSAPrivateKey
    items: list[Any] = field(default_factory=lambda: ["13812345678", "13900001111"])
    pagination: dict[str, Any] = field(
        default_factory=lambda: {
            "currentPage": 1,
            "totalItems": 2,
            "totalPages": 1,
            "hasNextPage": False,
            "hasPrevPage": False,
            "pageSize": 20,
        },
    )
    index_data: dict[str, Any] = field(
        default_factory=lambda: {
            "total": 2,
            "segments": ["138", "139"],
            "segmentCounts": {"138": 1, "139": 1},
            "no4Count": 2,
            "niceCount": 1,
            "lastUpdated": "2025-01-01T00:00:00Z",
        },
    )
    expiry: str | None = "2099-01-01T00:00:00Z"
    overrides: dict[str, list[Override]] = field(default_factory=dict)
    gates: dict[str, asyncio.Event] = field(default_factory=dict)
    calls: list[RecordedCall] = field(default_factory=list)
    keys: dict[str, bytes] = field(default_factory=dict)
    token_counter: int = 0

    @property
    def public_pem(self) -> str:
        return (
            self.private_key.public_key()
            .public_bytes(
                serialization.Encoding.PEM,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            )
            .decode("ascii")
        )

    def override(self, path: str, *responses: Override) -> None:
        self.overrides.setdefault(path, []).extend(responses)

    def count(self, path: str, method: str | None = None) -> int:
        return sum(
            1 for c in self.calls if c.path == path and (method is None or c.method == method)
        )

    def revoke_tokens(self) -> None:
        """Forget every issued token, as a restarted server would."""
        self.keys.clear()

    @staticmethod
    def obfuscator(headers: dict[str, str]) -> TransportObfuscator:
        return TransportObfuscator(headers.get(APIHeaders.OBF_SALT))

    def current_key(self) -> bytes:
        return next(reversed(self.keys.values()))

    def envelope(self, payload: Any, key: bytes | None = None) -> TransportResponse:
        return TransportResponse(
            200,
            {
                "encrypted": True,
                "data": encrypt_envelope(payload, key or self.current_key()),
                "alg": "AES-GCM",
            },
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> TransportResponse:
        call = RecordedCall(method, path, dict(headers or {}), json_body)
        self.calls.append(call)

        gate = self.gates.get(path)
        if gate is not None:
            await gate.wait()

        queue = self.overrides.get(path)
        if queue:
            item = queue.pop(0)
            if isinstance(item, Exception):
                raise item
            if isinstance(item, int):
                return TransportResponse(item, None)
            if callable(item):
                return item(self, call)
            return item

        return self.handle(call)

    def handle(self, call: RecordedCall) -> TransportResponse:
        if call.path == APIEndpoints.PUBLIC_KEY:
            return TransportResponse(
                200,
                {"obfuscatedPublicKey": self.obfuscator(call.headers).obfuscate(self.public_pem)},
            )

        if call.path == APIEndpoints.SESSION_INIT:
            wrapped = base64.b64decode((call.body or {})["encryptedKey"])
            key = self.private_key.decrypt(wrapped, OAEP_PADDING)
            self.token_counter += 1
            token = f"token-{self.token_counter}"
            self.keys[token] = key
            return TransportResponse(
                200,
                {
                    "token": self.obfuscator(call.headers).obfuscate(token),
                    "expiry": self.expiry,
                },
            )

        if call.path == APIEndpoints.HEALTH:
            return TransportResponse(200, {"status": "ok"})

        obfuscated = call.headers.get(APIHeaders.SESSION_TOKEN)
        if not obfuscated:
            return TransportResponse(401, {"error": "missing token"})
        token = self.obfuscator(call.headers).deobfuscate(obfuscated)
        key = self.keys.get(token)
        if key is None:
            return TransportResponse(401, {"error": "invalid token"})

        if call.path == APIEndpoints.INDEX:
            return self.envelope({"success": True, "data": self.index_data}, key)
        if call.path == APIEndpoints.QUERY_NUMBERS:
            return self.envelope(
                {"success": True, "data": self.items, "pagination": self.pagination},
                key,
            )
        return TransportResponse(404, {"error": "not found"})


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """A 2048-bit RSA key pair shared by the whole test session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def service(rsa_private_key: rsa.RSAPrivateKey) -> FakeService:
    return FakeService(private_key=rsa_private_key)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(service: FakeService) -> SessionManager:
    return SessionManager(service, device_salt=TEST_SALT)


@pytest.fixture
def query_settings() -> QuerySettings:
    return QuerySettings()


@pytest.fixture
def orchestrator(
    session: SessionManager,
    service: FakeService,
    query_settings: QuerySettings,
    clock: FakeClock,
) -> QueryOrchestrator:
    return QueryOrchestrator(
        session,
        service,
        settings=query_settings,
        clock=clock,
        sleep=clock.sleep,
    )


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo logger configuration done by CLI commands under test."""
    logger = logging.getLogger("sealedquery")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate

