"""Secure session lifecycle management.

The SessionManager owns the only copy of the negotiated symmetric key
and session token. It runs the handshake on demand, shares one
in-progress handshake between concurrent callers, and decrypts response
envelopes on behalf of the orchestrator so that the key never leaves
this object. Nothing is persisted.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from sealedquery.security.decryptor import ResponseDecryptor
from sealedquery.security.fingerprint import compute_device_salt
from sealedquery.security.handshake import AsymmetricHandshake, HandshakeResult
from sealedquery.security.obfuscation import TransportObfuscator
from sealedquery.shared.constants import APIEndpoints, APIHeaders, ObfuscationConfig
from sealedquery.shared.errors import HandshakeError, SessionError
from sealedquery.shared.logging import log_operation_error

from .transport import Transport

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle states of the secure session."""

    UNESTABLISHED = "unestablished"
    ESTABLISHING = "establishing"
    READY = "ready"
    FAILED = "failed"


class Handshake(Protocol):
    async def run(self) -> HandshakeResult: ...


def _zero(buffer: bytearray | None) -> None:
    if buffer is not None:
        for i in range(len(buffer)):
            buffer[i] = 0


class SessionManager:
    """Owns the session state machine and its key material.

    States: UNESTABLISHED -> ESTABLISHING -> READY or FAILED. READY and
    FAILED go back to ESTABLISHING through force_reestablish().

    Args:
        transport: Transport used by the handshake
        device_salt: Fingerprint salt; computed from the environment if None
        obfuscation_label: Label mixed into the obfuscation key
        public_key_path: Path of the public-key endpoint
        session_init_path: Path of the session-init endpoint
        handshake: Handshake to run instead of the default AsymmetricHandshake
        decryptor: Envelope decryptor
    """

    def __init__(
        self,
        transport: Transport,
        *,
        device_salt: str | None = None,
        obfuscation_label: str = ObfuscationConfig.DEFAULT_LABEL,
        public_key_path: str = APIEndpoints.PUBLIC_KEY,
        session_init_path: str = APIEndpoints.SESSION_INIT,
        handshake: Handshake | None = None,
        decryptor: ResponseDecryptor | None = None,
    ) -> None:
        self._device_salt = device_salt or compute_device_salt()
        self._obfuscator = TransportObfuscator(self._device_salt, obfuscation_label)
        self._handshake: Handshake = handshake or AsymmetricHandshake(
            transport,
            self._obfuscator,
            self._device_salt,
            public_key_path=public_key_path,
            session_init_path=session_init_path,
        )
        self._decryptor = decryptor or ResponseDecryptor()

        self._state = SessionState.UNESTABLISHED
        self._key: bytearray | None = None
        self._token: str | None = None
        self._expiry: datetime | None = None
        self._pending: asyncio.Task[None] | None = None
        self._handshake_count = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def device_salt(self) -> str:
        return self._device_salt

    @property
    def expiry(self) -> datetime | None:
        return self._expiry

    @property
    def handshake_count(self) -> int:
        """Number of handshakes started by this manager."""
        return self._handshake_count

    def is_ready(self) -> bool:
        return self._state is SessionState.READY and not self._is_expired()

    def _is_expired(self) -> bool:
        if self._expiry is None:
            return False
        now = datetime.now(self._expiry.tzinfo) if self._expiry.tzinfo else datetime.now()
        return now >= self._expiry

    async def ensure_ready(self) -> None:
        """Make sure a session is READY, establishing one if needed.

        Concurrent callers during ESTABLISHING share the in-progress
        handshake. An expired session is re-established.

        Raises:
            SessionError: If the handshake fails
        """
        if self.is_ready():
            return
        if self._state is SessionState.READY:
            logger.info("Session expired, establishing a new one")
        await self._establish()

    async def force_reestablish(self) -> None:
        """Discard the current session and run a new handshake.

        Joins a handshake that is already in progress instead of
        starting a second one.

        Raises:
            SessionError: If the handshake fails
        """
        if self._pending is None:
            logger.info("Re-establishing secure session")
        await self._establish()

    async def _establish(self) -> None:
        if self._pending is None:
            self._pending = asyncio.create_task(self._run_handshake())
            # Mark the exception retrieved even if every waiter goes away
            self._pending.add_done_callback(
                lambda t: None if t.cancelled() else t.exception(),
            )
        await asyncio.shield(self._pending)

    async def _run_handshake(self) -> None:
        self._discard_material()
        self._state = SessionState.ESTABLISHING
        self._handshake_count += 1
        try:
            result = await self._handshake.run()
        except HandshakeError as e:
            self._state = SessionState.FAILED
            log_operation_error(logger, e, operation="establish_session")
            raise SessionError(e) from e
        finally:
            # A discarded handshake must not touch the state of its successor
            if self._pending is asyncio.current_task():
                self._pending = None
                if self._state is SessionState.ESTABLISHING:
                    self._state = SessionState.FAILED

        self._key = bytearray(result.symmetric_key)
        self._token = result.token
        self._expiry = result.expiry
        self._state = SessionState.READY
        logger.info(
            "Secure session established",
            extra={"context": {"expiry": result.expiry.isoformat() if result.expiry else None}},
        )

    def _discard_material(self) -> None:
        _zero(self._key)
        self._key = None
        self._token = None
        self._expiry = None

    def discard(self) -> None:
        """Drop all session material and return to UNESTABLISHED."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._discard_material()
        self._state = SessionState.UNESTABLISHED

    def current_token(self) -> str | None:
        """Return the token obfuscated for transport, or None if not READY."""
        if self._state is not SessionState.READY or self._token is None:
            return None
        return self._obfuscator.obfuscate(self._token)

    def auth_headers(self) -> dict[str, str]:
        """Headers that authenticate a request, empty when not READY."""
        token = self.current_token()
        if token is None:
            return {}
        return {
            APIHeaders.SESSION_TOKEN: token,
            APIHeaders.OBF_SALT: self._device_salt,
        }

    def decrypt(self, envelope_b64: str, alg_hint: str | None = None) -> Any:
        """Decrypt a response envelope with the session key.

        Raises:
            DecryptError: If there is no key or the envelope is rejected
        """
        key = self._key if self._state is SessionState.READY else None
        return self._decryptor.decrypt(envelope_b64, key, alg_hint)
