"""
Asymmetric key-exchange handshake.

Fetches the server's RSA public key, wraps a freshly generated 32-byte
session key with RSA-OAEP (SHA-256), and exchanges it for a session
token. The handshake is a single pass with no internal retries and no
fallback scheme; any failure discards everything generated so far.
"""

from __future__ import annotations

import base64
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from sealedquery.services.transport import Transport, TransportResponse
from sealedquery.shared.constants import (
    APIEndpoints,
    APIFields,
    APIHeaders,
    CryptoConfig,
)
from sealedquery.shared.errors import (
    DecodeError,
    ErrorContext,
    HandshakeError,
    HandshakeFailure,
    NetworkError,
)
from sealedquery.shared.logging import log_operation_start, log_operation_success

from .obfuscation import TransportObfuscator

logger = logging.getLogger(__name__)

OAEP_PADDING = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)


@dataclass(frozen=True)
class HandshakeResult:
    """Material produced by a successful handshake.

    The symmetric key is excluded from repr so that it never ends up in
    logs or tracebacks.
    """

    symmetric_key: bytes = field(repr=False)
    token: str = field(repr=False)
    expiry: datetime | None = None


def parse_expiry(value: object) -> datetime | None:
    """Parse an ISO-8601 expiry; a trailing "Z" is accepted."""
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Ignoring unparsable session expiry")
        return None


def load_public_key(pem: str) -> rsa.RSAPublicKey:
    """Load an RSA public key from PEM text.

    Raises:
        ValueError: If the PEM is invalid or not an RSA key
    """
    key = serialization.load_pem_public_key(pem.encode("utf-8"))
    if not isinstance(key, rsa.RSAPublicKey):
        msg = f"Expected an RSA public key, got {type(key).__name__}"
        raise ValueError(msg)
    return key


def wrap_session_key(public_key: rsa.RSAPublicKey, session_key: bytes) -> str:
    """Encrypt the session key with RSA-OAEP and base64-encode it."""
    return base64.b64encode(public_key.encrypt(session_key, OAEP_PADDING)).decode("ascii")


class AsymmetricHandshake:
    """One-shot handshake against the public-key and session-init endpoints.

    Args:
        transport: Transport used for both requests
        obfuscator: Obfuscator keyed with the same device salt
        device_salt: Fingerprint sent as X-Obf-Salt
        public_key_path: Path of the public-key endpoint
        session_init_path: Path of the session-init endpoint
    """

    def __init__(
        self,
        transport: Transport,
        obfuscator: TransportObfuscator,
        device_salt: str,
        public_key_path: str = APIEndpoints.PUBLIC_KEY,
        session_init_path: str = APIEndpoints.SESSION_INIT,
    ) -> None:
        self.transport = transport
        self.obfuscator = obfuscator
        self.device_salt = device_salt
        self.public_key_path = public_key_path
        self.session_init_path = session_init_path

    def _salt_headers(self) -> dict[str, str]:
        return {APIHeaders.OBF_SALT: self.device_salt}

    async def run(self) -> HandshakeResult:
        """Run all handshake steps.

        Returns:
            HandshakeResult with the new key, the plaintext token and expiry

        Raises:
            HandshakeError: PUBLIC_KEY_UNAVAILABLE or TOKEN_EXCHANGE_FAILED
        """
        start = time.perf_counter()
        log_operation_start(logger, "handshake", {"endpoint": self.public_key_path})

        public_key = await self._fetch_public_key()
        session_key = os.urandom(CryptoConfig.SESSION_KEY_BYTES)
        try:
            encrypted_key = wrap_session_key(public_key, session_key)
        except ValueError as e:
            raise HandshakeError(
                HandshakeFailure.PUBLIC_KEY_UNAVAILABLE,
                "Public key cannot encrypt the session key",
                ErrorContext(operation="encrypt_session_key"),
                original_error=e,
            ) from e

        token, expiry = await self._exchange_token(encrypted_key)

        log_operation_success(
            logger,
            "handshake",
            duration_ms=(time.perf_counter() - start) * 1000,
            result_info={"has_expiry": expiry is not None},
        )
        return HandshakeResult(symmetric_key=session_key, token=token, expiry=expiry)

    async def _fetch_public_key(self) -> rsa.RSAPublicKey:
        context = ErrorContext(operation="fetch_public_key", endpoint=self.public_key_path)
        response = await self._call(
            "GET",
            self.public_key_path,
            HandshakeFailure.PUBLIC_KEY_UNAVAILABLE,
            context,
        )

        obfuscated_pem = _field(response, APIFields.OBFUSCATED_PUBLIC_KEY)
        if not response.ok or not obfuscated_pem:
            raise HandshakeError(
                HandshakeFailure.PUBLIC_KEY_UNAVAILABLE,
                f"Public key unavailable (HTTP {response.status})",
                context,
            )

        try:
            return load_public_key(self.obfuscator.deobfuscate(obfuscated_pem))
        except (DecodeError, ValueError, TypeError) as e:
            raise HandshakeError(
                HandshakeFailure.PUBLIC_KEY_UNAVAILABLE,
                "Public key could not be decoded",
                context,
                original_error=e,
            ) from e

    async def _exchange_token(self, encrypted_key: str) -> tuple[str, datetime | None]:
        context = ErrorContext(operation="exchange_token", endpoint=self.session_init_path)
        response = await self._call(
            "POST",
            self.session_init_path,
            HandshakeFailure.TOKEN_EXCHANGE_FAILED,
            context,
            json_body={APIFields.ENCRYPTED_KEY: encrypted_key},
        )

        obfuscated_token = _field(response, APIFields.TOKEN)
        if not response.ok or not obfuscated_token:
            raise HandshakeError(
                HandshakeFailure.TOKEN_EXCHANGE_FAILED,
                f"Session token exchange failed (HTTP {response.status})",
                context,
            )

        try:
            token = self.obfuscator.deobfuscate(obfuscated_token)
        except DecodeError as e:
            raise HandshakeError(
                HandshakeFailure.TOKEN_EXCHANGE_FAILED,
                "Session token could not be decoded",
                context,
                original_error=e,
            ) from e

        return token, parse_expiry(_field(response, APIFields.EXPIRY))

    async def _call(
        self,
        method: str,
        path: str,
        failure: HandshakeFailure,
        context: ErrorContext,
        json_body: dict[str, str] | None = None,
    ) -> TransportResponse:
        try:
            return await self.transport.request(
                method,
                path,
                headers=self._salt_headers(),
                json_body=json_body,
            )
        except NetworkError as e:
            raise HandshakeError(failure, e.message, context, original_error=e) from e


def _field(response: TransportResponse, name: str) -> str | None:
    if isinstance(response.payload, dict):
        value = response.payload.get(name)
        if isinstance(value, str):
            return value
    return None
