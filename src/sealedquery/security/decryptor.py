"""
Authenticated decryption of server response envelopes.

An envelope is base64(JSON{data, iv, tag, alg}) where data is the
AES-256-GCM ciphertext, iv is 12 bytes and tag is the detached 16-byte
authentication tag. AES-GCM is the only accepted suite. Anything that
cannot be verified fails closed with a DecryptError.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from sealedquery.shared.constants import CryptoConfig
from sealedquery.shared.errors import DecryptError, DecryptFailure, ErrorContext

_REQUIRED_FIELDS = ("data", "iv", "tag")


def _b64decode(value: Any, field_name: str) -> bytes:
    if not isinstance(value, str) or not value:
        raise DecryptError(
            DecryptFailure.MALFORMED_ENVELOPE,
            f"Envelope field '{field_name}' is missing",
            ErrorContext(operation="decrypt", additional_data={"field": field_name}),
        )
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptError(
            DecryptFailure.MALFORMED_ENVELOPE,
            f"Envelope field '{field_name}' is not valid base64",
            ErrorContext(operation="decrypt", additional_data={"field": field_name}),
            original_error=e,
        ) from e


class ResponseDecryptor:
    """Verifies and decrypts AES-GCM response envelopes."""

    def parse_envelope(self, envelope_b64: str) -> dict[str, Any]:
        """Decode the outer base64/JSON layer of an envelope.

        Raises:
            DecryptError: MALFORMED_ENVELOPE for anything but a JSON object
        """
        try:
            pack = json.loads(_b64decode(envelope_b64, "envelope"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecryptError(
                DecryptFailure.MALFORMED_ENVELOPE,
                "Envelope is not valid JSON",
                ErrorContext(operation="decrypt"),
                original_error=e,
            ) from e

        if not isinstance(pack, dict):
            raise DecryptError(
                DecryptFailure.MALFORMED_ENVELOPE,
                "Envelope is not a JSON object",
                ErrorContext(operation="decrypt"),
            )
        return pack

    def decrypt(
        self,
        envelope_b64: str,
        key: bytes | bytearray | None,
        alg_hint: str | None = None,
    ) -> Any:
        """Decrypt an envelope and parse the plaintext as JSON.

        Args:
            envelope_b64: base64(JSON envelope) from the response "data" field
            key: 32-byte session key, or None when no session exists
            alg_hint: Optional "alg" value from the outer response

        Returns:
            The decrypted plaintext parsed as JSON

        Raises:
            DecryptError: MALFORMED_ENVELOPE, NO_KEY or AUTHENTICATION_FAILED
        """
        pack = self.parse_envelope(envelope_b64)

        alg = CryptoConfig.ENVELOPE_ALG
        if alg_hint != alg and pack.get("alg") != alg:
            raise DecryptError(
                DecryptFailure.MALFORMED_ENVELOPE,
                "Unsupported envelope algorithm",
                ErrorContext(
                    operation="decrypt",
                    additional_data={"alg": str(pack.get("alg") or alg_hint)},
                ),
            )

        ciphertext, iv, tag = (_b64decode(pack.get(name), name) for name in _REQUIRED_FIELDS)

        if not key:
            raise DecryptError(
                DecryptFailure.NO_KEY,
                "No session key available",
                ErrorContext(operation="decrypt"),
            )

        if len(iv) != CryptoConfig.GCM_IV_BYTES or len(tag) != CryptoConfig.GCM_TAG_BYTES:
            raise DecryptError(
                DecryptFailure.MALFORMED_ENVELOPE,
                "Envelope IV or tag has the wrong length",
                ErrorContext(
                    operation="decrypt",
                    additional_data={"iv_length": len(iv), "tag_length": len(tag)},
                ),
            )

        try:
            plaintext = AESGCM(bytes(key)).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise DecryptError(
                DecryptFailure.AUTHENTICATION_FAILED,
                "Envelope failed authentication",
                ErrorContext(operation="decrypt"),
                original_error=e,
            ) from e
        except ValueError as e:
            # Raised for keys of an invalid length
            raise DecryptError(
                DecryptFailure.AUTHENTICATION_FAILED,
                f"Envelope could not be decrypted: {e}",
                ErrorContext(operation="decrypt"),
                original_error=e,
            ) from e

        try:
            return json.loads(plaintext.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecryptError(
                DecryptFailure.MALFORMED_ENVELOPE,
                "Decrypted payload is not valid JSON",
                ErrorContext(operation="decrypt"),
                original_error=e,
            ) from e


def encrypt_envelope(payload: Any, key: bytes, iv: bytes | None = None) -> str:
    """Build an envelope the way the server does.

    Used by tests and local tooling to produce fixtures.
    """
    iv = iv or os.urandom(CryptoConfig.GCM_IV_BYTES)
    sealed = AESGCM(key).encrypt(iv, json.dumps(payload).encode("utf-8"), None)
    ciphertext, tag = sealed[: -CryptoConfig.GCM_TAG_BYTES], sealed[-CryptoConfig.GCM_TAG_BYTES :]
    pack = {
        "data": base64.b64encode(ciphertext).decode("ascii"),
        "iv": base64.b64encode(iv).decode("ascii"),
        "tag": base64.b64encode(tag).decode("ascii"),
        "alg": CryptoConfig.ENVELOPE_ALG,
    }
    return base64.b64encode(json.dumps(pack).encode("utf-8")).decode("ascii")
