"""Transport obfuscation for short strings such as session tokens.

XOR masking with a key derived from a fixed label and the device salt,
then base64. This keeps tokens from appearing as plain text on the
wire; it is not encryption and must not be treated as a security
boundary.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from itertools import cycle

from sealedquery.shared.constants import ObfuscationConfig
from sealedquery.shared.errors import DecodeError, ErrorContext


class TransportObfuscator:
    """Reversible masking of strings for on-the-wire transport.

    Args:
        device_salt: Fingerprint mixed into the key; empty means label only
        label: Fixed label shared with the server
    """

    def __init__(
        self,
        device_salt: str | None = None,
        label: str = ObfuscationConfig.DEFAULT_LABEL,
    ) -> None:
        self._label = label
        self._device_salt = device_salt
        self._key: bytes | None = None

    @property
    def device_salt(self) -> str | None:
        return self._device_salt

    def rotate(self, device_salt: str | None) -> None:
        """Switch to a new salt; the key is derived again on next use."""
        self._device_salt = device_salt
        self._key = None

    def derive_key(self) -> bytes:
        """SHA-256 of "<label>:<salt>" (or the label alone), cached."""
        if self._key is None:
            material = (
                f"{self._label}:{self._device_salt}" if self._device_salt else self._label
            )
            self._key = hashlib.sha256(material.encode("utf-8")).digest()
        return self._key

    def _xor(self, data: bytes) -> bytes:
        return bytes(b ^ k for b, k in zip(data, cycle(self.derive_key())))

    def obfuscate(self, plaintext: str) -> str:
        """Mask a string and return it base64-encoded."""
        masked = self._xor(str(plaintext).encode("utf-8"))
        return base64.b64encode(masked).decode("ascii")

    def deobfuscate(self, ciphertext_b64: str) -> str:
        """Reverse obfuscate().

        Raises:
            DecodeError: If the input is not valid base64 or does not
                unmask to UTF-8 text
        """
        context = ErrorContext(operation="deobfuscate")
        try:
            raw = base64.b64decode(ciphertext_b64, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise DecodeError(
                "Obfuscated value is not valid base64",
                context,
                original_error=e,
            ) from e

        try:
            return self._xor(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(
                "Obfuscated value does not decode to text",
                context,
                original_error=e,
            ) from e
