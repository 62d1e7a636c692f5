"""
Security Constants

Cryptographic parameters for the session handshake, the response
envelope and the transport obfuscation layer.
"""


class CryptoConfig:
    """Session key and envelope parameters."""

    SESSION_KEY_BYTES = 32
    GCM_IV_BYTES = 12
    GCM_TAG_BYTES = 16
    ENVELOPE_ALG = "AES-GCM"


class ObfuscationConfig:
    """Transport obfuscation parameters."""

    DEFAULT_LABEL = "transport-obf-key@2025-v1"
    NO_SALT = "nosalt"
    SALT_BYTES = 16  # bytes of the fingerprint digest kept as the salt
