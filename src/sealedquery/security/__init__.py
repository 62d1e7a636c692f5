"""
Security module for SealedQuery.

Provides the device fingerprint, the transport obfuscator, the
asymmetric session handshake and the authenticated response decryptor.
"""

from .decryptor import ResponseDecryptor, encrypt_envelope
from .fingerprint import compute_device_salt
from .handshake import AsymmetricHandshake, HandshakeResult
from .obfuscation import TransportObfuscator

__all__ = [
    "AsymmetricHandshake",
    "HandshakeResult",
    "ResponseDecryptor",
    "TransportObfuscator",
    "compute_device_salt",
    "encrypt_envelope",
]
