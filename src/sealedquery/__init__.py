"""
SealedQuery - client for an encrypted number-query service

Establishes an RSA-OAEP / AES-GCM secure session with the service and
runs deduplicated, cached, throttled queries over it.
"""

from sealedquery.shared.constants import Application

__version__ = Application.VERSION

__all__ = ["__version__"]
