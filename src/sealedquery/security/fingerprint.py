"""Device fingerprint used to salt the transport obfuscation key.

The fingerprint is a short, low-entropy hash of coarse environment
attributes. It is not an identifier and not a secret; it only makes the
obfuscation key differ between clients.
"""

from __future__ import annotations

import hashlib
import locale
import logging
import platform
import shutil
import time
from dataclasses import dataclass

from sealedquery.shared.constants import Application, ObfuscationConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvironmentAttributes:
    """Coarse attributes of the running environment."""

    user_agent: str
    language: str
    width: int
    height: int
    color_depth: int
    timezone_offset: int

    def joined(self) -> str:
        return "|".join(
            [
                self.user_agent,
                self.language,
                str(self.width),
                str(self.height),
                str(self.color_depth),
                str(self.timezone_offset),
            ]
        )


def _timezone_offset_minutes() -> int:
    """Minutes to add to local time to get UTC (JavaScript sign convention)."""
    offset_seconds = time.altzone if time.localtime().tm_isdst > 0 else time.timezone
    return offset_seconds // 60


def collect_environment() -> EnvironmentAttributes:
    """Collect the attributes that feed the fingerprint."""
    size = shutil.get_terminal_size(fallback=(0, 0))
    language = locale.getlocale()[0] or ""
    user_agent = (
        f"{Application.NAME}/{Application.VERSION} "
        f"({platform.system()} {platform.machine()}; "
        f"Python {platform.python_version()})"
    )
    return EnvironmentAttributes(
        user_agent=user_agent,
        language=language,
        width=size.columns,
        height=size.lines,
        color_depth=24,
        timezone_offset=_timezone_offset_minutes(),
    )


def compute_device_salt(attributes: EnvironmentAttributes | None = None) -> str:
    """Derive the device salt from the environment.

    Returns the hex encoding of the first 16 bytes of SHA-256 over the
    joined attributes. Never raises: any failure yields "nosalt".
    """
    try:
        attrs = attributes if attributes is not None else collect_environment()
        digest = hashlib.sha256(attrs.joined().encode("utf-8")).digest()
        return digest[: ObfuscationConfig.SALT_BYTES].hex()
    except Exception:  # noqa: BLE001
        logger.debug("Device fingerprint unavailable, using fallback salt")
        return ObfuscationConfig.NO_SALT
