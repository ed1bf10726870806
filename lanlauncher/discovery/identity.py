"""
Service naming for this node.

The published name is derived from the machine id so it is stable across
runs of one machine but differs between machines. It is an HMAC of the
machine id rather than the id itself, so the raw machine id never goes
out on the network.
"""

import logging
import re
import uuid
from pathlib import Path
from typing import Iterable

from cryptography.hazmat.primitives import hashes, hmac

from lanlauncher.config import APP_ID, MACHINE_ID_PATHS

logger = logging.getLogger(__name__)

_SUFFIX_RE = re.compile(r"^(?P<base>.*) #(?P<n>[1-9][0-9]*)$")


def read_machine_id(paths: Iterable[Path] = MACHINE_ID_PATHS) -> bytes | None:
    """Return the 16 raw bytes of the machine id, or None if none is readable."""
    for path in paths:
        try:
            text = path.read_text().strip()
            return uuid.UUID(hex=text).bytes
        except (OSError, ValueError) as e:
            logger.debug(f"No usable machine id at {path}: {e}")
    return None


def app_specific_id(machine_id: bytes, app_id: str = APP_ID) -> str:
    """Derive a 128-bit application-specific id as 32 hex digits."""
    mac = hmac.HMAC(machine_id, hashes.SHA256())
    mac.update(app_id.encode("utf-8"))
    digest = bytearray(mac.finalize()[:16])
    # Mark the result as a v4 UUID, the same way systemd does for its app ids
    digest[6] = (digest[6] & 0x0F) | 0x40
    digest[8] = (digest[8] & 0x3F) | 0x80
    return digest.hex()


def default_service_name(paths: Iterable[Path] = MACHINE_ID_PATHS) -> str:
    """Name this node publishes its records under."""
    machine_id = read_machine_id(paths)
    if machine_id is None:
        logger.warning("No machine id available, using a random service name for this run")
        return uuid.uuid4().hex
    return app_specific_id(machine_id)


def alternative_service_name(name: str) -> str:
    """
    Pick the next name to try after a collision.

    "name" becomes "name #2", and "name #N" becomes "name #N+1".
    """
    match = _SUFFIX_RE.match(name)
    if match:
        return f"{match.group('base')} #{int(match.group('n')) + 1}"
    return f"{name} #2"
