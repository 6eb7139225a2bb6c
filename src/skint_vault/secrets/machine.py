"""Machine salt: a hash of quasi-stable identifiers of the local host.

The salt feeds the key derivation in :mod:`skint_vault.secrets.cipher`.
Identifiers that cannot be read are left out of the concatenation, never
reported as errors. The order below is part of the key and must not change.
"""

from __future__ import annotations

import hashlib
import logging
import os
import socket

logger = logging.getLogger(__name__)

MACHINE_ID_PATH = "/etc/machine-id"


def _machine_id() -> str | None:
    # Contents are used verbatim, trailing newline included.
    try:
        with open(MACHINE_ID_PATH, encoding="utf-8") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError):
        return None


def _hostname() -> str | None:
    try:
        return socket.gethostname() or None
    except OSError:
        return None


def _home_dir() -> str | None:
    home = os.path.expanduser("~")
    # expanduser hands "~" back unchanged when no home can be determined
    if home == "~":
        return None
    return home


def _user_id() -> str | None:
    getuid = getattr(os, "getuid", None)
    if getuid is None:
        return None
    return str(getuid())


def machine_components() -> list[str]:
    """Return the identifiers that are currently obtainable, in salt order."""
    components = []
    for source in (_machine_id, _hostname, _home_dir, _user_id):
        value = source()
        if value is not None:
            components.append(value)
    logger.debug("Machine salt built from %d identifiers", len(components))
    return components


def machine_salt() -> bytes:
    """Return the 32-byte SHA-256 of the concatenated machine identifiers."""
    combined = "".join(machine_components())
    return hashlib.sha256(combined.encode("utf-8", "surrogateescape")).digest()
