"""Host identity derived from the machine name."""

import re
import socket
from typing import Optional

_INVALID_CHARS_RE = re.compile(r"[^a-zA-Z0-9_-]+")


def sanitize_hostname(name: str) -> str:
    """Reduce a hostname to a topic-safe token.

    "name.local" becomes "name"; everything outside [a-zA-Z0-9_-] is dropped.

    Raises:
        ValueError: If nothing usable remains
    """
    first_part = name.strip().split(".")[0]
    token = _INVALID_CHARS_RE.sub("", first_part)
    if not token:
        raise ValueError(f"Hostname {name!r} has no usable characters")
    return token


def get_host_identity(override: Optional[str] = None) -> str:
    """Return the sanitized host identity.

    Args:
        override: Configured hostname to use instead of the machine name
    """
    return sanitize_hostname(override or socket.gethostname())
