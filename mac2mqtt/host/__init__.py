"""Host control and identity for the machine being bridged."""

from .control import (
    HostControl,
    MacOSHostControl,
    HostControlError,
    BatteryInfo,
)
from .identity import get_host_identity, sanitize_hostname

__all__ = [
    "HostControl",
    "MacOSHostControl",
    "HostControlError",
    "BatteryInfo",
    "get_host_identity",
    "sanitize_hostname",
]
