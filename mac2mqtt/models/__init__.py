"""Data models for host context, discovery descriptors and commands."""

from .context import HostContext
from .entities import Device, EntityDescriptor

from .commands import (
    SetVolumeCommand,
    SetMuteCommand,
    PowerActionCommand,
    CommandResult,
    validate_command,
    VOLUME_MIN,
    VOLUME_MAX,
)

__all__ = [
    # Context and discovery models
    "HostContext",
    "Device",
    "EntityDescriptor",
    # Command models
    "SetVolumeCommand",
    "SetMuteCommand",
    "PowerActionCommand",
    "CommandResult",
    "validate_command",
    "VOLUME_MIN",
    "VOLUME_MAX",
]
