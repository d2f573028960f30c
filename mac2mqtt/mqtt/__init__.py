"""MQTT session, Home Assistant discovery and command routing."""

from .client import MQTTClient
from .publisher import StatePublisher
from .discovery import DiscoveryManager
from .command_handler import CommandHandler
from .supervisor import ConnectionSupervisor, ConnectionState

__all__ = [
    "MQTTClient",
    "StatePublisher",
    "DiscoveryManager",
    "CommandHandler",
    "ConnectionSupervisor",
    "ConnectionState",
]
