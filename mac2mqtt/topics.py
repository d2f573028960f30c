"""Topic namespace for a single host.

Root: <discovery_prefix>/<host identity>
  command/<action>   inbound commands
  state/<metric>     outbound state (latest value only)
  availability       online/offline, retained
Discovery: <discovery_prefix>/<kind>/<unique_id>/config
"""

import re
from dataclasses import dataclass
from typing import Optional

_IDENTITY_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# Command actions
VOLUME = "volume"
MUTE = "mute"
SLEEP = "sleep"
DISPLAY_SLEEP = "displaysleep"
SHUTDOWN = "shutdown"

COMMAND_ACTIONS = (VOLUME, MUTE, SLEEP, DISPLAY_SLEEP, SHUTDOWN)
POWER_ACTIONS = (SLEEP, DISPLAY_SLEEP, SHUTDOWN)

# State metrics
BATTERY = "battery"
POWER_ADAPTER = "power_adapter"


class TopicError(ValueError):
    """Raised when a topic is built from an invalid identifier."""


@dataclass(frozen=True)
class TopicNamespace:
    """Deterministic topic names derived from the host identity."""

    host_identity: str
    discovery_prefix: str = "homeassistant"

    def __post_init__(self) -> None:
        if not _IDENTITY_RE.fullmatch(self.host_identity or ""):
            raise TopicError(
                f"host identity {self.host_identity!r} is invalid; allowed: [A-Za-z0-9_-]+"
            )
        if not self.discovery_prefix or "#" in self.discovery_prefix or "+" in self.discovery_prefix:
            raise TopicError(f"discovery prefix {self.discovery_prefix!r} is invalid")

    @property
    def root(self) -> str:
        return f"{self.discovery_prefix}/{self.host_identity}"

    @property
    def availability(self) -> str:
        return f"{self.root}/availability"

    @property
    def command_filter(self) -> str:
        """Wildcard subscription covering every command topic."""
        return f"{self.root}/command/#"

    def command(self, action: str) -> str:
        return f"{self.root}/command/{action}"

    def state(self, metric: str) -> str:
        return f"{self.root}/state/{metric}"

    def discovery(self, kind: str, unique_id: str) -> str:
        return f"{self.discovery_prefix}/{kind}/{unique_id}/config"

    def unique_id(self, suffix: str) -> str:
        return f"{self.host_identity}_{suffix}"

    def command_action(self, topic: str) -> Optional[str]:
        """Return the action of a known command topic, None otherwise.

        Matches exactly; nested or unknown command topics return None.
        """
        prefix = f"{self.root}/command/"
        if not topic.startswith(prefix):
            return None
        action = topic[len(prefix):]
        if action in COMMAND_ACTIONS:
            return action
        return None
