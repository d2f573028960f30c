"""Immutable per-process host context."""

from dataclasses import dataclass, field
from typing import Optional

from ..topics import TopicNamespace
from .entities import Device

DEFAULT_MANUFACTURER = "Apple"


@dataclass(frozen=True)
class HostContext:
    """Everything the bridge components need to know about the host.

    Built once at startup and handed to each component; nothing mutates it.
    """

    identity: str
    model: str
    manufacturer: str = DEFAULT_MANUFACTURER
    discovery_prefix: str = "homeassistant"
    topics: TopicNamespace = field(init=False)

    def __post_init__(self) -> None:
        # frozen dataclass: derived field set through object.__setattr__
        object.__setattr__(
            self,
            "topics",
            TopicNamespace(self.identity, self.discovery_prefix),
        )

    @property
    def device(self) -> Device:
        return Device(
            identifiers=(self.identity,),
            name=self.identity,
            manufacturer=self.manufacturer,
            model=self.model,
        )

    @classmethod
    def create(
        cls,
        identity: str,
        model: Optional[str] = None,
        discovery_prefix: str = "homeassistant",
    ) -> "HostContext":
        """Build a context, falling back to the identity when the model is unknown."""
        return cls(
            identity=identity,
            model=model or identity,
            discovery_prefix=discovery_prefix,
        )
