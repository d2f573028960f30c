"""Home Assistant discovery descriptors for the managed host entities."""

import json
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EntityKind = Literal["sensor", "binary_sensor", "number", "switch", "button"]


class Device(BaseModel):
    """Device record shared by every entity of the host."""

    model_config = ConfigDict(frozen=True)

    identifiers: tuple[str, ...] = Field(
        ...,
        description="Device identifiers (the host identity)"
    )
    name: str = Field(..., description="Device display name")
    manufacturer: str = Field(default="Apple", description="Vendor")
    model: str = Field(..., description="Hardware model")


class EntityDescriptor(BaseModel):
    """Discovery config for one entity.

    ``kind`` and ``object_id`` address the discovery topic and are not part
    of the payload. Unset optional fields are left out of the payload.
    """

    model_config = ConfigDict(frozen=True)

    kind: EntityKind = Field(..., exclude=True)
    object_id: str = Field(..., exclude=True)

    name: str
    unique_id: str
    state_topic: Optional[str] = None
    command_topic: Optional[str] = None
    availability_topic: Optional[str] = None
    device_class: Optional[str] = None
    unit_of_measurement: Optional[str] = None
    state_class: Optional[str] = None
    icon: Optional[str] = None
    min: Optional[int] = None
    max: Optional[int] = None
    step: Optional[int] = None
    mode: Optional[str] = None
    payload_on: Optional[str] = None
    payload_off: Optional[str] = None
    state_on: Optional[str] = None
    state_off: Optional[str] = None
    payload_press: Optional[str] = None
    device: Device

    def to_payload(self) -> dict:
        """Discovery payload as a dict, empty optional fields omitted."""
        return self.model_dump(exclude_none=True)

    def to_json(self) -> str:
        """Serialized discovery payload.

        Field order is fixed by the model, so identical descriptors always
        serialize to identical bytes.
        """
        return json.dumps(self.to_payload(), separators=(",", ":"))
