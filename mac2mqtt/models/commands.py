"""Command validation models for MQTT input validation.

These Pydantic models decode incoming MQTT command payloads into typed,
range-checked values before any host action is attempted.
"""

import re
from typing import Optional
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..topics import VOLUME, MUTE, POWER_ACTIONS

VOLUME_MIN = 0
VOLUME_MAX = 100

_INT_RE = re.compile(r"[+-]?\d+")


class SetVolumeCommand(BaseModel):
    """Validate a volume change request."""

    value: int = Field(
        ...,
        ge=VOLUME_MIN,
        le=VOLUME_MAX,
        description=f"Output volume ({VOLUME_MIN}-{VOLUME_MAX})"
    )

    @field_validator('value', mode='before')
    @classmethod
    def parse_value(cls, v):
        """Accept only plain integer literals ("55", not "55.0" or "5_5")."""
        if isinstance(v, str):
            if not _INT_RE.fullmatch(v):
                raise ValueError(f"not an integer: {v!r}")
            return int(v)
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"not an integer: {v!r}")
        return v


class SetMuteCommand(BaseModel):
    """Validate a mute on/off request."""

    muted: bool = Field(
        ...,
        description="true to mute output, false to unmute"
    )

    @field_validator('muted', mode='before')
    @classmethod
    def parse_muted(cls, v):
        """Accept "true"/"false" in any case; nothing else."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            lowered = v.lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
        raise ValueError(f"expected true or false, got {v!r}")


class PowerActionCommand(BaseModel):
    """A sleep/display-sleep/shutdown trigger.

    The payload must equal the action name itself.
    """

    action: str
    payload: str

    @property
    def confirmed(self) -> bool:
        return self.payload == self.action


class CommandResult(BaseModel):
    """Result of a command execution."""

    success: bool = Field(
        ...,
        description="Whether the command succeeded"
    )
    command: str = Field(
        ...,
        description="The command that was executed"
    )
    message: Optional[str] = Field(
        default=None,
        description="Optional message or error details"
    )
    value: Optional[str] = Field(
        default=None,
        description="The payload that was received"
    )


def _validation_message(error: ValidationError) -> str:
    """First error message of a ValidationError, without pydantic's preamble."""
    errors = error.errors()
    if not errors:
        return str(error)
    return errors[0].get("msg", str(error))


def validate_command(command_type: str, payload: str) -> BaseModel:
    """Decode a command payload.

    Args:
        command_type: Command action (e.g., 'volume', 'mute', 'sleep')
        payload: The raw payload string from MQTT

    Returns:
        Validated command model

    Raises:
        ValueError: If command_type is unknown or the payload is invalid
    """
    try:
        if command_type == VOLUME:
            return SetVolumeCommand(value=payload)
        if command_type == MUTE:
            return SetMuteCommand(muted=payload)
    except ValidationError as e:
        raise ValueError(_validation_message(e)) from e

    if command_type in POWER_ACTIONS:
        return PowerActionCommand(action=command_type, payload=payload)

    raise ValueError(f"Unknown command type: {command_type}")
