"""MQTT command handler for host control operations.

Processes incoming MQTT commands, validates them, invokes the host
control and publishes the read-back state.
"""

import asyncio
import logging
from typing import Optional

from ..host import HostControl, HostControlError
from ..models import (
    HostContext,
    CommandResult,
    SetVolumeCommand,
    SetMuteCommand,
    PowerActionCommand,
    validate_command,
)
from ..topics import VOLUME, MUTE, SLEEP, DISPLAY_SLEEP, SHUTDOWN
from .publisher import StatePublisher

logger = logging.getLogger(__name__)

# Time for the OS to apply a volume/mute change before reading it back
DEFAULT_SETTLE_DELAY = 1.0


class CommandHandler:
    """Route incoming MQTT commands to the host.

    Dispatches by exact topic match and reads payloads verbatim. Invalid
    payloads are rejected before any host call is made.
    """

    def __init__(
        self,
        host: HostControl,
        publisher: StatePublisher,
        context: HostContext,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
    ):
        """Initialize the command handler.

        Args:
            host: Host control that performs the actions
            publisher: State publisher used to report post-command state
            context: Host context (topics)
            settle_delay: Seconds to wait before reading back volume/mute
        """
        self.host = host
        self.publisher = publisher
        self.topics = context.topics
        self.settle_delay = settle_delay
        self._power_actions = {
            SLEEP: host.sleep,
            DISPLAY_SLEEP: host.display_sleep,
            SHUTDOWN: host.shutdown,
        }

    async def handle_message(self, topic: str, payload: bytes) -> Optional[CommandResult]:
        """Handle an incoming MQTT command message.

        Args:
            topic: MQTT topic (e.g., 'homeassistant/myhost/command/volume')
            payload: Raw payload bytes

        Returns:
            CommandResult if the topic is a command topic, None if ignored
        """
        command_type = self.topics.command_action(topic)
        if command_type is None:
            logger.debug(f"Ignoring non-command topic: {topic}")
            return None

        try:
            # Not trimmed: "sleep\n" must not trigger sleep
            payload_str = payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning(f"Invalid UTF-8 payload for {command_type}")
            return CommandResult(
                success=False,
                command=command_type,
                message="Invalid payload encoding",
            )

        logger.info(f"Received command: [{topic}] [{payload_str}]")

        try:
            validated = validate_command(command_type, payload_str)
        except ValueError as e:
            logger.warning(f"Incorrect {command_type} value {payload_str!r}: {e}")
            return CommandResult(
                success=False,
                command=command_type,
                message=str(e),
                value=payload_str,
            )

        if isinstance(validated, SetVolumeCommand):
            return await self._apply_audio(
                command_type, payload_str, self.host.set_volume, validated.value
            )
        if isinstance(validated, SetMuteCommand):
            return await self._apply_audio(
                command_type, payload_str, self.host.set_mute, validated.muted
            )
        return await self._run_power_action(validated, payload_str)

    async def _apply_audio(self, command_type: str, payload_str: str, mutator, value) -> CommandResult:
        """Apply a volume or mute change, then publish the state read back from the host."""
        try:
            await asyncio.to_thread(mutator, value)
        except HostControlError as e:
            logger.error(f"Failed to set {command_type}: {e}")
            return CommandResult(
                success=False,
                command=command_type,
                message=f"Host error: {e}",
                value=payload_str,
            )

        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)

        # Report what the host actually applied, not the requested value
        await self.publisher.publish_volume()
        await self.publisher.publish_mute()

        return CommandResult(
            success=True,
            command=command_type,
            message="Command applied",
            value=payload_str,
        )

    async def _run_power_action(self, command: PowerActionCommand, payload_str: str) -> CommandResult:
        """Run sleep/display-sleep/shutdown when the payload confirms it."""
        if not command.confirmed:
            logger.debug(f"Ignoring {command.action} command with payload {payload_str!r}")
            return CommandResult(
                success=False,
                command=command.action,
                message="Payload does not match action",
                value=payload_str,
            )

        # No publish is possible once the machine is asleep or off
        await self.publisher.publish_acknowledgement(command.action)

        logger.info(f"Performing {command.action}")
        try:
            await asyncio.to_thread(self._power_actions[command.action])
        except HostControlError as e:
            logger.error(f"Failed to perform {command.action}: {e}")
            return CommandResult(
                success=False,
                command=command.action,
                message=f"Host error: {e}",
                value=payload_str,
            )

        return CommandResult(
            success=True,
            command=command.action,
            message="Action performed",
            value=payload_str,
        )
