"""Connection supervisor for the broker session.

Owns the single MQTT session. The initial connect is fatal on failure;
a session lost later is retried forever at a fixed interval. Every
successful connection re-announces discovery and re-subscribes to the
command topics before anything else uses the session.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

import aiomqtt

from .client import MQTTClient
from .command_handler import CommandHandler
from .discovery import DiscoveryManager

logger = logging.getLogger(__name__)

# Wait between failed reconnect attempts
RECONNECT_INTERVAL = 5.0


class ConnectionState(Enum):
    """Broker session states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionSupervisor:
    """Establish, watch and restore the broker session.

    Transitions:
        DISCONNECTED -> CONNECTING   connect attempt starts
        CONNECTING   -> CONNECTED    attempt succeeded (discovery + subscribe run)
        CONNECTING   -> DISCONNECTED attempt failed
        CONNECTED    -> DISCONNECTED session lost
    """

    def __init__(
        self,
        mqtt_client: MQTTClient,
        discovery: DiscoveryManager,
        command_handler: CommandHandler,
        reconnect_interval: float = RECONNECT_INTERVAL,
    ):
        """Initialize the supervisor.

        Args:
            mqtt_client: MQTT session wrapper
            discovery: Discovery manager re-run on every connection
            command_handler: Receives every inbound message
            reconnect_interval: Seconds to wait after a failed reconnect
        """
        self.client = mqtt_client
        self.discovery = discovery
        self.command_handler = command_handler
        self.reconnect_interval = reconnect_interval

        self._state = ConnectionState.DISCONNECTED
        self._reconnect_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

        self._stats = {
            "connections": 0,
            "connection_losses": 0,
            "reconnect_attempts": 0,
        }

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def stats(self) -> dict:
        return dict(self._stats)

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state is not self._state:
            logger.debug(f"MQTT session {self._state.value} -> {new_state.value}")
            self._state = new_state

    async def _attempt_connect(self) -> None:
        """One connect attempt, followed by the on-connect actions.

        Raises:
            ConnectionError: If the broker could not be reached in time
        """
        self._transition(ConnectionState.CONNECTING)
        try:
            await self.client.connect()
        except ConnectionError:
            self._transition(ConnectionState.DISCONNECTED)
            raise

        self._transition(ConnectionState.CONNECTED)
        self._stats["connections"] += 1
        await self.on_connected()

    async def start(self) -> None:
        """Open the initial session.

        Discovery is published and commands subscribed before this returns.

        Raises:
            ConnectionError: On timeout or authentication failure (fatal)
        """
        try:
            await self._attempt_connect()
        except ConnectionError as e:
            logger.error(f"MQTT connection error: {e}")
            raise

    async def on_connected(self) -> None:
        """Announce the host and subscribe to its command topics."""
        logger.info("Connected to MQTT")
        await self.announce()
        await self.subscribe_commands()

    async def announce(self) -> None:
        """Publish availability and discovery configs."""
        try:
            await self.client.publish_availability("online")
        except (asyncio.TimeoutError, aiomqtt.MqttError, ConnectionError) as e:
            logger.warning(f"Could not publish availability: {e}")
        await self.discovery.publish_discovery_configs()

    async def subscribe_commands(self) -> None:
        """Subscribe to <root>/command/#; a failure is logged only."""
        topic = self.client.topics.command_filter
        try:
            await self.client.subscribe(topic)
        except asyncio.TimeoutError:
            logger.error(f"Subscribe timed out after {self.client.timeout}s")
        except (aiomqtt.MqttError, ConnectionError) as e:
            logger.error(f"Subscribe error: {e}")
        else:
            logger.info(f"Subscribed to command topics: {topic}")

    def notify_connection_lost(self, error: Optional[BaseException] = None) -> bool:
        """Record a lost session.

        Returns:
            True if this call moved the session to DISCONNECTED, False if the
            loss was already known (duplicate notification)
        """
        if self._state is not ConnectionState.CONNECTED:
            return False

        logger.warning(f"Disconnected from MQTT: {error}")
        self._stats["connection_losses"] += 1
        self.client.mark_disconnected()
        self._transition(ConnectionState.DISCONNECTED)
        return True

    async def reconnect(self) -> None:
        """Retry until a session is restored or the supervisor is stopped.

        Only one reconnect loop runs at a time; a second caller waits for the
        first and returns once the session is back.
        """
        async with self._reconnect_lock:
            while not self.connected and not self._stop_event.is_set():
                self._stats["reconnect_attempts"] += 1
                logger.info("Attempting to reconnect to MQTT...")

                await self.client.disconnect()
                try:
                    await self._attempt_connect()
                except ConnectionError as e:
                    logger.warning(
                        f"Failed to reconnect: {e}. Retrying in {self.reconnect_interval:g} seconds..."
                    )
                    await self._wait_or_stop(self.reconnect_interval)
                else:
                    logger.info("Reconnected to MQTT successfully")

    async def _wait_or_stop(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> None:
        """Deliver inbound messages to the command handler until stopped.

        The message stream failing is the connection-loss signal.
        """
        while not self._stop_event.is_set():
            if not self.connected:
                await self.reconnect()
                continue

            try:
                await self.client.message_loop(self.command_handler.handle_message)
            except aiomqtt.MqttError as e:
                self.notify_connection_lost(e)
            except ConnectionError as e:
                self.notify_connection_lost(e)
            else:
                # Message stream ended without an error; treat as a lost session
                self.notify_connection_lost(None)

    async def stop(self) -> None:
        """Mark the session offline and close it."""
        self._stop_event.set()
        if self.connected:
            try:
                await self.client.publish_availability("offline")
            except (asyncio.TimeoutError, aiomqtt.MqttError, ConnectionError) as e:
                logger.debug(f"Could not publish offline availability: {e}")
        await self.client.disconnect()
        self._transition(ConnectionState.DISCONNECTED)
