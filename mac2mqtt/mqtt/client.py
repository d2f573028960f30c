"""Async MQTT client wrapper."""

import asyncio
import logging
import json
from typing import Optional, Any, Callable, Awaitable

import aiomqtt

from ..config import AppConfig
from ..topics import TopicNamespace

logger = logging.getLogger(__name__)

# Type alias for message callback
MessageCallback = Callable[[str, bytes], Awaitable[Any]]

# Bound for every broker round trip (connect, publish, subscribe)
DEFAULT_TIMEOUT = 5.0


def encode_payload(payload: Any) -> str:
    """Encode a payload the way Home Assistant expects it.

    dict/list -> JSON, bool -> "true"/"false", None -> "", else str().
    """
    if isinstance(payload, (dict, list)):
        return json.dumps(payload)
    if isinstance(payload, bool):
        return "true" if payload else "false"
    if payload is None:
        return ""
    return str(payload)


class MQTTClient:
    """Async MQTT session for one host.

    Wraps aiomqtt with a bounded connect, bounded publish/subscribe and
    a message loop. A new aiomqtt.Client is created for every connect so
    a lost session is never reused.
    """

    def __init__(
        self,
        config: AppConfig,
        topics: TopicNamespace,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the MQTT client.

        Args:
            config: Application configuration (broker address and credentials)
            topics: Topic namespace of this host
            timeout: Seconds to wait for any single broker operation
        """
        self.config = config
        self.topics = topics
        self.timeout = timeout
        self._client: Optional[aiomqtt.Client] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        """Check if connected to MQTT broker."""
        return self._connected

    @property
    def client_id(self) -> str:
        return f"mac2mqtt-{self.topics.host_identity}"

    def _create_client(self) -> aiomqtt.Client:
        return aiomqtt.Client(
            hostname=self.config.mqtt_ip,
            port=self.config.mqtt_port,
            username=self.config.mqtt_user,
            password=self.config.mqtt_password,
            identifier=self.client_id,
            timeout=self.timeout,
            # Last Will and Testament for availability
            will=aiomqtt.Will(
                topic=self.topics.availability,
                payload="offline",
                qos=1,
                retain=True,
            ),
        )

    async def connect(self) -> None:
        """Open a new session to the broker.

        Raises:
            ConnectionError: On timeout, refused connection or bad credentials
        """
        logger.info(f"Connecting to MQTT broker at {self.config.broker_address}")

        client = self._create_client()
        try:
            await asyncio.wait_for(client.__aenter__(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            # A half-open client still holds its socket
            await self._close(client)
            raise ConnectionError(
                f"MQTT connection to {self.config.broker_address} timed out after {self.timeout}s"
            ) from e
        except aiomqtt.MqttError as e:
            await self._close(client)
            raise ConnectionError(
                f"MQTT connection to {self.config.broker_address} failed: {e}"
            ) from e

        self._client = client
        self._connected = True
        logger.info("Connected to MQTT broker")

    def mark_disconnected(self) -> None:
        """Record that the session was lost; publishes fail fast until reconnect."""
        self._connected = False

    async def disconnect(self) -> None:
        """Close the current session, if any."""
        client = self._client
        self._client = None
        self._connected = False
        if client is None:
            return

        await self._close(client)
        logger.info("Disconnected from MQTT broker")

    async def _close(self, client: aiomqtt.Client) -> None:
        """Release a client's socket, whether or not it ever connected."""
        try:
            await asyncio.wait_for(client.__aexit__(None, None, None), timeout=self.timeout)
        except (aiomqtt.MqttError, asyncio.TimeoutError) as e:
            # Session already gone; nothing left to close
            logger.debug(f"Ignoring error while closing MQTT session: {e}")

    async def publish(
        self,
        topic: str,
        payload: Any,
        retain: bool = False,
        qos: int = 0,
    ) -> None:
        """Publish a message to a topic.

        Args:
            topic: MQTT topic
            payload: Message payload (see encode_payload)
            retain: Whether to retain the message
            qos: QoS level

        Raises:
            ConnectionError: If not connected
            asyncio.TimeoutError: If the broker did not accept it in time
            aiomqtt.MqttError: On broker errors
        """
        if not self._client or not self._connected:
            raise ConnectionError("Not connected to MQTT broker")

        payload_str = encode_payload(payload)

        await asyncio.wait_for(
            self._client.publish(topic, payload=payload_str, qos=qos, retain=retain),
            timeout=self.timeout,
        )
        logger.debug(f"Published to {topic}: {payload_str[:100]}")

    async def publish_availability(self, status: str) -> None:
        """Publish availability status ("online" or "offline")."""
        await self.publish(self.topics.availability, status, retain=True, qos=1)
        logger.info(f"Published availability: {status}")

    async def subscribe(self, topic: str, qos: int = 0) -> None:
        """Subscribe to a topic.

        Raises:
            ConnectionError: If not connected
        """
        if not self._client or not self._connected:
            raise ConnectionError("Not connected to MQTT broker")

        await asyncio.wait_for(self._client.subscribe(topic, qos=qos), timeout=self.timeout)
        logger.debug(f"Subscribed to {topic}")

    async def message_loop(self, callback: MessageCallback) -> None:
        """Run a message processing loop.

        Calls the callback for every received message. Errors raised by the
        callback are logged and do not end the loop.

        Raises:
            ConnectionError: If not connected
            aiomqtt.MqttError: When the session is lost
        """
        if not self._client or not self._connected:
            raise ConnectionError("Not connected to MQTT broker")

        logger.debug("Starting MQTT message loop")

        async for message in self._client.messages:
            topic = str(message.topic)

            if isinstance(message.payload, bytes):
                payload = message.payload
            elif message.payload is None:
                payload = b""
            else:
                payload = str(message.payload).encode()

            logger.debug(f"Received message on {topic}: {payload[:100]}")

            try:
                await callback(topic, payload)
            except Exception as e:
                logger.error(f"Error processing message on {topic}: {e}", exc_info=True)
