"""State publisher for MQTT."""

import asyncio
import logging
from typing import Any

import aiomqtt

from ..host import HostControl, HostControlError
from ..models import HostContext
from ..topics import VOLUME, MUTE, BATTERY, POWER_ADAPTER
from .client import MQTTClient

logger = logging.getLogger(__name__)


class StatePublisher:
    """Publisher for live host state to MQTT.

    Every publish reads the current value from the host; nothing is cached.
    Failures are logged and dropped, the next scheduled tick retries
    naturally.
    """

    def __init__(
        self,
        mqtt_client: MQTTClient,
        host: HostControl,
        context: HostContext,
    ):
        """Initialize the state publisher.

        Args:
            mqtt_client: MQTT session wrapper
            host: Host control used to read current values
            context: Host context (topics)
        """
        self.client = mqtt_client
        self.host = host
        self.topics = context.topics

    async def _publish(self, metric: str, value: Any) -> bool:
        """Publish one non-retained state value, logging any failure."""
        topic = self.topics.state(metric)
        try:
            await self.client.publish(topic, value, retain=False)
        except asyncio.TimeoutError:
            logger.warning(f"Update {metric} timed out after {self.client.timeout}s")
            return False
        except ConnectionError as e:
            logger.debug(f"Skipping {metric} update: {e}")
            return False
        except aiomqtt.MqttError as e:
            logger.warning(f"Error updating {metric}: {e}")
            return False
        return True

    async def _read(self, metric: str, reader, *args):
        """Run a blocking host read in a worker thread.

        Returns None (and logs) when the host query fails.
        """
        try:
            return await asyncio.to_thread(reader, *args)
        except HostControlError as e:
            logger.warning(f"Could not read {metric}: {e}")
            return None

    async def publish_volume(self) -> bool:
        """Read and publish the current output volume."""
        volume = await self._read(VOLUME, self.host.get_volume)
        if volume is None:
            return False
        return await self._publish(VOLUME, int(volume))

    async def publish_mute(self) -> bool:
        """Read and publish the current mute state."""
        muted = await self._read(MUTE, self.host.get_mute)
        if muted is None:
            return False
        return await self._publish(MUTE, bool(muted))

    async def publish_battery(self) -> bool:
        """Publish battery percent and power adapter state.

        Both values come from the same host query so they never disagree.
        """
        info = await self._read(BATTERY, self.host.get_battery_info)
        if info is None:
            return False

        battery_ok = await self._publish(BATTERY, int(info.percent))
        adapter_ok = await self._publish(POWER_ADAPTER, bool(info.charging))
        return battery_ok and adapter_ok

    async def publish_audio(self) -> None:
        """Publish volume and mute together."""
        await self.publish_volume()
        await self.publish_mute()

    async def publish_acknowledgement(self, action: str) -> bool:
        """Publish the action literal to state/<action> before it is performed."""
        return await self._publish(action, action)

    async def publish_all(self) -> None:
        """Publish every metric once."""
        await self.publish_audio()
        await self.publish_battery()
