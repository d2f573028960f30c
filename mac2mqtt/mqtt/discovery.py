"""Home Assistant MQTT Discovery configuration."""

import asyncio
import logging

import aiomqtt

from ..models import HostContext, EntityDescriptor, VOLUME_MIN, VOLUME_MAX
from ..topics import (
    VOLUME,
    MUTE,
    SLEEP,
    DISPLAY_SLEEP,
    SHUTDOWN,
    BATTERY,
    POWER_ADAPTER,
)
from .client import MQTTClient

logger = logging.getLogger(__name__)


class DiscoveryManager:
    """Manager for Home Assistant MQTT Discovery.

    Generates and publishes one retained discovery config per host entity
    so they appear automatically in Home Assistant. Runs after every
    successful (re)connection.
    """

    def __init__(self, mqtt_client: MQTTClient, context: HostContext):
        """Initialize the discovery manager.

        Args:
            mqtt_client: MQTT session wrapper
            context: Host context (identity, topics, device)
        """
        self.client = mqtt_client
        self.context = context

    def _entity(self, kind: str, suffix: str, label: str, **fields) -> EntityDescriptor:
        """Build a descriptor with the fields every entity shares."""
        identity = self.context.identity
        return EntityDescriptor(
            kind=kind,
            object_id=self.context.topics.unique_id(suffix),
            name=f"{identity} {label}",
            unique_id=self.context.topics.unique_id(suffix),
            availability_topic=self.context.topics.availability,
            device=self.context.device,
            **fields,
        )

    def build_descriptors(self) -> list[EntityDescriptor]:
        """Build the discovery descriptors for every managed entity."""
        topics = self.context.topics

        return [
            # Battery sensor
            self._entity(
                "sensor", "battery", "Battery Level",
                state_topic=topics.state(BATTERY),
                unit_of_measurement="%",
                device_class="battery",
                state_class="measurement",
            ),
            # Power adapter binary sensor
            self._entity(
                "binary_sensor", "power_adapter", "Power Adapter",
                state_topic=topics.state(POWER_ADAPTER),
                device_class="plug",
                payload_on="true",
                payload_off="false",
            ),
            # Volume control with state feedback
            self._entity(
                "number", "volume", "Volume",
                command_topic=topics.command(VOLUME),
                state_topic=topics.state(VOLUME),
                min=VOLUME_MIN,
                max=VOLUME_MAX,
                step=1,
                mode="slider",
                icon="mdi:volume-high",
            ),
            # Mute switch with state feedback
            self._entity(
                "switch", "mute", "Mute",
                command_topic=topics.command(MUTE),
                state_topic=topics.state(MUTE),
                payload_on="true",
                payload_off="false",
                state_on="true",
                state_off="false",
                icon="mdi:volume-off",
            ),
            # Power actions
            self._entity(
                "button", "sleep", "Sleep",
                command_topic=topics.command(SLEEP),
                payload_press=SLEEP,
                icon="mdi:sleep",
            ),
            self._entity(
                "button", "display_sleep", "Display Sleep",
                command_topic=topics.command(DISPLAY_SLEEP),
                payload_press=DISPLAY_SLEEP,
                icon="mdi:monitor-off",
            ),
            self._entity(
                "button", "shutdown", "Shutdown",
                command_topic=topics.command(SHUTDOWN),
                payload_press=SHUTDOWN,
                icon="mdi:power",
            ),
        ]

    def _discovery_topic(self, descriptor: EntityDescriptor) -> str:
        return self.context.topics.discovery(descriptor.kind, descriptor.object_id)

    async def publish_discovery_configs(self) -> int:
        """Publish all discovery configs to Home Assistant.

        A failed publish is logged and does not stop the remaining ones.

        Returns:
            Number of configs the broker accepted
        """
        logger.info("Publishing Home Assistant discovery configs")

        descriptors = self.build_descriptors()
        published = 0
        for descriptor in descriptors:
            topic = self._discovery_topic(descriptor)
            try:
                await self.client.publish(topic, descriptor.to_json(), retain=True, qos=1)
            except asyncio.TimeoutError:
                logger.error(f"Publish config to {topic} timed out after {self.client.timeout}s")
            except (aiomqtt.MqttError, ConnectionError) as e:
                logger.error(f"Error publishing config to {topic}: {e}")
            else:
                published += 1
                logger.debug(f"Published {descriptor.kind} config to {topic}")

        logger.info(f"Discovery configs published ({published}/{len(descriptors)})")
        return published

    async def remove_discovery_configs(self) -> None:
        """Remove all discovery configs from Home Assistant."""
        logger.info("Removing Home Assistant discovery configs")

        for descriptor in self.build_descriptors():
            topic = self._discovery_topic(descriptor)
            try:
                await self.client.publish(topic, "", retain=True, qos=1)
            except (asyncio.TimeoutError, aiomqtt.MqttError, ConnectionError) as e:
                logger.error(f"Error removing config {topic}: {e}")

        logger.info("Discovery configs removed")
