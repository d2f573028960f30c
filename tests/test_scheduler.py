"""Tests for periodic state publishing."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from mac2mqtt.mqtt.publisher import StatePublisher
from mac2mqtt.scheduler import StateScheduler
from conftest import wait_for


class TestStateScheduler:
    """Tests for StateScheduler."""

    @pytest.mark.asyncio
    async def test_timers_publish(self, mqtt_client, context, host):
        """Test both timers fire and publish host state."""
        scheduler = StateScheduler(
            StatePublisher(mqtt_client, host, context),
            volume_interval=0.01,
            battery_interval=0.02,
        )

        task = asyncio.create_task(scheduler.run())
        await wait_for(lambda: scheduler.ticks["volume"] >= 2 and scheduler.ticks["battery"] >= 1)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=2.0)

        topics = set(mqtt_client.topics_published())
        assert {
            "homeassistant/testhost/state/volume",
            "homeassistant/testhost/state/mute",
            "homeassistant/testhost/state/battery",
            "homeassistant/testhost/state/power_adapter",
        } <= topics

    @pytest.mark.asyncio
    async def test_first_publish_waits_one_interval(self, mqtt_client, context, host):
        """Test nothing is published before the first interval elapses."""
        scheduler = StateScheduler(
            StatePublisher(mqtt_client, host, context),
            volume_interval=30.0,
            battery_interval=30.0,
        )

        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.05)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=2.0)

        assert mqtt_client.published == []

    @pytest.mark.asyncio
    async def test_failing_tick_keeps_running(self):
        """Test an exception in one tick does not stop the timer."""
        publisher = MagicMock()
        publisher.publish_audio = AsyncMock(side_effect=RuntimeError("boom"))
        publisher.publish_battery = AsyncMock(return_value=True)
        scheduler = StateScheduler(publisher, volume_interval=0.01, battery_interval=30.0)

        task = asyncio.create_task(scheduler.run())
        await wait_for(lambda: publisher.publish_audio.await_count >= 3)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=2.0)

        assert publisher.publish_battery.await_count == 0
