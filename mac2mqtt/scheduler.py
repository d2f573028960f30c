"""Periodic state publishing."""

import asyncio
import logging
from typing import Awaitable, Callable

from .mqtt.publisher import StatePublisher

logger = logging.getLogger(__name__)

DEFAULT_VOLUME_INTERVAL = 2.0
DEFAULT_BATTERY_INTERVAL = 60.0


class StateScheduler:
    """Drive the state publisher from two independent timers.

    Volume and mute are published every ``volume_interval`` seconds,
    battery and power adapter every ``battery_interval`` seconds. The
    timers run as separate tasks; their relative order is not defined.
    """

    def __init__(
        self,
        publisher: StatePublisher,
        volume_interval: float = DEFAULT_VOLUME_INTERVAL,
        battery_interval: float = DEFAULT_BATTERY_INTERVAL,
    ):
        self.publisher = publisher
        self.volume_interval = volume_interval
        self.battery_interval = battery_interval
        self._stop_event = asyncio.Event()
        self.ticks = {"volume": 0, "battery": 0}

    def stop(self) -> None:
        """End both timers after their current tick."""
        self._stop_event.set()

    async def _every(self, name: str, interval: float, action: Callable[[], Awaitable]) -> None:
        """Run ``action`` once per interval until stopped.

        The first run happens after one full interval.
        """
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

            self.ticks[name] += 1
            try:
                await action()
            except Exception as e:
                logger.error(f"{name} tick failed: {e}", exc_info=True)

    async def run(self) -> None:
        """Run both timers until stopped."""
        logger.info(
            f"Starting state publishing (volume every {self.volume_interval:g}s, "
            f"battery every {self.battery_interval:g}s)"
        )
        await asyncio.gather(
            self._every("volume", self.volume_interval, self.publisher.publish_audio),
            self._every("battery", self.battery_interval, self.publisher.publish_battery),
        )
