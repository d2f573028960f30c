"""Shared fixtures: a scriptable host and a recording MQTT session."""

import asyncio
from typing import Optional

import pytest

from mac2mqtt.host import HostControl, HostControlError, BatteryInfo
from mac2mqtt.models import HostContext
from mac2mqtt.mqtt.client import encode_payload


class FakeHostControl(HostControl):
    """In-memory host.

    ``applied_volume`` simulates device quantization: when set, set_volume
    stores it instead of the requested value.
    """

    def __init__(
        self,
        volume: int = 30,
        muted: bool = False,
        battery: BatteryInfo = BatteryInfo(percent=80, charging=True),
        applied_volume: Optional[int] = None,
        fail_reads: bool = False,
        fail_writes: bool = False,
    ):
        self.volume = volume
        self.muted = muted
        self.battery = battery
        self.applied_volume = applied_volume
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.calls: list[tuple] = []

    def _check(self, failing: bool, name: str) -> None:
        if failing:
            raise HostControlError(f"{name} failed")

    def get_volume(self) -> int:
        self.calls.append(("get_volume",))
        self._check(self.fail_reads, "get_volume")
        return self.volume

    def set_volume(self, value: int) -> None:
        self.calls.append(("set_volume", value))
        self._check(self.fail_writes, "set_volume")
        self.volume = self.applied_volume if self.applied_volume is not None else value

    def get_mute(self) -> bool:
        self.calls.append(("get_mute",))
        self._check(self.fail_reads, "get_mute")
        return self.muted

    def set_mute(self, muted: bool) -> None:
        self.calls.append(("set_mute", muted))
        self._check(self.fail_writes, "set_mute")
        self.muted = muted

    def get_battery_info(self) -> BatteryInfo:
        self.calls.append(("get_battery_info",))
        self._check(self.fail_reads, "get_battery_info")
        return self.battery

    def sleep(self) -> None:
        self.calls.append(("sleep",))
        self._check(self.fail_writes, "sleep")

    def display_sleep(self) -> None:
        self.calls.append(("display_sleep",))
        self._check(self.fail_writes, "display_sleep")

    def shutdown(self) -> None:
        self.calls.append(("shutdown",))
        self._check(self.fail_writes, "shutdown")

    def get_model(self) -> Optional[str]:
        return "MacBookPro18,3"

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeMQTTClient:
    """Stand-in for MQTTClient that records traffic.

    ``connect_effects`` and ``loop_effects`` script successive calls: an
    exception instance is raised, anything else means success. Once the
    loop effects run out, message_loop blocks until ``release()``.
    """

    def __init__(self, topics, connect_effects=None, loop_effects=None, publish_error=None):
        self.topics = topics
        self.timeout = 5.0
        self.connect_effects = list(connect_effects or [])
        self.loop_effects = list(loop_effects or [])
        self.publish_error = publish_error
        self.published: list[tuple[str, str, bool]] = []
        self.subscriptions: list[str] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.loop_calls = 0
        self._connected = False
        self._release = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self.connect_calls += 1
        effect = self.connect_effects.pop(0) if self.connect_effects else None
        if isinstance(effect, BaseException):
            raise effect
        self._connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False

    def mark_disconnected(self) -> None:
        self._connected = False

    async def publish(self, topic, payload, retain=False, qos=0) -> None:
        if not self._connected:
            raise ConnectionError("Not connected to MQTT broker")
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((topic, encode_payload(payload), retain))

    async def publish_availability(self, status: str) -> None:
        await self.publish(self.topics.availability, status, retain=True, qos=1)

    async def subscribe(self, topic: str, qos: int = 0) -> None:
        if not self._connected:
            raise ConnectionError("Not connected to MQTT broker")
        self.subscriptions.append(topic)

    async def message_loop(self, callback) -> None:
        self.loop_calls += 1
        if self.loop_effects:
            effect = self.loop_effects.pop(0)
            if isinstance(effect, BaseException):
                raise effect
            for topic, payload in effect:
                await callback(topic, payload)
            return
        await self._release.wait()

    def release(self) -> None:
        self._release.set()

    def payloads_for(self, topic: str) -> list[str]:
        return [payload for t, payload, _ in self.published if t == topic]

    def topics_published(self) -> list[str]:
        return [t for t, _, _ in self.published]


@pytest.fixture
def context():
    """Host context for a host named 'testhost'."""
    return HostContext.create(identity="testhost", model="MacBookPro18,3")


@pytest.fixture
def host():
    return FakeHostControl()


@pytest.fixture
def mqtt_client(context):
    """Connected recording MQTT client."""
    client = FakeMQTTClient(context.topics)
    client._connected = True
    return client


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)
