"""Tests for the aiomqtt wrapper."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import aiomqtt
import pytest

from mac2mqtt.config import AppConfig
from mac2mqtt.mqtt.client import MQTTClient, encode_payload


@pytest.fixture
def app_config():
    return AppConfig(mqtt_ip="10.0.0.5", mqtt_port=1883, mqtt_user="u", mqtt_password="p")


@pytest.fixture
def mock_aiomqtt():
    """Patch aiomqtt.Client with a controllable mock session."""
    with patch("mac2mqtt.mqtt.client.aiomqtt.Client") as client_cls:
        session = MagicMock()
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=None)
        session.publish = AsyncMock()
        session.subscribe = AsyncMock()
        client_cls.return_value = session
        yield client_cls, session


def messages(*items, error=None):
    async def gen():
        for topic, payload in items:
            yield SimpleNamespace(topic=topic, payload=payload)
        if error is not None:
            raise error
    return gen()


class TestEncodePayload:
    """Tests for payload encoding."""

    @pytest.mark.parametrize("value,expected", [
        (True, "true"),
        (False, "false"),
        (55, "55"),
        (None, ""),
        ("sleep", "sleep"),
        ({"a": 1}, '{"a": 1}'),
    ])
    def test_encode(self, value, expected):
        """Test Home Assistant friendly encodings."""
        assert encode_payload(value) == expected


class TestConnect:
    """Tests for connect and disconnect."""

    @pytest.mark.asyncio
    async def test_connect(self, app_config, context, mock_aiomqtt):
        """Test a new session carries credentials, client id and an offline will."""
        client_cls, _ = mock_aiomqtt
        client = MQTTClient(app_config, context.topics)

        await client.connect()

        assert client.connected
        kwargs = client_cls.call_args.kwargs
        assert kwargs["hostname"] == "10.0.0.5"
        assert kwargs["port"] == 1883
        assert kwargs["username"] == "u"
        assert kwargs["identifier"] == "mac2mqtt-testhost"
        assert kwargs["will"].topic == "homeassistant/testhost/availability"
        assert kwargs["will"].payload == "offline"

    @pytest.mark.asyncio
    async def test_connect_refused(self, app_config, context, mock_aiomqtt):
        """Test broker errors surface as ConnectionError."""
        _, session = mock_aiomqtt
        session.__aenter__ = AsyncMock(side_effect=aiomqtt.MqttError("not authorised"))
        client = MQTTClient(app_config, context.topics)

        with pytest.raises(ConnectionError, match="not authorised"):
            await client.connect()
        assert not client.connected

    @pytest.mark.asyncio
    async def test_connect_timeout(self, app_config, context, mock_aiomqtt):
        """Test a broker that never answers is bounded by the timeout."""
        _, session = mock_aiomqtt

        async def hang():
            await asyncio.sleep(10)

        session.__aenter__ = AsyncMock(side_effect=hang)
        client = MQTTClient(app_config, context.topics, timeout=0.01)

        with pytest.raises(ConnectionError, match="timed out"):
            await client.connect()

    @pytest.mark.asyncio
    async def test_refused_attempt_is_closed(self, app_config, context, mock_aiomqtt):
        """Test a refused attempt releases its client before raising."""
        _, session = mock_aiomqtt
        session.__aenter__ = AsyncMock(side_effect=aiomqtt.MqttError("refused"))
        client = MQTTClient(app_config, context.topics)

        with pytest.raises(ConnectionError):
            await client.connect()

        session.__aexit__.assert_awaited_once_with(None, None, None)

    @pytest.mark.asyncio
    async def test_every_timed_out_attempt_is_closed(self, app_config, context, mock_aiomqtt):
        """Test repeated timeouts against a silent broker close each half-open client."""
        client_cls, _ = mock_aiomqtt
        sessions = []

        async def hang():
            await asyncio.sleep(10)

        def new_session(**kwargs):
            session = MagicMock()
            session.__aenter__ = AsyncMock(side_effect=hang)
            session.__aexit__ = AsyncMock(return_value=None)
            sessions.append(session)
            return session

        client_cls.side_effect = new_session
        client = MQTTClient(app_config, context.topics, timeout=0.01)

        for _ in range(3):
            with pytest.raises(ConnectionError):
                await client.connect()
            await client.disconnect()

        assert len(sessions) == 3
        for session in sessions:
            session.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_close_does_not_mask_connect_error(self, app_config, context, mock_aiomqtt):
        """Test an error while closing a failed attempt still reports ConnectionError."""
        _, session = mock_aiomqtt
        session.__aenter__ = AsyncMock(side_effect=aiomqtt.MqttError("refused"))
        session.__aexit__ = AsyncMock(side_effect=aiomqtt.MqttError("not connected"))
        client = MQTTClient(app_config, context.topics)

        with pytest.raises(ConnectionError, match="refused"):
            await client.connect()

    @pytest.mark.asyncio
    async def test_disconnect_ignores_broker_errors(self, app_config, context, mock_aiomqtt):
        """Test closing an already dead session does not raise."""
        _, session = mock_aiomqtt
        session.__aexit__ = AsyncMock(side_effect=aiomqtt.MqttError("gone"))
        client = MQTTClient(app_config, context.topics)
        await client.connect()

        await client.disconnect()

        assert not client.connected


class TestPublish:
    """Tests for publish and subscribe."""

    @pytest.mark.asyncio
    async def test_publish_encodes(self, app_config, context, mock_aiomqtt):
        """Test payloads are encoded before they reach aiomqtt."""
        _, session = mock_aiomqtt
        client = MQTTClient(app_config, context.topics)
        await client.connect()

        await client.publish("homeassistant/testhost/state/mute", True)

        session.publish.assert_awaited_once_with(
            "homeassistant/testhost/state/mute", payload="true", qos=0, retain=False
        )

    @pytest.mark.asyncio
    async def test_publish_availability_is_retained(self, app_config, context, mock_aiomqtt):
        """Test availability goes out retained at QoS 1."""
        _, session = mock_aiomqtt
        client = MQTTClient(app_config, context.topics)
        await client.connect()

        await client.publish_availability("online")

        session.publish.assert_awaited_once_with(
            "homeassistant/testhost/availability", payload="online", qos=1, retain=True
        )

    @pytest.mark.asyncio
    async def test_publish_when_disconnected(self, app_config, context):
        """Test publishing without a session raises ConnectionError."""
        client = MQTTClient(app_config, context.topics)

        with pytest.raises(ConnectionError):
            await client.publish("a/b", "1")

    @pytest.mark.asyncio
    async def test_publish_after_loss(self, app_config, context, mock_aiomqtt):
        """Test a session marked lost fails fast."""
        client = MQTTClient(app_config, context.topics)
        await client.connect()
        client.mark_disconnected()

        with pytest.raises(ConnectionError):
            await client.subscribe("homeassistant/testhost/command/#")


class TestMessageLoop:
    """Tests for the inbound message loop."""

    @pytest.mark.asyncio
    async def test_delivers_messages(self, app_config, context, mock_aiomqtt):
        """Test every message reaches the callback as bytes."""
        _, session = mock_aiomqtt
        session.messages = messages(
            ("homeassistant/testhost/command/volume", b"55"),
            ("homeassistant/testhost/command/mute", None),
        )
        client = MQTTClient(app_config, context.topics)
        await client.connect()
        received = []

        async def callback(topic, payload):
            received.append((topic, payload))

        await client.message_loop(callback)

        assert received == [
            ("homeassistant/testhost/command/volume", b"55"),
            ("homeassistant/testhost/command/mute", b""),
        ]

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_stop_loop(self, app_config, context, mock_aiomqtt):
        """Test a failing callback is logged and the next message is still handled."""
        _, session = mock_aiomqtt
        session.messages = messages(("a", b"1"), ("b", b"2"))
        client = MQTTClient(app_config, context.topics)
        await client.connect()
        seen = []

        async def callback(topic, payload):
            seen.append(topic)
            if topic == "a":
                raise RuntimeError("boom")

        await client.message_loop(callback)

        assert seen == ["a", "b"]

    @pytest.mark.asyncio
    async def test_session_loss_propagates(self, app_config, context, mock_aiomqtt):
        """Test a broken stream raises MqttError to the caller."""
        _, session = mock_aiomqtt
        session.messages = messages(error=aiomqtt.MqttError("Disconnected during message iteration"))
        client = MQTTClient(app_config, context.topics)
        await client.connect()

        with pytest.raises(aiomqtt.MqttError):
            await client.message_loop(AsyncMock())
