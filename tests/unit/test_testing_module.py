"""Unit tests for smart_homes.testing — in-memory broker and fixtures.

Test Techniques Used:
    - Specification-based Testing: retained replay, wildcards, wills
    - Boundary Value Analysis: inbound queue at capacity
    - Fault Injection: dropped and refused clients
    - State-based Testing: client registry across disconnects
    - Fixture Verification: plugin fixtures yield the documented objects
"""

from __future__ import annotations

import pytest

from smart_homes._errors import BrokerConnectionError, PublishError, SubscribeError
from smart_homes._mqtt import MockMqttClient, MqttPort, WillConfig
from smart_homes._settings import Settings
from smart_homes.testing import FakeBroker, FakeBrokerClient, make_settings


async def _connected(
    broker: FakeBroker,
    client_id: str,
    *,
    will: WillConfig | None = None,
) -> FakeBrokerClient:
    client = broker.client(client_id)
    await client.connect(will=will)
    return client


async def _drain(client: MqttPort, count: int) -> list[tuple[str, bytes]]:
    received: list[tuple[str, bytes]] = []
    async for message in client.messages():
        received.append((message.topic, message.payload))
        if len(received) == count:
            break
    return received


class TestRouting:
    """Technique: Specification-based Testing."""

    async def test_broker_is_a_client_factory(self, fake_broker: FakeBroker) -> None:
        client = fake_broker("bulb/home-0")
        assert isinstance(client, FakeBrokerClient)
        assert isinstance(client, MqttPort)
        assert fake_broker.clients["bulb/home-0"] is client

    async def test_exact_subscription(self, fake_broker: FakeBroker) -> None:
        sub = await _connected(fake_broker, "sub")
        pub = await _connected(fake_broker, "pub")
        await sub.subscribe("tv/home-0/command")

        await pub.publish("tv/home-0/command", '{"cmd":"on"}')
        await pub.publish("tv/home-1/command", '{"cmd":"off"}')

        assert await _drain(sub, 1) == [("tv/home-0/command", b'{"cmd":"on"}')]
        assert pub.get_messages_for("tv/home-0/command") == [('{"cmd":"on"}', False, 1)]

    async def test_single_level_wildcard(self, fake_broker: FakeBroker) -> None:
        sub = await _connected(fake_broker, "sub")
        pub = await _connected(fake_broker, "pub")
        await sub.subscribe("fan/+/status")

        await pub.publish("fan/home-0/status", "a")
        await pub.publish("bulb/home-0/status", "b")
        await pub.publish("fan/home-9/status", "c")

        topics = [topic for topic, _ in await _drain(sub, 2)]
        assert topics == ["fan/home-0/status", "fan/home-9/status"]

    async def test_disconnected_clients_receive_nothing(
        self,
        fake_broker: FakeBroker,
    ) -> None:
        sub = await _connected(fake_broker, "sub")
        await sub.subscribe("x/+/y")
        await sub.disconnect()
        fake_broker.route("x/1/y", "late")
        assert sub.dropped == 0
        assert await _drain(sub, 1) == []

    async def test_history(self, fake_broker: FakeBroker) -> None:
        fake_broker.route("a", "1")
        fake_broker.route("b", "2")
        fake_broker.route("a", "3")
        assert fake_broker.messages_on("a") == ["1", "3"]
        assert fake_broker.history[1] == ("b", "2")


class TestRetained:
    """Technique: Specification-based Testing."""

    async def test_replayed_to_new_subscriber(self, fake_broker: FakeBroker) -> None:
        fake_broker.route("bulb/home-0/available", "true", retain=True)
        fake_broker.route("bulb/home-0/available", "false", retain=True)
        sub = await _connected(fake_broker, "late")

        await sub.subscribe("bulb/+/available")

        assert await _drain(sub, 1) == [("bulb/home-0/available", b"false")]
        assert fake_broker.retained("bulb/home-0/available") == "false"

    async def test_empty_payload_clears(self, fake_broker: FakeBroker) -> None:
        fake_broker.route("tv/home-0/status", "{}", retain=True)
        fake_broker.route("tv/home-0/status", "", retain=True)
        assert fake_broker.retained("tv/home-0/status") is None

    async def test_non_retained_not_kept(self, fake_broker: FakeBroker) -> None:
        fake_broker.route("tv/home-0/status", "{}")
        assert fake_broker.retained("tv/home-0/status") is None


class TestFaults:
    """Technique: Fault Injection."""

    async def test_drop_publishes_will(self, fake_broker: FakeBroker) -> None:
        watcher = await _connected(fake_broker, "watcher")
        await watcher.subscribe("fan/+/available")
        will = WillConfig(topic="fan/home-1/available", payload="false")
        await _connected(fake_broker, "fan/home-1", will=will)

        fake_broker.drop("fan/home-1")

        assert await _drain(watcher, 1) == [("fan/home-1/available", b"false")]
        assert fake_broker.retained("fan/home-1/available") == "false"

    async def test_dropped_stream_raises(self, fake_broker: FakeBroker) -> None:
        client = await _connected(fake_broker, "fan/home-1")
        fake_broker.drop("fan/home-1")
        with pytest.raises(BrokerConnectionError):
            await _drain(client, 1)

    async def test_clean_disconnect_keeps_will_quiet(
        self,
        fake_broker: FakeBroker,
    ) -> None:
        will = WillConfig(topic="tv/home-0/available", payload="false")
        client = await _connected(fake_broker, "tv/home-0", will=will)
        await client.disconnect()
        fake_broker.drop("tv/home-0")
        assert fake_broker.history == []

    async def test_publish_after_drop(self, fake_broker: FakeBroker) -> None:
        client = await _connected(fake_broker, "bulb/home-0")
        fake_broker.drop("bulb/home-0")
        with pytest.raises(PublishError):
            await client.publish("bulb/home-0/status", "{}")

    async def test_subscribe_requires_connection(
        self,
        fake_broker: FakeBroker,
    ) -> None:
        with pytest.raises(SubscribeError):
            await fake_broker.client("idle").subscribe("a/b")

    async def test_refused_client(self, fake_broker: FakeBroker) -> None:
        fake_broker.refuse("tv/home-0")
        client = fake_broker.client("tv/home-0")
        with pytest.raises(BrokerConnectionError, match="refused"):
            await client.connect()
        assert client.connected is False
        assert client.connect_count == 1


class TestClientRegistry:
    """Technique: State-based Testing."""

    async def test_clean_disconnect_unregisters(self, fake_broker: FakeBroker) -> None:
        client = await _connected(fake_broker, "query-0001")
        await client.disconnect()
        assert "query-0001" not in fake_broker.clients

    async def test_dropped_client_stays_registered(
        self,
        fake_broker: FakeBroker,
    ) -> None:
        client = await _connected(fake_broker, "fan/home-1")
        fake_broker.drop("fan/home-1")
        await client.disconnect()
        assert fake_broker.clients["fan/home-1"] is client

    async def test_disconnect_keeps_replacement(self, fake_broker: FakeBroker) -> None:
        old = await _connected(fake_broker, "tv/home-0")
        new = await _connected(fake_broker, "tv/home-0")
        await old.disconnect()
        assert fake_broker.clients["tv/home-0"] is new


class TestQueueBound:
    """Technique: Boundary Value Analysis."""

    async def test_drops_newest_when_full(self) -> None:
        broker = FakeBroker(queue_size=2)
        sub = await _connected(broker, "sub")
        await sub.subscribe("t")
        for payload in ("1", "2", "3"):
            broker.route("t", payload)

        assert sub.dropped == 1
        assert await _drain(sub, 2) == [("t", b"1"), ("t", b"2")]


class TestPluginFixtures:
    """Technique: Fixture Verification."""

    def test_mock_mqtt(self, mock_mqtt: MockMqttClient) -> None:
        assert isinstance(mock_mqtt, MockMqttClient)
        assert mock_mqtt.published == []

    def test_fake_broker(self, fake_broker: FakeBroker) -> None:
        assert fake_broker.clients == {}

    def test_settings(self, settings: Settings) -> None:
        assert settings.fleet.num_homes == 1
        assert settings.fleet.telemetry_interval == 0.05

    def test_make_settings_defaults(self) -> None:
        assert make_settings().mqtt.broker_url == "tcp://localhost:1883"
