"""MQTT client port and adapters.

Provides :class:`MqttPort` (Protocol) and two implementations:

- :class:`MqttClient` — real aiomqtt-based client, one per device
- :class:`MockMqttClient` — test double that records calls and lets a
  test inject inbound messages

An in-memory broker with retained messages, wildcard matching and last
wills lives in :mod:`smart_homes.testing`.

Design decisions:

- Every component owns its own client; nothing is shared between
  devices, so one device losing its connection never affects another.
- Inbound messages are pulled from :meth:`MqttPort.messages`, an async
  iterator over a queue bounded by ``MqttSettings.queue_size``.  When
  the queue is full the client drops the newest message (aiomqtt logs
  "Message queue is full"); the device never blocks the broker.
- :class:`WillConfig` and :class:`InboundMessage` abstract the aiomqtt
  types so callers never depend on the library directly.
- Library errors are translated to the :mod:`smart_homes._errors`
  taxonomy at this boundary.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import aiomqtt

from smart_homes._errors import (
    BrokerConnectionError,
    PublishError,
    SubscribeError,
)
from smart_homes._settings import MqttSettings, parse_broker_url

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WillConfig:
    """Last-Will-and-Testament configuration.

    The broker publishes ``payload`` to ``topic`` on the client's
    behalf when the connection drops without a clean disconnect.
    """

    topic: str
    payload: str
    qos: int = 1
    retain: bool = True


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """A message received on a subscribed topic."""

    topic: str
    payload: bytes


def _as_bytes(payload: object) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    return str(payload).encode("utf-8")


# ---------------------------------------------------------------------------
# Port (Protocol)
# ---------------------------------------------------------------------------


@runtime_checkable
class MqttPort(Protocol):
    """Port contract for one broker connection.

    All broker interaction goes through this protocol so the real
    client, the recording mock and the in-memory broker are swappable.
    """

    async def connect(self, *, will: WillConfig | None = None) -> None: ...

    async def disconnect(self) -> None: ...

    async def publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = False,
        qos: int = 1,
    ) -> None: ...

    async def subscribe(self, topic: str, *, qos: int = 1) -> None: ...

    def messages(self) -> AsyncIterator[InboundMessage]: ...


# ---------------------------------------------------------------------------
# Mock / test-double adapter
# ---------------------------------------------------------------------------

_STREAM_CLOSED = object()
_STREAM_ENDED = object()


@dataclass
class MockMqttClient:
    """In-memory test double that records MQTT interactions.

    Records publishes and subscriptions for assertion.  Inbound
    messages are injected with :meth:`deliver`; :meth:`close` simulates
    a lost connection (the message stream raises
    :class:`BrokerConnectionError`).  Setting one of the ``*_error``
    attributes makes the matching call raise that exception.
    """

    queue_size: int = 16
    published: list[tuple[str, str, bool, int]] = field(
        default_factory=list,
    )
    subscriptions: list[str] = field(default_factory=list)
    will: WillConfig | None = None
    connected: bool = False
    connect_count: int = 0
    dropped: int = 0
    connect_error: Exception | None = None
    publish_error: Exception | None = None
    subscribe_error: Exception | None = None
    _inbox: asyncio.Queue[object] = field(
        default_factory=asyncio.Queue,
        init=False,
        repr=False,
    )

    # -- MqttPort methods --------------------------------------------------

    async def connect(self, *, will: WillConfig | None = None) -> None:
        """Record a connect call."""
        self.connect_count += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.will = will
        self.connected = True

    async def disconnect(self) -> None:
        """Record a clean disconnect and end the message stream."""
        if self.connected:
            self.connected = False
            self._inbox.put_nowait(_STREAM_ENDED)

    async def publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = False,
        qos: int = 1,
    ) -> None:
        """Record a publish call."""
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((topic, payload, retain, qos))

    async def subscribe(self, topic: str, *, qos: int = 1) -> None:  # noqa: ARG002
        """Record a subscribe call."""
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.subscriptions.append(topic)

    async def messages(self) -> AsyncIterator[InboundMessage]:
        """Yield injected messages until the stream is closed or ended."""
        while True:
            item = await self._inbox.get()
            if item is _STREAM_ENDED:
                return
            if item is _STREAM_CLOSED:
                msg = "Connection lost"
                raise BrokerConnectionError(msg)
            assert isinstance(item, InboundMessage)
            yield item

    # -- Test helpers -------------------------------------------------------

    def deliver(self, topic: str, payload: str | bytes) -> None:
        """Queue an inbound message, dropping it when the queue is full."""
        if self._inbox.qsize() >= self.queue_size:
            self.dropped += 1
            logger.warning("Inbound queue full, discarding message on %s", topic)
            return
        self._inbox.put_nowait(InboundMessage(topic, _as_bytes(payload)))

    def close(self) -> None:
        """Simulate an abrupt connection loss."""
        self.connected = False
        self._inbox.put_nowait(_STREAM_CLOSED)

    @property
    def publish_count(self) -> int:
        """Number of recorded publishes."""
        return len(self.published)

    def get_messages_for(
        self,
        topic: str,
    ) -> list[tuple[str, bool, int]]:
        """Return ``(payload, retain, qos)`` tuples for *topic*."""
        return [
            (payload, retain, qos)
            for t, payload, retain, qos in self.published
            if t == topic
        ]


# ---------------------------------------------------------------------------
# Real adapter
# ---------------------------------------------------------------------------


@dataclass
class MqttClient:
    """Production MQTT adapter backed by *aiomqtt*.

    Constructing the adapter validates the broker address but does not
    touch the network; :meth:`connect` opens the connection.  When
    ``settings.connect_retries`` is non-zero a refused connect is
    retried with exponential backoff and jitter, capped at
    ``settings.reconnect_max_interval``; once the attempts are
    exhausted :class:`BrokerConnectionError` is raised.

    Raises:
        ClientCreationError: From the constructor, when
            ``settings.broker_url`` cannot be parsed.
    """

    settings: MqttSettings
    client_id: str = ""

    # internal state --------------------------------------------------------
    _host: str = field(init=False, repr=False)
    _port: int = field(init=False, repr=False)
    _client: Any = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._host, self._port = parse_broker_url(self.settings.broker_url)

    @property
    def is_connected(self) -> bool:
        """Whether the client currently holds an open connection."""
        return self._client is not None

    # -- MqttPort methods --------------------------------------------------

    async def connect(self, *, will: WillConfig | None = None) -> None:
        """Connect to the broker, registering *will* as the last will."""
        attempts = self.settings.connect_retries + 1
        delay = self.settings.reconnect_interval
        for attempt in range(1, attempts + 1):
            client = self._build_client(will)
            try:
                await client.__aenter__()
            except aiomqtt.MqttError as exc:
                if attempt == attempts:
                    msg = (
                        f"Cannot connect to {self._host}:{self._port} "
                        f"as '{self.client_id}': {exc}"
                    )
                    raise BrokerConnectionError(msg) from exc
                wait = delay * random.uniform(0.5, 1.0)
                logger.warning(
                    "Connect to %s:%d failed (attempt %d/%d), retrying in %.1fs",
                    self._host,
                    self._port,
                    attempt,
                    attempts,
                    wait,
                )
                await asyncio.sleep(wait)
                delay = min(delay * 2, self.settings.reconnect_max_interval)
            else:
                self._client = client
                logger.debug(
                    "MQTT '%s' connected to %s:%d",
                    self.client_id,
                    self._host,
                    self._port,
                )
                return

    async def disconnect(self) -> None:
        """Disconnect cleanly (the broker does not publish the will).

        Idempotent — safe to call multiple times.
        """
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.__aexit__(None, None, None)
        except aiomqtt.MqttError:
            logger.debug("MQTT '%s' disconnect failed", self.client_id, exc_info=True)

    async def publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = False,
        qos: int = 1,
    ) -> None:
        """Publish a message and wait for the broker's acknowledgment."""
        client = self._require_client(PublishError)
        try:
            await client.publish(topic, payload, qos=qos, retain=retain)
        except aiomqtt.MqttError as exc:
            msg = f"Publish to {topic} failed: {exc}"
            raise PublishError(msg) from exc
        logger.debug("Published to %s (qos=%d, retain=%s)", topic, qos, retain)

    async def subscribe(self, topic: str, *, qos: int = 1) -> None:
        """Subscribe to *topic* (wildcards allowed)."""
        client = self._require_client(SubscribeError)
        try:
            await client.subscribe(topic, qos=qos)
        except aiomqtt.MqttError as exc:
            msg = f"Subscribe to {topic} failed: {exc}"
            raise SubscribeError(msg) from exc
        logger.debug("Subscribed to %s (qos=%d)", topic, qos)

    async def messages(self) -> AsyncIterator[InboundMessage]:
        """Yield inbound messages until the connection fails."""
        client = self._require_client(BrokerConnectionError)
        try:
            async for message in client.messages:
                yield InboundMessage(str(message.topic), _as_bytes(message.payload))
        except aiomqtt.MqttError as exc:
            msg = f"MQTT '{self.client_id}' lost its connection: {exc}"
            raise BrokerConnectionError(msg) from exc

    # -- Internal -----------------------------------------------------------

    def _build_client(self, will: WillConfig | None) -> aiomqtt.Client:
        password: str | None = None
        if self.settings.password is not None:
            password = self.settings.password.get_secret_value()

        aiomqtt_will: aiomqtt.Will | None = None
        if will is not None:
            aiomqtt_will = aiomqtt.Will(
                topic=will.topic,
                payload=will.payload,
                qos=will.qos,
                retain=will.retain,
            )

        return aiomqtt.Client(
            hostname=self._host,
            port=self._port,
            username=self.settings.username,
            password=password,
            identifier=self.client_id or None,
            will=aiomqtt_will,
            keepalive=self.settings.keepalive,
            timeout=self.settings.timeout,
            max_queued_incoming_messages=self.settings.queue_size,
        )

    def _require_client(self, error: type[Exception]) -> Any:
        if self._client is None:
            msg = f"MQTT '{self.client_id}' is not connected"
            raise error(msg)
        return self._client


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

MqttFactory = Callable[[str], MqttPort]
"""Builds an unconnected client for the given client identifier."""


def client_factory(settings: MqttSettings) -> MqttFactory:
    """Return a factory producing :class:`MqttClient` adapters."""

    def build(client_id: str) -> MqttPort:
        return MqttClient(settings=settings, client_id=client_id)

    return build
