"""The device actor: one device's connection lifecycle.

Lifecycle::

    DISCONNECTED → CONNECTING → ANNOUNCING → SERVING → TERMINATED

1. **Connecting** — open the broker connection with the device's last
   will (``{"is_available": false}``, retained) so an abrupt disconnect
   makes the device observably unavailable without any device code
   running.
2. **Announcing** — publish ``{"is_available": true}`` (retained).
3. **Serving** — race two activities until either ends:

   - *telemetry*: publish a status snapshot, sleep, repeat;
   - *commands*: subscribe to the command topic and apply each decoded
     command in arrival order.  Undecodable payloads are logged and
     dropped.

   Whichever finishes first decides the outcome; the other is cancelled
   before :meth:`DeviceActor.run` returns.
4. **Terminated** — the triggering error is re-raised to the supervisor.
   The actor best-effort publishes ``{"is_available": false}`` and
   disconnects cleanly on the way out.

The same control flow serves every device kind; only the
:class:`~smart_homes._devices.Device` variant differs.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from typing import Any

from pydantic import ValidationError

from smart_homes._devices import DEVICE_TYPES, Device
from smart_homes._errors import (
    BrokerConnectionError,
    DeserializationError,
    SerializationError,
    SmartHomeError,
)
from smart_homes._models import AVAILABLE, UNAVAILABLE, encode_status
from smart_homes._mqtt import MqttFactory, MqttPort, WillConfig, client_factory
from smart_homes._settings import Settings
from smart_homes._supervision import race
from smart_homes._topics import availability_topic, command_topic, status_topic


class ActorState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    ANNOUNCING = "announcing"
    SERVING = "serving"
    TERMINATED = "terminated"


class DeviceActor:
    """Runs one :class:`Device` against its own broker connection.

    Args:
        device: The device variant holding state and command schema.
        mqtt: An unconnected client owned exclusively by this actor.
        telemetry_interval: Seconds between two status publishes.
        qos: QoS for availability, status and the command subscription.
    """

    def __init__(
        self,
        device: Device[Any],
        mqtt: MqttPort,
        *,
        telemetry_interval: float = 5.0,
        qos: int = 1,
    ) -> None:
        self.device = device
        self._mqtt = mqtt
        self._interval = telemetry_interval
        self._qos = qos
        self._publish_lock = asyncio.Lock()
        self.lifecycle = ActorState.DISCONNECTED
        self.error: SmartHomeError | None = None
        self.availability_topic = availability_topic(device.kind, device.id)
        self.status_topic = status_topic(device.kind, device.id)
        self.command_topic = command_topic(device.kind, device.id)

    def __repr__(self) -> str:
        return f"DeviceActor({self.name!r}, {self.lifecycle.value})"

    @property
    def name(self) -> str:
        """``{kind}/{id}`` — also used as the broker client identifier."""
        return f"{self.device.kind}/{self.device.id}"

    @property
    def log(self) -> logging.Logger | logging.LoggerAdapter[Any]:
        return self.device.log

    # -- Telemetry ----------------------------------------------------------

    async def publish_status(self) -> None:
        """Publish one fresh snapshot, retained, to the status topic.

        Raises:
            SerializationError: If the snapshot cannot be built or encoded.
            PublishError: If the broker does not accept the publish.
        """
        async with self._publish_lock:
            try:
                snapshot = self.device.snapshot()
            except ValidationError as exc:
                msg = f"{self.name}: state does not fit the status schema"
                raise SerializationError(msg) from exc
            payload = encode_status(snapshot)
            await self._mqtt.publish(
                self.status_topic,
                payload,
                retain=True,
                qos=self._qos,
            )
        self.log.debug("Published status of %s", self.name)

    # -- Commands -----------------------------------------------------------

    def handle_command(self, payload: bytes | str) -> bool:
        """Decode and apply one command payload.

        Returns:
            ``True`` when the command was applied, ``False`` when the
            payload was invalid and dropped.
        """
        try:
            command = self.device.parse_command(payload)
        except DeserializationError as exc:
            self.log.warning(
                "Invalid command received for %s: %s (payload=%r)",
                self.name,
                exc,
                payload,
            )
            return False
        self.device.apply(command)
        return True

    # -- Lifecycle ----------------------------------------------------------

    async def run(self) -> None:
        """Run the lifecycle until a fatal error or cancellation.

        Raises:
            SmartHomeError: The error that terminated the actor.
        """
        self.log.info("Starting %s", self.name)
        try:
            self._enter(ActorState.CONNECTING)
            await self._mqtt.connect(
                will=WillConfig(
                    topic=self.availability_topic,
                    payload=UNAVAILABLE,
                    qos=self._qos,
                    retain=True,
                ),
            )
            self.log.info("%s connected", self.name)

            self._enter(ActorState.ANNOUNCING)
            await self._mqtt.publish(
                self.availability_topic,
                AVAILABLE,
                retain=True,
                qos=self._qos,
            )

            self._enter(ActorState.SERVING)
            await race(
                {
                    f"{self.name}/telemetry": self._telemetry_loop(),
                    f"{self.name}/commands": self._command_loop(),
                },
            )
        except SmartHomeError as exc:
            self.error = exc
            raise
        finally:
            await self._shutdown()

    async def _telemetry_loop(self) -> None:
        while True:
            await self.publish_status()
            await asyncio.sleep(self._interval)

    async def _command_loop(self) -> None:
        await self._mqtt.subscribe(self.command_topic, qos=self._qos)
        self.log.debug("Listening for commands on %s", self.command_topic)
        async for message in self._mqtt.messages():
            if message.topic != self.command_topic:
                self.log.debug("Ignoring message on %s", message.topic)
                continue
            self.handle_command(message.payload)
        msg = f"{self.name}: command stream closed"
        raise BrokerConnectionError(msg)

    async def _shutdown(self) -> None:
        was_announced = self.lifecycle in (ActorState.ANNOUNCING, ActorState.SERVING)
        self._enter(ActorState.TERMINATED)
        if was_announced:
            try:
                await self._mqtt.publish(
                    self.availability_topic,
                    UNAVAILABLE,
                    retain=True,
                    qos=self._qos,
                )
            except SmartHomeError as exc:
                self.log.debug(
                    "%s could not announce unavailability: %s",
                    self.name,
                    exc,
                )
        await self._mqtt.disconnect()

    def _enter(self, state: ActorState) -> None:
        self.log.debug("%s: %s → %s", self.name, self.lifecycle.value, state.value)
        self.lifecycle = state


def create_actor(
    kind: str,
    device_id: str,
    settings: Settings,
    *,
    mqtt_factory: MqttFactory | None = None,
    rng: random.Random | None = None,
) -> DeviceActor:
    """Build a device actor without connecting it.

    Args:
        kind: ``bulb``, ``fan`` or ``tv``.
        device_id: The device's identifier (its home id).
        settings: Broker and telemetry configuration.
        mqtt_factory: Builds the actor's client from its client id;
            defaults to real :class:`~smart_homes._mqtt.MqttClient`
            adapters for ``settings.mqtt``.
        rng: Optional jitter source for the device.

    Raises:
        ValueError: If *kind* is not a known device kind.
        ClientCreationError: If the broker client cannot be built.
    """
    try:
        device_cls = DEVICE_TYPES[kind]
    except KeyError:
        msg = f"Unknown device kind '{kind}'"
        raise ValueError(msg) from None
    factory = mqtt_factory or client_factory(settings.mqtt)
    device = device_cls(device_id, rng=rng)
    return DeviceActor(
        device,
        factory(f"{kind}/{device_id}"),
        telemetry_interval=settings.fleet.telemetry_interval,
        qos=settings.mqtt.qos,
    )
