"""Fleet-wide status watcher.

Subscribes to every device's status topic across all homes
(``bulb/+/status``, ``fan/+/status``, ``tv/+/status``) and logs each
decoded snapshot.  Undecodable payloads are logged and skipped; losing
the connection is fatal and ends :meth:`Watcher.run` with an error.
The watcher keeps no state; an optional callback receives every
snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from smart_homes._errors import BrokerConnectionError, DeserializationError
from smart_homes._models import BulbSnapshot, FanSnapshot, TvSnapshot, decode_status
from smart_homes._mqtt import MqttPort
from smart_homes._topics import status_patterns

logger = logging.getLogger(__name__)

StatusCallback = Callable[[BulbSnapshot | FanSnapshot | TvSnapshot], None]


class Watcher:
    """Consumes status snapshots from every home.

    Args:
        mqtt: An unconnected client owned by the watcher.
        qos: QoS for the wildcard subscriptions.
        on_status: Called with every successfully decoded snapshot.
        log: Logger or adapter; defaults to the module logger.
    """

    def __init__(
        self,
        mqtt: MqttPort,
        *,
        qos: int = 1,
        on_status: StatusCallback | None = None,
        log: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self._mqtt = mqtt
        self._qos = qos
        self._on_status = on_status
        self._log = log or logger

    async def run(self) -> None:
        """Watch until the connection fails or the task is cancelled.

        Raises:
            BrokerConnectionError: If the connection cannot be opened
                or is lost.
            SubscribeError: If a wildcard subscription is refused.
        """
        self._log.info("Starting watcher")
        await self._mqtt.connect()
        try:
            for pattern in status_patterns():
                await self._mqtt.subscribe(pattern, qos=self._qos)
            async for message in self._mqtt.messages():
                self._handle(message.topic, message.payload)
            msg = "Watcher message stream closed"
            raise BrokerConnectionError(msg)
        finally:
            await self._mqtt.disconnect()

    def _handle(self, topic: str, payload: bytes) -> None:
        try:
            snapshot = decode_status(payload)
        except DeserializationError as exc:
            self._log.warning("Failed to parse message on %s: %s", topic, exc)
            return
        self._log.info("%s status: %s", snapshot.type, snapshot.status)
        if self._on_status is not None:
            self._on_status(snapshot)
