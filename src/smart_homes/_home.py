"""Home supervisor: one bulb, one fan and one TV run together.

A home is the fan-in point for its devices' failures.  Policy: the
first device to terminate decides the home's fate — its siblings are
cancelled (each announces itself unavailable on the way out) and the
error is logged here and re-raised to the fleet.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from typing import Any

from smart_homes._actor import DeviceActor, create_actor
from smart_homes._errors import SmartHomeError
from smart_homes._mqtt import MqttFactory
from smart_homes._settings import Settings
from smart_homes._supervision import race
from smart_homes._topics import DEVICE_KINDS

logger = logging.getLogger(__name__)


class Home:
    """Exclusively owns a fixed set of device actors.

    Args:
        home_id: Identifier shared by the home's devices (``home-0``).
        actors: The device actors; any number works, the fleet builds
            one per kind via :meth:`create`.
        log: Logger for supervision events; defaults to a module logger
            adapter carrying the ``home`` context.
    """

    def __init__(
        self,
        home_id: str,
        actors: Sequence[DeviceActor],
        *,
        log: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        if not actors:
            msg = f"Home '{home_id}' needs at least one device"
            raise ValueError(msg)
        self.id = home_id
        self.actors = list(actors)
        self._log = log or logging.LoggerAdapter(logger, {"home": home_id})

    def __repr__(self) -> str:
        return f"Home({self.id!r}, devices={[a.name for a in self.actors]})"

    @classmethod
    def create(
        cls,
        home_id: str,
        settings: Settings,
        *,
        mqtt_factory: MqttFactory | None = None,
        rng: random.Random | None = None,
    ) -> Home:
        """Build a home with one actor of every device kind."""
        actors = [
            create_actor(kind, home_id, settings, mqtt_factory=mqtt_factory, rng=rng)
            for kind in DEVICE_KINDS
        ]
        return cls(home_id, actors)

    def actor(self, kind: str) -> DeviceActor:
        """Return the home's actor of the given *kind*."""
        for actor in self.actors:
            if actor.device.kind == kind:
                return actor
        msg = f"Home '{self.id}' has no {kind}"
        raise KeyError(msg)

    async def run(self) -> None:
        """Run every device until the first one terminates.

        Raises:
            SmartHomeError: The first device failure (siblings cancelled).
        """
        self._log.info("Starting home %s with %d devices", self.id, len(self.actors))
        try:
            await race({actor.name: actor.run() for actor in self.actors})
        except SmartHomeError as exc:
            self._log.error("Device failure in home %s: %s", self.id, exc)
            raise
        self._log.info("Home %s stopped", self.id)
