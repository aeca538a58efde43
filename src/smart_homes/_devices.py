"""Device variants: state, command mutators and status snapshots.

Each variant supplies the small capability set the generic
:class:`~smart_homes._actor.DeviceActor` needs:

- ``kind`` — the topic kind string (``bulb``, ``fan``, ``tv``)
- ``commands`` — the kind's command schema (a pydantic ``TypeAdapter``)
- :meth:`Device.apply` — dispatch one decoded command to a mutator
- :meth:`Device.snapshot` — an immutable status snapshot with jitter

State is mutated only through the mutators, each of which holds the
device's lock for the whole read-modify-write, so no two mutations
interleave even when called from another thread.  Mutators are
idempotent and never await.
"""

from __future__ import annotations

import dataclasses
import logging
import random
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from smart_homes._models import (
    RGB,
    U8,
    U16,
    BulbCommand,
    BulbSnapshot,
    BulbStatus,
    Command,
    FanCommand,
    FanSnapshot,
    FanStatus,
    Mute,
    SetChannel,
    SetColor,
    SetSpeed,
    SetVolume,
    TurnOff,
    TurnOn,
    TvCommand,
    TvSnapshot,
    TvStatus,
    decode_command,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

BULB_VOLTAGE_JITTER = (-5.0, 5.0)
FAN_VOLTAGE_JITTER = (1.0, 3.0)


def _utc_now() -> datetime:
    # Snapshots carry whole seconds, matching their wire format.
    return datetime.now(UTC).replace(microsecond=0)


_U8: TypeAdapter[int] = TypeAdapter(U8)
_U16: TypeAdapter[int] = TypeAdapter(U16)
_RGB: TypeAdapter[tuple[int, int, int]] = TypeAdapter(RGB)


T = TypeVar("T")


def _checked(adapter: TypeAdapter[T], value: object, field: str) -> T:
    try:
        return adapter.validate_python(value)
    except ValidationError as exc:
        msg = f"Invalid {field} {value!r}: {exc.errors()[0]['msg']}"
        raise ValueError(msg) from exc


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass
class BulbState:
    is_on: bool = False
    speed: int = 1
    voltage: float = 240.0
    color: tuple[int, int, int] = (255, 255, 255)


@dataclass
class FanState:
    is_on: bool = False
    speed: int = 1
    voltage: float = 240.0


@dataclass
class TvState:
    is_on: bool = False
    channel: int = 1
    volume: int = 10


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


StateT = TypeVar("StateT", BulbState, FanState, TvState)


class Device(ABC, Generic[StateT]):
    """Common state handling for all device variants.

    Args:
        device_id: Identifier unique within the home (the home id).
        rng: Source of telemetry jitter.  Inject a seeded
            :class:`random.Random` for reproducible tests.
        clock: Wall clock used to timestamp snapshots.
        log: Logger or adapter; defaults to a module logger adapter
            carrying the ``kind`` and ``device`` context.
    """

    kind: ClassVar[str]
    commands: ClassVar[TypeAdapter[Any]]

    def __init__(
        self,
        device_id: str,
        *,
        rng: random.Random | None = None,
        clock: Clock = _utc_now,
        log: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self.id = device_id
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock
        self._lock = threading.Lock()
        self._state: StateT = self._initial_state()
        self.log = log or logging.LoggerAdapter(
            logger,
            {"kind": self.kind, "device": device_id},
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"

    @abstractmethod
    def _initial_state(self) -> StateT: ...

    @abstractmethod
    def apply(self, command: Command) -> None:
        """Dispatch a decoded command to the matching mutator."""

    @abstractmethod
    def snapshot(self) -> BulbSnapshot | FanSnapshot | TvSnapshot:
        """Build a fresh status snapshot of the current state."""

    @property
    def state(self) -> StateT:
        """A copy of the current state, taken under the lock."""
        with self._lock:
            return dataclasses.replace(self._state)

    def parse_command(self, payload: bytes | str) -> Command:
        """Decode *payload* with this kind's command schema.

        Raises:
            DeserializationError: If the payload is not a valid command.
        """
        return decode_command(self.commands, payload)

    def turn_on(self) -> None:
        with self._lock:
            self._state.is_on = True
        self.log.info("Turning on %s %s", self.kind, self.id)

    def turn_off(self) -> None:
        with self._lock:
            self._state.is_on = False
        self.log.info("Turning off %s %s", self.kind, self.id)

    def _apply_power(self, command: Command) -> bool:
        if isinstance(command, TurnOn):
            self.turn_on()
        elif isinstance(command, TurnOff):
            self.turn_off()
        else:
            return False
        return True

    def _unsupported(self, command: Command) -> None:
        msg = f"{self.kind} does not support command '{command.cmd}'"
        raise TypeError(msg)


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class Bulb(Device[BulbState]):
    """A colour bulb."""

    kind = "bulb"
    commands = TypeAdapter(BulbCommand)

    def _initial_state(self) -> BulbState:
        return BulbState()

    def set_color(self, color: tuple[int, int, int]) -> None:
        """Change the colour.

        Raises:
            ValueError: If *color* is not three values in 0..255.
        """
        color = _checked(_RGB, color, "color")
        with self._lock:
            self._state.color = color
        self.log.info("Changing color of bulb %s to %s", self.id, color)

    def apply(self, command: Command) -> None:
        if self._apply_power(command):
            return
        if isinstance(command, SetColor):
            self.set_color(command.args)
        else:
            self._unsupported(command)

    def snapshot(self) -> BulbSnapshot:
        with self._lock:
            state = self._state
            status = BulbStatus(
                id=self.id,
                is_on=state.is_on,
                speed=state.speed,
                voltage=state.voltage + self._rng.uniform(*BULB_VOLTAGE_JITTER),
                color=state.color,
            )
        return BulbSnapshot(status=status)


class Fan(Device[FanState]):
    """A fan whose speed can only be changed while it is running."""

    kind = "fan"
    commands = TypeAdapter(FanCommand)

    def _initial_state(self) -> FanState:
        return FanState()

    def set_speed(self, speed: int) -> None:
        """Change the speed, refusing (with a warning) while the fan is off.

        Raises:
            ValueError: If *speed* is outside 0..255, even while off.
        """
        speed = _checked(_U8, speed, "speed")
        with self._lock:
            is_on = self._state.is_on
            if is_on:
                self._state.speed = speed
        if is_on:
            self.log.info("Setting speed of fan %s to %d", self.id, speed)
        else:
            self.log.warning(
                "Cannot set the speed of fan %s while it is turned off",
                self.id,
            )

    def apply(self, command: Command) -> None:
        if self._apply_power(command):
            return
        if isinstance(command, SetSpeed):
            self.set_speed(command.args)
        else:
            self._unsupported(command)

    def snapshot(self) -> FanSnapshot:
        with self._lock:
            state = self._state
            status = FanStatus(
                id=self.id,
                is_on=state.is_on,
                speed=state.speed,
                voltage=state.voltage + self._rng.uniform(*FAN_VOLTAGE_JITTER),
                timestamp=self._clock(),
            )
        return FanSnapshot(status=status)


class TV(Device[TvState]):
    """A TV; muting is volume zero."""

    kind = "tv"
    commands = TypeAdapter(TvCommand)

    def _initial_state(self) -> TvState:
        return TvState()

    def set_channel(self, channel: int) -> None:
        channel = _checked(_U16, channel, "channel")
        with self._lock:
            self._state.channel = channel
        self.log.info("Changing channel of tv %s to %d", self.id, channel)

    def set_volume(self, volume: int) -> None:
        volume = _checked(_U8, volume, "volume")
        with self._lock:
            self._state.volume = volume
        self.log.info("Changing volume of tv %s to %d", self.id, volume)

    def apply(self, command: Command) -> None:
        if self._apply_power(command):
            return
        if isinstance(command, SetChannel):
            self.set_channel(command.args)
        elif isinstance(command, SetVolume):
            self.set_volume(command.args)
        elif isinstance(command, Mute):
            self.set_volume(0)
        else:
            self._unsupported(command)

    def snapshot(self) -> TvSnapshot:
        with self._lock:
            state = self._state
            status = TvStatus(
                id=self.id,
                is_on=state.is_on,
                channel=state.channel,
                volume=state.volume,
                is_muted=state.volume == 0,
                timestamp=self._clock(),
            )
        return TvSnapshot(status=status)


DEVICE_TYPES: dict[str, type[Device[Any]]] = {
    cls.kind: cls for cls in (Bulb, Fan, TV)
}
