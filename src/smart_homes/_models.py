"""Wire payloads: commands, status snapshots and availability.

All payloads are JSON.  Schemas::

    availability  {"is_available": true}
    command       {"cmd": "color", "args": [255, 0, 0]}   args omitted for on/off/mute
    status        {"type": "fan", "status": {"id": "home-0", "is_on": true, ...}}

Commands are adjacently tagged by ``cmd`` and validated strictly:
integers must be JSON integers inside their range (``u8`` 0–255,
``u16`` 0–65535), so ``{"cmd": "speed", "args": 300}`` is rejected just
like an unknown ``cmd``.

Status snapshots are a discriminated union on ``type`` so a consumer can
decode any device's status without knowing which device produced it.
Fan and TV snapshots carry a ``timestamp`` serialised as integer UNIX
seconds.

Decoding failures raise :class:`DeserializationError`; encoding failures
raise :class:`SerializationError`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_serializer,
)
from pydantic_core import PydanticSerializationError

from smart_homes._errors import DeserializationError, SerializationError

U8 = Annotated[int, Field(ge=0, le=255)]
U16 = Annotated[int, Field(ge=0, le=65535)]
RGB = tuple[U8, U8, U8]

# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------


class Availability(BaseModel):
    """Availability announcement, also used as the connection's last will."""

    model_config = ConfigDict(frozen=True)

    is_available: bool


AVAILABLE = Availability(is_available=True).model_dump_json()
UNAVAILABLE = Availability(is_available=False).model_dump_json()

# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True)


class TurnOn(_Command):
    cmd: Literal["on"] = "on"


class TurnOff(_Command):
    cmd: Literal["off"] = "off"


class SetColor(_Command):
    cmd: Literal["color"] = "color"
    args: RGB


class SetSpeed(_Command):
    cmd: Literal["speed"] = "speed"
    args: U8


class SetChannel(_Command):
    cmd: Literal["channel"] = "channel"
    args: U16


class SetVolume(_Command):
    cmd: Literal["volume"] = "volume"
    args: U8


class Mute(_Command):
    cmd: Literal["mute"] = "mute"


Command = TurnOn | TurnOff | SetColor | SetSpeed | SetChannel | SetVolume | Mute

BulbCommand = Annotated[TurnOn | TurnOff | SetColor, Field(discriminator="cmd")]
FanCommand = Annotated[TurnOn | TurnOff | SetSpeed, Field(discriminator="cmd")]
TvCommand = Annotated[
    TurnOn | TurnOff | SetVolume | Mute | SetChannel,
    Field(discriminator="cmd"),
]


def encode_command(command: Command) -> str:
    """Serialise *command*, omitting ``args`` for argument-less commands."""
    return command.model_dump_json()


def decode_command(adapter: TypeAdapter[Any], payload: bytes | str) -> Command:
    """Decode *payload* with a per-kind command *adapter*.

    Raises:
        DeserializationError: If the payload is not a valid command for
            that device kind.
    """
    try:
        return adapter.validate_json(payload)
    except ValidationError as exc:
        msg = f"Invalid command: {exc.error_count()} validation error(s)"
        raise DeserializationError(msg, payload=payload) from exc


# ---------------------------------------------------------------------------
# Status snapshots
# ---------------------------------------------------------------------------


class _Status(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    is_on: bool


class _TimestampedStatus(_Status):
    timestamp: datetime

    @field_serializer("timestamp")
    def _timestamp_seconds(self, value: datetime) -> int:
        return int(value.timestamp())


class BulbStatus(_Status):
    speed: U8
    voltage: float
    color: RGB


class FanStatus(_TimestampedStatus):
    speed: U8
    voltage: float


class TvStatus(_TimestampedStatus):
    channel: U16
    volume: U8
    is_muted: bool


class BulbSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["bulb"] = "bulb"
    status: BulbStatus


class FanSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["fan"] = "fan"
    status: FanStatus


class TvSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tv"] = "tv"
    status: TvStatus


StatusSnapshot = Annotated[
    BulbSnapshot | FanSnapshot | TvSnapshot,
    Field(discriminator="type"),
]

_STATUS_ADAPTER: TypeAdapter[BulbSnapshot | FanSnapshot | TvSnapshot] = TypeAdapter(
    StatusSnapshot,
)


def encode_status(snapshot: BulbSnapshot | FanSnapshot | TvSnapshot) -> str:
    """Serialise a status snapshot to its tagged JSON form.

    Raises:
        SerializationError: If the snapshot cannot be encoded.
    """
    try:
        return snapshot.model_dump_json()
    except PydanticSerializationError as exc:
        msg = f"Cannot serialise {snapshot.type} status: {exc}"
        raise SerializationError(msg) from exc


def decode_status(payload: bytes | str) -> BulbSnapshot | FanSnapshot | TvSnapshot:
    """Decode a tagged status payload of any device kind.

    Raises:
        DeserializationError: If the payload is not a valid snapshot.
    """
    try:
        return _STATUS_ADAPTER.validate_json(payload)
    except ValidationError as exc:
        msg = f"Invalid status: {exc.error_count()} validation error(s)"
        raise DeserializationError(msg, payload=payload) from exc
