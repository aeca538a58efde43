"""Application configuration via pydantic-settings.

Configuration is loaded from environment variables and/or ``.env``
files.  All variables carry the ``SMART_HOMES_`` prefix and nested
models use ``__`` as the delimiter, e.g.
``SMART_HOMES_MQTT__BROKER_URL=tcp://broker.local:1883``.

The schema covers four concerns:

* **MQTT** — broker address, keep-alive, QoS, inbound queue bound and
  the (opt-in) connect retry policy.
* **Logging** — level, format, optional file sink, rotation.
* **Fleet** — how many homes to simulate and how often devices report.
* **Query** — where the HTTP status façade listens and how long it
  waits for a status message.

All durations are in **seconds**.
"""

from __future__ import annotations

from typing import Annotated, Literal
from urllib.parse import urlsplit

from pydantic import (
    BaseModel,
    Field,
    SecretStr,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from smart_homes._errors import ClientCreationError

_BROKER_SCHEMES = frozenset({"tcp", "mqtt"})
_DEFAULT_BROKER_PORT = 1883


def parse_broker_url(url: str) -> tuple[str, int]:
    """Split a ``tcp://host[:port]`` broker address into host and port.

    Raises:
        ClientCreationError: If the scheme is unsupported, the host is
            missing or the port is not a valid number.
    """
    parts = urlsplit(url)
    if parts.scheme not in _BROKER_SCHEMES:
        msg = f"Unsupported broker scheme in {url!r} (expected tcp:// or mqtt://)"
        raise ClientCreationError(msg)
    try:
        port = parts.port
    except ValueError as exc:
        msg = f"Invalid broker port in {url!r}"
        raise ClientCreationError(msg) from exc
    if not parts.hostname:
        msg = f"Missing broker host in {url!r}"
        raise ClientCreationError(msg)
    return parts.hostname, port if port is not None else _DEFAULT_BROKER_PORT


# -------------------------------------------------------------------
# Sub-models (BaseModel, nested into Settings by composition)
# -------------------------------------------------------------------


class MqttSettings(BaseModel):
    """MQTT broker connection configuration.

    Environment variables (with ``__`` nesting)::

        SMART_HOMES_MQTT__BROKER_URL=tcp://broker.local:1883
        SMART_HOMES_MQTT__USERNAME=user
        SMART_HOMES_MQTT__PASSWORD=secret
        SMART_HOMES_MQTT__CONNECT_RETRIES=3
    """

    broker_url: str = Field(
        default="tcp://localhost:1883",
        description="Broker address as ``tcp://host[:port]``.",
    )
    username: str | None = Field(
        default=None,
        description="MQTT authentication username (optional).",
    )
    password: SecretStr | None = Field(
        default=None,
        description="MQTT authentication password (optional).",
    )
    keepalive: Annotated[int, Field(ge=1)] = Field(
        default=5,
        description="Keep-alive interval negotiated with the broker.",
    )
    qos: Literal[0, 1, 2] = Field(
        default=1,
        description="QoS used for subscriptions and device publishes.",
    )
    queue_size: Annotated[int, Field(ge=1)] = Field(
        default=16,
        description=(
            "Capacity of each client's inbound message queue.  When "
            "full, the client discards newly arriving messages."
        ),
    )
    timeout: Annotated[float, Field(gt=0)] = Field(
        default=10.0,
        description="Seconds to wait for a broker acknowledgment.",
    )
    connect_retries: Annotated[int, Field(ge=0)] = Field(
        default=0,
        description=(
            "Extra connect attempts after the first failure.  ``0`` "
            "fails fast: the first refused connect is fatal."
        ),
    )
    reconnect_interval: Annotated[float, Field(gt=0)] = Field(
        default=1.0,
        description=(
            "Initial delay before a connect retry.  Doubles on each "
            "consecutive failure (with jitter) up to "
            "``reconnect_max_interval``."
        ),
    )
    reconnect_max_interval: Annotated[float, Field(gt=0)] = Field(
        default=30.0,
        description="Upper bound for the connect retry backoff.",
    )

    @field_validator("broker_url")
    @classmethod
    def _check_broker_url(cls, value: str) -> str:
        try:
            parse_broker_url(value)
        except ClientCreationError as exc:
            raise ValueError(str(exc)) from exc
        return value


class LoggingSettings(BaseModel):
    """Logging configuration.

    When ``file`` is set, logs are also written to a rotating file
    (size-based rotation, ``backup_count`` generations kept).  When
    ``None``, logs go to stderr only.

    The ``format`` field selects the output format:

    - ``"text"`` (default) — human-readable timestamped lines for a
      terminal, where the simulator usually runs.
    - ``"json"`` — structured JSON lines for log aggregators.  Each
      line carries the device ``kind``/``device`` context when the
      record came from a device.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level.",
    )
    format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format ('json' or 'text').",
    )
    file: str | None = Field(
        default=None,
        description="Optional log file path. ``None`` means stderr only.",
    )
    max_file_size_mb: Annotated[int, Field(ge=1)] = Field(
        default=10,
        description="Maximum log file size in megabytes before rotation.",
    )
    backup_count: Annotated[int, Field(ge=0)] = Field(
        default=3,
        description="Number of rotated log files to keep.",
    )


class FleetSettings(BaseModel):
    """Size and pacing of the simulated fleet."""

    num_homes: Annotated[int, Field(ge=1)] = Field(
        default=10,
        description="Number of homes to simulate (one bulb, fan, TV each).",
    )
    telemetry_interval: Annotated[float, Field(gt=0)] = Field(
        default=5.0,
        description="Seconds between two status publishes of one device.",
    )


class QuerySettings(BaseModel):
    """HTTP status query façade."""

    host: str = Field(default="localhost", description="Bind address.")
    port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=3000,
        description="Bind port.",
    )
    timeout: Annotated[float, Field(gt=0)] = Field(
        default=5.0,
        description="Seconds to wait for a status message per request.",
    )


# -------------------------------------------------------------------
# Root settings
# -------------------------------------------------------------------


class Settings(BaseSettings):
    """Root settings for the simulator.

    Example ``.env``::

        SMART_HOMES_MQTT__BROKER_URL=tcp://broker.local:1883
        SMART_HOMES_FLEET__NUM_HOMES=3
        SMART_HOMES_LOGGING__LEVEL=DEBUG
        SMART_HOMES_LOGGING__FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="SMART_HOMES_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    mqtt: MqttSettings = Field(
        default_factory=MqttSettings,
        description="MQTT broker connection settings.",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration.",
    )
    fleet: FleetSettings = Field(
        default_factory=FleetSettings,
        description="Fleet size and telemetry pacing.",
    )
    query: QuerySettings = Field(
        default_factory=QuerySettings,
        description="HTTP status query façade.",
    )
