"""smart_homes.

Simulates a fleet of smart homes (a bulb, a fan and a TV each) that
report status and accept commands over MQTT.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("smart-homes")
except PackageNotFoundError:
    # Source checkout without installed metadata
    __version__ = "0.0.0+unknown"

from smart_homes._actor import ActorState, DeviceActor, create_actor
from smart_homes._devices import TV, Bulb, Device, Fan
from smart_homes._errors import (
    BrokerConnectionError,
    ClientCreationError,
    DeserializationError,
    PublishError,
    SerializationError,
    SmartHomeError,
    StatusTimeoutError,
    SubscribeError,
    TaskJoinError,
)
from smart_homes._fleet import Fleet, FleetRunner
from smart_homes._home import Home
from smart_homes._logging import JsonFormatter, configure_logging
from smart_homes._models import (
    Availability,
    BulbSnapshot,
    BulbStatus,
    FanSnapshot,
    FanStatus,
    Mute,
    SetChannel,
    SetColor,
    SetSpeed,
    SetVolume,
    TurnOff,
    TurnOn,
    TvSnapshot,
    TvStatus,
    decode_status,
    encode_command,
    encode_status,
)
from smart_homes._mqtt import MockMqttClient, MqttClient, MqttPort, WillConfig
from smart_homes._query import StatusQuery, create_query_app
from smart_homes._settings import (
    FleetSettings,
    LoggingSettings,
    MqttSettings,
    QuerySettings,
    Settings,
)
from smart_homes._watcher import Watcher

__all__ = [
    # Version
    "__version__",
    # Actors and supervision
    "ActorState",
    "DeviceActor",
    "Fleet",
    "FleetRunner",
    "Home",
    "Watcher",
    "create_actor",
    # Devices
    "TV",
    "Bulb",
    "Device",
    "Fan",
    # Errors
    "BrokerConnectionError",
    "ClientCreationError",
    "DeserializationError",
    "PublishError",
    "SerializationError",
    "SmartHomeError",
    "StatusTimeoutError",
    "SubscribeError",
    "TaskJoinError",
    # Logging
    "JsonFormatter",
    "configure_logging",
    # Models
    "Availability",
    "BulbSnapshot",
    "BulbStatus",
    "FanSnapshot",
    "FanStatus",
    "Mute",
    "SetChannel",
    "SetColor",
    "SetSpeed",
    "SetVolume",
    "TurnOff",
    "TurnOn",
    "TvSnapshot",
    "TvStatus",
    "decode_status",
    "encode_command",
    "encode_status",
    # MQTT
    "MockMqttClient",
    "MqttClient",
    "MqttPort",
    "WillConfig",
    # Query
    "StatusQuery",
    "create_query_app",
    # Settings
    "FleetSettings",
    "LoggingSettings",
    "MqttSettings",
    "QuerySettings",
    "Settings",
]
