"""Unit tests for the smart_homes top-level public API surface.

Test Techniques Used:
    - Specification-based Testing: ``__all__`` completeness against the
      documented public API contract.
    - Importability: Every name in ``__all__`` resolves to a real object
      via ``getattr``.
"""

from __future__ import annotations

import smart_homes
import smart_homes.testing


class TestSmartHomesPublicAPI:
    """All expected symbols are importable and listed in ``__all__``."""

    EXPECTED_NAMES = {
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
    }

    def test_all_contains_expected_symbols(self) -> None:
        """``__all__`` matches the documented public API exactly.

        Technique: Specification-based — verifying module contract.
        """
        assert set(smart_homes.__all__) == self.EXPECTED_NAMES

    def test_all_symbols_importable(self) -> None:
        """Every name in ``__all__`` resolves to an attribute on the module.

        Technique: Specification-based — importability check.
        """
        for name in smart_homes.__all__:
            obj = getattr(smart_homes, name, None)
            assert obj is not None, f"{name!r} listed in __all__ but not importable"

    def test_version_is_string(self) -> None:
        assert isinstance(smart_homes.__version__, str)
        assert smart_homes.__version__


class TestTestingPublicAPI:
    """Technique: Importability."""

    def test_testing_exports(self) -> None:
        assert set(smart_homes.testing.__all__) == {
            "FakeBroker",
            "FakeBrokerClient",
            "MockMqttClient",
            "make_settings",
        }
        for name in smart_homes.testing.__all__:
            assert getattr(smart_homes.testing, name) is not None
