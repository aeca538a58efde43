"""Unit tests for smart_homes._errors and smart_homes._topics.

Test Techniques Used:
    - Specification-based Testing: hierarchy, attributes, topic strings
"""

from __future__ import annotations

import pytest

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
from smart_homes._topics import (
    DEVICE_KINDS,
    availability_topic,
    command_topic,
    home_id,
    status_patterns,
    status_topic,
)


class TestErrorHierarchy:
    """Technique: Specification-based Testing."""

    @pytest.mark.parametrize(
        "cls",
        [
            BrokerConnectionError,
            ClientCreationError,
            DeserializationError,
            PublishError,
            SerializationError,
            StatusTimeoutError,
            SubscribeError,
        ],
    )
    def test_all_derive_from_base(self, cls: type[Exception]) -> None:
        assert issubclass(cls, SmartHomeError)

    def test_deserialization_keeps_payload(self) -> None:
        exc = DeserializationError("bad", payload=b"{")
        assert exc.payload == b"{"
        assert str(exc) == "bad"

    def test_task_join_error(self) -> None:
        cause = RuntimeError("bug")
        exc = TaskJoinError("tv/home-0/telemetry", cause)
        assert exc.task_name == "tv/home-0/telemetry"
        assert str(exc) == "Task 'tv/home-0/telemetry' failed: RuntimeError('bug')"
        assert isinstance(exc, SmartHomeError)


class TestTopics:
    """Technique: Specification-based Testing."""

    def test_kinds(self) -> None:
        assert DEVICE_KINDS == ("bulb", "fan", "tv")

    def test_home_id(self) -> None:
        assert home_id(0) == "home-0"
        assert home_id(12) == "home-12"

    def test_device_topics(self) -> None:
        assert availability_topic("bulb", "home-1") == "bulb/home-1/available"
        assert status_topic("fan", "home-1") == "fan/home-1/status"
        assert command_topic("tv", "home-1") == "tv/home-1/command"

    def test_status_patterns(self) -> None:
        assert status_patterns() == ["bulb/+/status", "fan/+/status", "tv/+/status"]
