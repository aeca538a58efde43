"""Public test-support utilities for smart_homes.

Provided symbols:

- :class:`MockMqttClient` — single-client double that records calls.
- :class:`FakeBroker` / :class:`FakeBrokerClient` — in-memory broker
  with retained messages, wildcards and last wills.
- :func:`make_settings` — factory for ``Settings`` without ``.env`` files.
"""

from smart_homes._mqtt import MockMqttClient
from smart_homes.testing._broker import FakeBroker, FakeBrokerClient
from smart_homes.testing._settings import make_settings

__all__ = [
    "FakeBroker",
    "FakeBrokerClient",
    "MockMqttClient",
    "make_settings",
]
