"""MQTT topic layout shared by devices, the watcher and the query façade.

Topic convention::

    {kind}/{id}/available  → availability (retained, also the last will)
    {kind}/{id}/status     → status snapshot (retained)
    {kind}/{id}/command    → inbound commands (subscribed by the device)

``kind`` is one of :data:`DEVICE_KINDS`; ``id`` is the home identifier
(``home-0``, ``home-1``, ...) so one home's bulb, fan and TV share it.
These strings are the interop contract with every consumer and must not
change shape.
"""

from __future__ import annotations

from typing import Literal

DeviceKind = Literal["bulb", "fan", "tv"]

DEVICE_KINDS: tuple[DeviceKind, ...] = ("bulb", "fan", "tv")


def home_id(index: int) -> str:
    """Return the identifier of the *index*-th simulated home."""
    return f"home-{index}"


def availability_topic(kind: str, device_id: str) -> str:
    return f"{kind}/{device_id}/available"


def status_topic(kind: str, device_id: str) -> str:
    return f"{kind}/{device_id}/status"


def command_topic(kind: str, device_id: str) -> str:
    return f"{kind}/{device_id}/command"


def status_patterns() -> list[str]:
    """Wildcard subscriptions covering every device's status topic."""
    return [status_topic(kind, "+") for kind in DEVICE_KINDS]
