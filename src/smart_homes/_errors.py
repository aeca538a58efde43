"""Error taxonomy for the smart-home simulator.

Every failure the core can report derives from :class:`SmartHomeError`
so supervisors can tell an expected, domain-level failure from a bug.

Severity by type::

    ClientCreationError     fatal    bad broker address, client not built
    BrokerConnectionError   fatal    connect refused / stream closed
    PublishError            fatal    broker rejected or lost a publish
    SubscribeError          fatal    broker rejected a subscription
    SerializationError      fatal    outbound payload could not be encoded
    DeserializationError    dropped  inbound payload could not be decoded
    TaskJoinError           fatal    supervised task died with a non-domain error
    StatusTimeoutError      client   query façade gave up waiting

Fatal errors bubble exactly one supervision level (actor → home →
fleet) and are logged there.  :class:`DeserializationError` never
leaves the component that decoded the payload.
"""

from __future__ import annotations


class SmartHomeError(Exception):
    """Base class for all smart-home simulator errors."""


class ClientCreationError(SmartHomeError):
    """The broker client could not be constructed (e.g. invalid URL)."""


class BrokerConnectionError(SmartHomeError):
    """The broker is unreachable, refused the handshake, or went away."""


class PublishError(SmartHomeError):
    """A publish was not acknowledged by the broker."""


class SubscribeError(SmartHomeError):
    """A subscription was not acknowledged by the broker."""


class SerializationError(SmartHomeError):
    """An outbound payload could not be serialised."""


class DeserializationError(SmartHomeError):
    """An inbound payload could not be decoded.

    Non-fatal: the offending message is dropped and a warning logged.
    """

    def __init__(self, message: str, *, payload: bytes | str = b"") -> None:
        super().__init__(message)
        self.payload = payload


class TaskJoinError(SmartHomeError):
    """A supervised task terminated with an unexpected exception.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, task_name: str, cause: BaseException) -> None:
        super().__init__(f"Task '{task_name}' failed: {cause!r}")
        self.task_name = task_name


class StatusTimeoutError(SmartHomeError):
    """No status message arrived within the query façade's bounded wait."""
