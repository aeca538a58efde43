"""Fleet runner: every home plus the watcher, in one process.

Fault isolation is deliberately asymmetric:

- a **home** failure is logged, recorded in :attr:`Fleet.failures` and
  otherwise ignored — the remaining homes keep running;
- a **watcher** failure is fatal — every home is cancelled and the
  error is raised from :meth:`Fleet.run`.

:class:`FleetRunner` is the process entrypoint: it configures logging,
installs SIGINT/SIGTERM handlers that trigger a graceful shutdown and
drives :class:`Fleet` with :func:`asyncio.run`.

Orchestration order:

1. Bootstrap (settings, logging, client factory).
2. Build the homes and the watcher (nothing connects yet).
3. Run homes and watcher concurrently until shutdown or watcher failure.
4. Tear down (cancel everything; devices announce themselves offline).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import signal
import uuid

from smart_homes._errors import SmartHomeError, TaskJoinError
from smart_homes._home import Home
from smart_homes._logging import configure_logging
from smart_homes._mqtt import MqttFactory, client_factory
from smart_homes._settings import Settings
from smart_homes._supervision import cancel_tasks
from smart_homes._topics import home_id
from smart_homes._watcher import StatusCallback, Watcher

logger = logging.getLogger(__name__)


class Fleet:
    """Owns ``settings.fleet.num_homes`` homes and one watcher.

    Args:
        settings: Fleet size, telemetry pacing and broker configuration.
        mqtt_factory: Builds every component's client; defaults to real
            aiomqtt adapters.
        on_status: Forwarded to the :class:`Watcher`.
        rng: Optional jitter source shared by all devices.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        mqtt_factory: MqttFactory | None = None,
        on_status: StatusCallback | None = None,
        rng: random.Random | None = None,
    ) -> None:
        factory = mqtt_factory or client_factory(settings.mqtt)
        self.homes = [
            Home.create(home_id(index), settings, mqtt_factory=factory, rng=rng)
            for index in range(settings.fleet.num_homes)
        ]
        self.watcher = Watcher(
            factory(f"watcher-{uuid.uuid4().hex[:8]}"),
            qos=settings.mqtt.qos,
            on_status=on_status,
        )
        self.failures: dict[str, SmartHomeError] = {}

    def home(self, home_id_: str) -> Home:
        """Return the home with the given identifier."""
        for home in self.homes:
            if home.id == home_id_:
                return home
        msg = f"No home '{home_id_}' in this fleet"
        raise KeyError(msg)

    async def run(self, shutdown_event: asyncio.Event | None = None) -> None:
        """Run until *shutdown_event* is set or the watcher fails.

        Raises:
            SmartHomeError: The watcher's fatal error.
        """
        home_tasks = [
            asyncio.create_task(self._supervise(home), name=home.id)
            for home in self.homes
        ]
        watcher_task = asyncio.create_task(self.watcher.run(), name="watcher")
        waiters: list[asyncio.Task[object]] = [watcher_task]
        if shutdown_event is not None:
            waiters.append(
                asyncio.create_task(shutdown_event.wait(), name="shutdown"),
            )
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            await cancel_tasks([*home_tasks, *waiters])

        if watcher_task.cancelled():
            return
        exc = watcher_task.exception()
        if exc is None:
            return
        logger.error("Watcher failed, stopping fleet: %s", exc)
        if isinstance(exc, SmartHomeError):
            raise exc
        raise TaskJoinError("watcher", exc) from exc

    async def _supervise(self, home: Home) -> None:
        try:
            await home.run()
        except SmartHomeError as exc:
            self.failures[home.id] = exc
            logger.error("Home %s failed: %s", home.id, exc)


class FleetRunner:
    """Process entrypoint for the simulator.

    Args:
        settings: Resolved settings; loaded from the environment when
            omitted.
        version: Application version included in JSON log lines.
    """

    def __init__(self, settings: Settings | None = None, *, version: str = "") -> None:
        self.settings = settings if settings is not None else Settings()
        self.version = version

    def run(
        self,
        *,
        mqtt_factory: MqttFactory | None = None,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        """Start the fleet (blocking, synchronous entrypoint).

        Wraps :meth:`_run_async` in :func:`asyncio.run`, handling
        ``KeyboardInterrupt`` for clean Ctrl-C shutdown.
        """
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(
                self._run_async(
                    mqtt_factory=mqtt_factory,
                    shutdown_event=shutdown_event,
                ),
            )

    async def _run_async(
        self,
        *,
        mqtt_factory: MqttFactory | None = None,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        configure_logging(
            self.settings.logging,
            service="smart-homes",
            version=self.version,
        )
        shutdown_event = self._install_signal_handlers(shutdown_event)

        fleet = Fleet(self.settings, mqtt_factory=mqtt_factory)
        logger.info(
            "Simulating %d homes against %s",
            len(fleet.homes),
            self.settings.mqtt.broker_url,
        )
        await fleet.run(shutdown_event)
        logger.info("Shutdown complete")

    @staticmethod
    def _install_signal_handlers(
        shutdown_event: asyncio.Event | None,
    ) -> asyncio.Event:
        """Install SIGTERM/SIGINT handlers. Returns the shutdown event."""
        if shutdown_event is not None:
            return shutdown_event
        event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, event.set)
        return event
