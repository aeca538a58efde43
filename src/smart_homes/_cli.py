"""Command-line interface (Typer-based).

Three commands share one settings bootstrap (``--env-file`` plus
``SMART_HOMES_*`` environment variables, then CLI overrides):

- ``run`` — simulate the fleet until SIGINT/SIGTERM;
- ``serve`` — serve the HTTP status façade;
- ``send`` — publish a single command to one device.

Exit codes: ``0`` success, ``1`` configuration error, ``2`` usage error
(reported by Typer/Click), ``3`` runtime error.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sys
import uuid
from typing import Annotated, Any, TypeVar, get_args

import typer
from pydantic import BaseModel, ValidationError

from smart_homes import __version__
from smart_homes._devices import DEVICE_TYPES
from smart_homes._errors import DeserializationError, SmartHomeError
from smart_homes._fleet import FleetRunner
from smart_homes._logging import configure_logging
from smart_homes._models import decode_command, encode_command
from smart_homes._mqtt import client_factory
from smart_homes._query import serve_query
from smart_homes._settings import LoggingSettings, Settings
from smart_homes._topics import DEVICE_KINDS, command_topic, home_id

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 3

# ---------------------------------------------------------------------------
# Allowed values (extracted from LoggingSettings Literal types)
# ---------------------------------------------------------------------------

_VALID_LOG_LEVELS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["level"].annotation,
)
_VALID_LOG_FORMATS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["format"].annotation,
)

# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

BrokerUrlOption = Annotated[
    str | None,
    typer.Option("--broker-url", "-b", help="Broker address, tcp://host:port."),
]
LogLevelOption = Annotated[
    str | None,
    typer.Option("--log-level", help="Override log level."),
]
LogFormatOption = Annotated[
    str | None,
    typer.Option("--log-format", help="Override log format (json or text)."),
]
EnvFileOption = Annotated[
    str,
    typer.Option("--env-file", help="Path to .env file."),
]

cli = typer.Typer(
    name="smart-homes",
    help=f"smart-homes v{__version__} — smart-home device fleet simulator over MQTT",
    no_args_is_help=True,
)


ModelT = TypeVar("ModelT", bound=BaseModel)


def _override(model: ModelT, **updates: Any) -> ModelT:
    """Return a re-validated copy of *model* with non-``None`` *updates*."""
    changes = {key: value for key, value in updates.items() if value is not None}
    if not changes:
        return model
    return type(model).model_validate(model.model_dump() | changes)


def _load_settings(
    env_file: str,
    *,
    broker_url: str | None = None,
    log_level: str | None = None,
    log_format: str | None = None,
) -> Settings:
    """Build settings from the environment, then apply CLI overrides.

    Raises:
        typer.BadParameter: For an unknown log level or format.
        SystemExit: With :data:`EXIT_CONFIG_ERROR` on invalid settings.
    """
    if log_level is not None and log_level.upper() not in _VALID_LOG_LEVELS:
        raise typer.BadParameter(
            f"Invalid log level '{log_level}'. "
            f"Choose from: {', '.join(_VALID_LOG_LEVELS)}",
            param_hint="'--log-level'",
        )

    if log_format is not None and log_format.lower() not in _VALID_LOG_FORMATS:
        raise typer.BadParameter(
            f"Invalid log format '{log_format}'. "
            f"Choose from: {', '.join(_VALID_LOG_FORMATS)}",
            param_hint="'--log-format'",
        )

    try:
        settings = Settings(_env_file=env_file)  # type: ignore[call-arg]
        settings.mqtt = _override(settings.mqtt, broker_url=broker_url)
        settings.logging = _override(
            settings.logging,
            level=log_level.upper() if log_level else None,
            format=log_format.lower() if log_format else None,
        )
    except ValidationError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(EXIT_CONFIG_ERROR) from exc
    return settings


@cli.callback(invoke_without_command=True)
def _main(
    ctx: typer.Context,
    version_flag: Annotated[
        bool | None,
        typer.Option(
            "--version",
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    if version_flag:
        typer.echo(f"smart-homes v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@cli.command()
def run(
    broker_url: BrokerUrlOption = None,
    homes: Annotated[
        int | None,
        typer.Option("--homes", "-n", min=1, help="Number of homes to simulate."),
    ] = None,
    log_level: LogLevelOption = None,
    log_format: LogFormatOption = None,
    env_file: EnvFileOption = ".env",
) -> None:
    """Simulate the fleet until interrupted."""
    settings = _load_settings(
        env_file,
        broker_url=broker_url,
        log_level=log_level,
        log_format=log_format,
    )
    try:
        settings.fleet = _override(settings.fleet, num_homes=homes)
    except ValidationError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(EXIT_CONFIG_ERROR) from exc

    try:
        FleetRunner(settings, version=__version__).run()
    except SmartHomeError as exc:
        logger.error("Runtime error: %s", exc)
        sys.exit(EXIT_RUNTIME_ERROR)


@cli.command()
def serve(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Interface to listen on."),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", help="TCP port to listen on."),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Seconds to wait for a status message."),
    ] = None,
    broker_url: BrokerUrlOption = None,
    log_level: LogLevelOption = None,
    log_format: LogFormatOption = None,
    env_file: EnvFileOption = ".env",
) -> None:
    """Serve the HTTP status API."""
    settings = _load_settings(
        env_file,
        broker_url=broker_url,
        log_level=log_level,
        log_format=log_format,
    )
    try:
        settings.query = _override(
            settings.query,
            host=host,
            port=port,
            timeout=timeout,
        )
    except ValidationError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(EXIT_CONFIG_ERROR) from exc

    configure_logging(settings.logging, service="smart-homes-api", version=__version__)
    try:
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(serve_query(settings))
    except SmartHomeError as exc:
        logger.error("Runtime error: %s", exc)
        sys.exit(EXIT_RUNTIME_ERROR)


@cli.command()
def send(
    kind: Annotated[str, typer.Argument(help="Device kind: bulb, fan or tv.")],
    home: Annotated[int, typer.Argument(min=0, help="Home index.")],
    cmd: Annotated[str, typer.Argument(help="Command name, e.g. on or color.")],
    args: Annotated[
        list[int] | None,
        typer.Argument(help="Command arguments, e.g. 255 0 0 for color."),
    ] = None,
    broker_url: BrokerUrlOption = None,
    env_file: EnvFileOption = ".env",
) -> None:
    """Publish one command to a device."""
    if kind not in DEVICE_KINDS:
        raise typer.BadParameter(
            f"Unknown device kind '{kind}'. Choose from: {', '.join(DEVICE_KINDS)}",
            param_hint="'KIND'",
        )

    raw: dict[str, Any] = {"cmd": cmd}
    if args:
        raw["args"] = args[0] if len(args) == 1 else args
    try:
        command = decode_command(DEVICE_TYPES[kind].commands, json.dumps(raw))
    except DeserializationError as exc:
        raise typer.BadParameter(
            f"'{cmd} {' '.join(map(str, args or []))}' is not a valid {kind} command",
            param_hint="'CMD'",
        ) from exc

    settings = _load_settings(env_file, broker_url=broker_url)
    topic = command_topic(kind, home_id(home))
    try:
        asyncio.run(_publish_once(settings, topic, encode_command(command)))
    except SmartHomeError as exc:
        logger.error("Runtime error: %s", exc)
        sys.exit(EXIT_RUNTIME_ERROR)
    typer.echo(f"Sent {encode_command(command)} to {topic}")


async def _publish_once(settings: Settings, topic: str, payload: str) -> None:
    mqtt = client_factory(settings.mqtt)(f"cli-{uuid.uuid4().hex[:8]}")
    await mqtt.connect()
    try:
        await mqtt.publish(topic, payload, qos=settings.mqtt.qos)
    finally:
        await mqtt.disconnect()


def main() -> None:
    """Console-script entrypoint."""
    cli()
