"""HTTP status query façade.

``GET /house/{house}/{kind}/status`` returns the latest status snapshot
of device ``{kind}/home-{house}``.  Each request opens its own broker
connection, subscribes to the device's status topic and waits for the
next message — the retained one arrives immediately when the device
has ever reported.

Responses::

    200  the snapshot, ``{"type": ..., "status": {...}}``
    422  unknown kind or non-integer house
    502  broker failure or undecodable status payload
    504  no status within ``query.timeout`` seconds
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Annotated, Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Path, Request

from smart_homes._errors import (
    BrokerConnectionError,
    DeserializationError,
    SmartHomeError,
    StatusTimeoutError,
)
from smart_homes._models import BulbSnapshot, FanSnapshot, TvSnapshot, decode_status
from smart_homes._mqtt import MqttFactory, MqttPort, client_factory
from smart_homes._settings import Settings
from smart_homes._topics import DeviceKind, home_id, status_topic

logger = logging.getLogger(__name__)


class StatusQuery:
    """Fetches one device status per call with a bounded wait.

    Args:
        mqtt_factory: Builds a fresh client for every query.
        timeout: Seconds to wait for the status message.
        qos: QoS of the status subscription.
    """

    def __init__(
        self,
        mqtt_factory: MqttFactory,
        *,
        timeout: float = 5.0,
        qos: int = 1,
    ) -> None:
        self._factory = mqtt_factory
        self.timeout = timeout
        self._qos = qos

    async def fetch(
        self,
        kind: str,
        device_id: str,
    ) -> BulbSnapshot | FanSnapshot | TvSnapshot:
        """Return the next status published on ``{kind}/{device_id}/status``.

        Raises:
            StatusTimeoutError: If nothing arrives within :attr:`timeout`.
            DeserializationError: If the payload is not a valid snapshot.
            BrokerConnectionError: If the broker is unreachable.
            SubscribeError: If the subscription is refused.
        """
        topic = status_topic(kind, device_id)
        client = self._factory(f"query-{uuid.uuid4().hex[:8]}")
        await client.connect()
        try:
            await client.subscribe(topic, qos=self._qos)
            try:
                return await asyncio.wait_for(
                    self._next_status(client, topic),
                    timeout=self.timeout,
                )
            except TimeoutError as exc:
                msg = f"No status on {topic} within {self.timeout:.1f}s"
                raise StatusTimeoutError(msg) from exc
        finally:
            await client.disconnect()

    @staticmethod
    async def _next_status(
        client: MqttPort,
        topic: str,
    ) -> BulbSnapshot | FanSnapshot | TvSnapshot:
        async for message in client.messages():
            if message.topic == topic:
                return decode_status(message.payload)
        msg = f"Connection closed while waiting on {topic}"
        raise BrokerConnectionError(msg)


# ---------------------------------------------------------------------------
# HTTP layer
# ---------------------------------------------------------------------------


def get_query(request: Request) -> StatusQuery:
    """Resolve the app's :class:`StatusQuery` for route injection."""
    return request.app.state.query


QueryDep = Annotated[StatusQuery, Depends(get_query)]

router = APIRouter(tags=["status"])


@router.get("/house/{house}/{kind}/status")
async def get_status(
    house: Annotated[int, Path(ge=0)],
    kind: DeviceKind,
    query: QueryDep,
) -> dict[str, Any]:
    device_id = home_id(house)
    try:
        snapshot = await query.fetch(kind, device_id)
    except StatusTimeoutError as exc:
        logger.warning("Status query for %s/%s timed out", kind, device_id)
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except DeserializationError as exc:
        logger.warning("Undecodable status for %s/%s: %s", kind, device_id, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except SmartHomeError as exc:
        logger.error("Status query for %s/%s failed: %s", kind, device_id, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return snapshot.model_dump(mode="json")


def create_query_app(query: StatusQuery) -> FastAPI:
    """Build the FastAPI status app around *query*.

    The query is stored on ``app.state`` and injected into routes via
    :data:`QueryDep`, so tests can swap in one backed by a fake broker.
    """
    app = FastAPI(title="Smart Homes Status API")
    app.state.query = query
    app.include_router(router)
    return app


async def serve_query(
    settings: Settings,
    *,
    mqtt_factory: MqttFactory | None = None,
) -> None:
    """Serve the status API with uvicorn until cancelled."""
    query = StatusQuery(
        mqtt_factory or client_factory(settings.mqtt),
        timeout=settings.query.timeout,
        qos=settings.mqtt.qos,
    )
    config = uvicorn.Config(
        app=create_query_app(query),
        host=settings.query.host,
        port=settings.query.port,
        log_level=settings.logging.level.lower(),
        lifespan="off",
    )
    server = uvicorn.Server(config)
    logger.info(
        "Status API listening on %s:%s",
        settings.query.host,
        settings.query.port,
    )
    await server.serve()
