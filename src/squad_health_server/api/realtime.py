"""Realtime notification stream over websockets."""

import json

import structlog
from litestar import WebSocket, websocket
from litestar.channels import ChannelsPlugin
from litestar.exceptions import WebSocketDisconnect

from squad_health_server.core.auth import SOCKET_ID_HEADER, require_roles, user_id_from
from squad_health_server.services.realtime import should_deliver, user_channel

logger = structlog.get_logger()


@websocket("/ws/notifications", guards=[require_roles()])
async def notification_stream(socket: WebSocket) -> None:
    """Push the user's realtime events until the client disconnects.

    Clients identify their connection with ``X-Socket-ID`` (or the
    ``socket_id`` query param) and send the same id on HTTP requests, so
    events they trigger themselves are not echoed back.
    """
    user_id = user_id_from(socket)
    socket_id = socket.headers.get(SOCKET_ID_HEADER) or socket.query_params.get("socket_id")
    channels = socket.app.plugins.get(ChannelsPlugin)

    async def forward(event: bytes) -> None:
        payload = json.loads(event)
        if should_deliver(payload, socket_id):
            await socket.send_json(payload)

    await socket.accept()
    logger.info("Realtime client connected", user_id=user_id, socket_id=socket_id)

    async with (
        channels.start_subscription([user_channel(user_id)]) as subscriber,
        subscriber.run_in_background(forward),
    ):
        while True:
            try:
                await socket.receive_text()
            except WebSocketDisconnect:
                break

    logger.info("Realtime client disconnected", user_id=user_id, socket_id=socket_id)
