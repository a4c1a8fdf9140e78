"""Realtime event publishing over Litestar channels.

Events go to a per-user channel (``user.<id>``). Every event carries the
socket id of the connection that caused it, and websocket subscribers drop
events that originated from their own connection ("to others" delivery).
"""

import json
from typing import Any, Protocol

import structlog
from litestar import Request
from litestar.channels import ChannelsPlugin

logger = structlog.get_logger()


def user_channel(user_id: int) -> str:
    """Channel name for a user's realtime events."""
    return f"user.{user_id}"


class EventPublisher(Protocol):
    """Anything that can deliver a realtime event to a channel."""

    def publish(self, channel: str, event: dict[str, Any], origin: str | None = None) -> None:
        """Publish ``event`` on ``channel`` on behalf of connection ``origin``."""
        ...


class ChannelsEventPublisher:
    """Publisher backed by the Litestar channels plugin."""

    def __init__(self, channels: ChannelsPlugin) -> None:
        self.channels = channels
        self.logger = logger.bind(service="realtime")

    def publish(self, channel: str, event: dict[str, Any], origin: str | None = None) -> None:
        payload = {**event, "origin": origin}
        self.channels.publish(json.dumps(payload, default=str), channels=[channel])
        self.logger.debug("Published event", channel=channel, type=event.get("type"))


class NullEventPublisher:
    """Publisher that drops every event (CLI scripts, tests)."""

    def publish(self, channel: str, event: dict[str, Any], origin: str | None = None) -> None:
        return None


def should_deliver(payload: dict[str, Any], socket_id: str | None) -> bool:
    """Check whether a subscriber on ``socket_id`` should receive ``payload``.

    Events produced by the subscriber's own connection are skipped.
    """
    origin = payload.get("origin")
    return origin is None or socket_id is None or origin != socket_id


def provide_publisher(request: Request[Any, Any, Any]) -> ChannelsEventPublisher:
    """Request dependency returning a publisher bound to the app's channels plugin."""
    return ChannelsEventPublisher(request.app.plugins.get(ChannelsPlugin))
