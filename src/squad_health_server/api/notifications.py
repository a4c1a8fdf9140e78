"""Notification inbox endpoints (every role)."""

from typing import Any

from litestar import Router, delete, get, post
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.auth import require_roles
from squad_health_server.models.user import User
from squad_health_server.services.notifications import NotificationService, format_notification
from squad_health_server.services.realtime import ChannelsEventPublisher


@get("/", status_code=HTTP_200_OK)
async def list_notifications(current_user: User, session: AsyncSession) -> list[dict[str, Any]]:
    notifications = await NotificationService(session).list_for(current_user)
    return [format_notification(n) for n in notifications]


@get("/unread", status_code=HTTP_200_OK)
async def list_unread(current_user: User, session: AsyncSession) -> list[dict[str, Any]]:
    notifications = await NotificationService(session).list_for(current_user, unread_only=True)
    return [format_notification(n) for n in notifications]


@get("/pinned", status_code=HTTP_200_OK)
async def list_pinned(current_user: User, session: AsyncSession) -> list[dict[str, Any]]:
    notifications = await NotificationService(session).list_for(current_user, pinned_only=True)
    return [format_notification(n) for n in notifications]


@get("/unread/count", status_code=HTTP_200_OK)
async def unread_count(current_user: User, session: AsyncSession) -> dict[str, int]:
    return {"count": await NotificationService(session).unread_count(current_user)}


@get("/{notification_id:int}", status_code=HTTP_200_OK)
async def notification_detail(
    notification_id: int, current_user: User, session: AsyncSession
) -> dict[str, Any]:
    notification = await NotificationService(session).get_for(current_user, notification_id)
    return format_notification(notification)


@post("/{notification_id:int}/mark-as-read", status_code=HTTP_200_OK)
async def mark_as_read(
    notification_id: int,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
    socket_id: str | None,
) -> dict[str, str]:
    await NotificationService(session, publisher).mark_read(current_user, notification_id, socket_id)
    return {"message": "Notification marked as read"}


@post("/read-all", status_code=HTTP_200_OK)
async def mark_all_as_read(
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
    socket_id: str | None,
) -> dict[str, Any]:
    updated = await NotificationService(session, publisher).mark_all_read(current_user, socket_id)
    return {"message": "All notifications marked as read", "updated": updated}


@post("/{notification_id:int}/pin", status_code=HTTP_200_OK)
async def pin_notification(
    notification_id: int,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
    socket_id: str | None,
) -> dict[str, Any]:
    notification = await NotificationService(session, publisher).set_pinned(
        current_user, notification_id, True, socket_id
    )
    return {"message": "Notification pinned", "notification": format_notification(notification)}


@post("/{notification_id:int}/unpin", status_code=HTTP_200_OK)
async def unpin_notification(
    notification_id: int,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
    socket_id: str | None,
) -> dict[str, Any]:
    notification = await NotificationService(session, publisher).set_pinned(
        current_user, notification_id, False, socket_id
    )
    return {"message": "Notification unpinned", "notification": format_notification(notification)}


@delete("/{notification_id:int}", status_code=HTTP_200_OK)
async def delete_notification(
    notification_id: int,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
    socket_id: str | None,
) -> dict[str, str]:
    await NotificationService(session, publisher).delete_for(current_user, notification_id, socket_id)
    return {"message": "Notification deleted"}


notifications_router = Router(
    path="/notifications",
    guards=[require_roles()],
    route_handlers=[
        list_notifications,
        list_unread,
        list_pinned,
        unread_count,
        notification_detail,
        mark_as_read,
        mark_all_as_read,
        pin_notification,
        unpin_notification,
        delete_notification,
    ],
    tags=["notifications"],
)
