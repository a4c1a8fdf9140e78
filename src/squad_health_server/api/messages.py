"""Direct messaging endpoints."""

from dataclasses import dataclass
from typing import Annotated, Any

from litestar import Router, delete, get, post
from litestar.datastructures import UploadFile
from litestar.enums import RequestEncodingType
from litestar.params import Body
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.auth import require_roles
from squad_health_server.models.user import User
from squad_health_server.schemas.requests import ReactionUpdate
from squad_health_server.services.messaging import MessagingService
from squad_health_server.services.realtime import ChannelsEventPublisher
from squad_health_server.services.storage import UploadedFile


@dataclass
class MessageForm:
    """Multipart body for sending a message."""

    type: str
    content: str | None = None
    file: UploadFile | None = None


@get("/conversations", status_code=HTTP_200_OK)
async def list_conversations(
    current_user: User, session: AsyncSession, query: str | None = None
) -> list[dict[str, Any]]:
    """Conversations ordered by latest activity.

    Query params:
        query: Name/email fragment, or ``@username`` to match the email's local part
    """
    return await MessagingService(session).conversations(current_user, query)


@get("/conversation/{user_id:int}", status_code=HTTP_200_OK)
async def conversation_messages(
    user_id: int, current_user: User, session: AsyncSession
) -> dict[str, Any]:
    return await MessagingService(session).messages(current_user, user_id)


@get("/users/search", status_code=HTTP_200_OK)
async def search_users(
    current_user: User, session: AsyncSession, query: str | None = None
) -> list[dict[str, Any]]:
    return await MessagingService(session).search_users(current_user, query)


@post("/send/{recipient_id:int}", status_code=HTTP_201_CREATED)
async def send_message(
    recipient_id: int,
    data: Annotated[MessageForm, Body(media_type=RequestEncodingType.MULTI_PART)],
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
    socket_id: str | None,
) -> dict[str, Any]:
    """Send a text message or a photo/voice attachment."""
    upload = None
    if data.file is not None:
        upload = UploadedFile(
            data=await data.file.read(),
            content_type=data.file.content_type,
            filename=data.file.filename,
        )

    service = MessagingService(session, publisher)
    return await service.send(
        current_user,
        recipient_id,
        data.type,
        content=data.content,
        upload=upload,
        socket_id=socket_id,
    )


@post("/{message_id:int}/mark-as-read", status_code=HTTP_200_OK)
async def mark_message_read(
    message_id: int,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
    socket_id: str | None,
) -> dict[str, Any]:
    await MessagingService(session, publisher).mark_read(current_user, message_id, socket_id)
    return {"message": "Message marked as read"}


@post("/{message_id:int}/react", status_code=HTTP_200_OK)
async def react_to_message(
    message_id: int,
    data: ReactionUpdate,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
    socket_id: str | None,
) -> dict[str, Any]:
    message = await MessagingService(session, publisher).react(
        current_user, message_id, data.reaction, socket_id
    )
    return {"message_id": message.id, "reaction": message.reaction}


@delete("/{message_id:int}", status_code=HTTP_200_OK)
async def delete_message(message_id: int, current_user: User, session: AsyncSession) -> dict[str, str]:
    await MessagingService(session).delete(current_user, message_id)
    return {"message": "Message deleted"}


@get("/unread-count", status_code=HTTP_200_OK)
async def unread_messages(current_user: User, session: AsyncSession) -> dict[str, int]:
    return {"count": await MessagingService(session).unread_count(current_user)}


messages_router = Router(
    path="/messages",
    guards=[require_roles()],
    route_handlers=[
        list_conversations,
        conversation_messages,
        search_users,
        send_message,
        mark_message_read,
        react_to_message,
        delete_message,
        unread_messages,
    ],
    tags=["messages"],
)
