"""Direct messaging between users."""

import re
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from squad_health_server.core.errors import ActionForbidden, InvalidRequest, RecordNotFound
from squad_health_server.models.base import utcnow
from squad_health_server.models.message import Conversation, Message, MessageStatus, MessageType
from squad_health_server.models.user import Role, User
from squad_health_server.services.notifications import NotificationService, message_preview
from squad_health_server.services.realtime import EventPublisher, NullEventPublisher, user_channel
from squad_health_server.services.storage import AttachmentKind, FileStorage, UploadedFile

logger = structlog.get_logger()

MAX_TEXT_LENGTH = 1000
PAGE_SIZE = 50
SEARCH_LIMIT = 10

# A reaction is exactly one pictograph from the emoji blocks
REACTION_PATTERN = re.compile("^[\U0001f300-\U0001f9ff]$")


def format_message_time(created_at: datetime, now: datetime | None = None) -> str:
    """Compact age of a message: ``now``, ``5m``, ``3h`` or ``2d``."""
    now = now or utcnow()
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    seconds = int((now - created_at).total_seconds())

    if seconds < 60:
        return "now"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def user_card(user: User) -> dict[str, Any]:
    """Identity shown next to conversations and search results."""
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "avatar": user.profile.avatar_url if user.profile else None,
    }


class MessagingService:
    """Conversations, messages, reactions and read receipts."""

    def __init__(
        self,
        session: AsyncSession,
        publisher: EventPublisher | None = None,
        storage: FileStorage | None = None,
    ) -> None:
        """Initialize messaging service.

        Args:
            session: Database session
            publisher: Realtime publisher for message events
            storage: Attachment storage (defaults to the configured directory)
        """
        self.session = session
        self.publisher = publisher or NullEventPublisher()
        self.storage = storage or FileStorage()
        self.notifications = NotificationService(session, self.publisher)
        self.logger = logger.bind(service="messaging")

    async def conversations(self, user: User, query: str | None = None) -> list[dict[str, Any]]:
        """Conversations the user takes part in, most recently active first.

        Args:
            user: Current user
            query: Filter on the other participant; ``@name`` must equal the
                email local part, anything else matches name or email as a
                substring
        """
        other = aliased(User)
        stmt = select(Conversation).join(
            other,
            or_(
                and_(Conversation.user_id == user.id, other.id == Conversation.participant_id),
                and_(Conversation.participant_id == user.id, other.id == Conversation.user_id),
            ),
        )

        term = (query or "").lstrip()
        if term.startswith("@"):
            stmt = stmt.where(other.email.ilike(f"{term[1:]}@%"))
        elif term:
            stmt = stmt.where(or_(other.name.ilike(f"%{term}%"), other.email.ilike(f"%{term}%")))

        stmt = stmt.order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
        stmt = stmt.execution_options(populate_existing=True)
        conversations = list((await self.session.execute(stmt)).unique().scalars().all())

        unread_stmt = (
            select(Message.conversation_id, func.count())
            .where(Message.recipient_id == user.id)
            .where(Message.read_at.is_(None))
            .group_by(Message.conversation_id)
        )
        unread = dict((await self.session.execute(unread_stmt)).all())

        return [self._conversation_payload(c, user, unread.get(c.id, 0)) for c in conversations]

    async def find_or_create_conversation(self, user: User, participant: User) -> Conversation:
        """Conversation between two users, created on first contact.

        Raises:
            InvalidRequest: If both users are the same
        """
        if user.id == participant.id:
            raise InvalidRequest("You cannot start a conversation with yourself.")

        stmt = select(Conversation).where(
            or_(
                and_(Conversation.user_id == user.id, Conversation.participant_id == participant.id),
                and_(Conversation.user_id == participant.id, Conversation.participant_id == user.id),
            )
        )
        conversation = (await self.session.execute(stmt)).unique().scalars().first()
        if conversation is not None:
            return conversation

        conversation = Conversation(
            user_id=user.id,
            participant_id=participant.id,
            last_message_at=utcnow(),
        )
        self.session.add(conversation)
        await self.session.flush()
        self.logger.info("Conversation created", conversation_id=conversation.id)
        return conversation

    async def messages(self, user: User, participant_id: int) -> dict[str, Any]:
        """Latest messages with another user.

        Messages addressed to ``user`` are marked delivered before the page is
        read and marked read afterwards.
        """
        participant = await self._get_user(participant_id, "User not found")
        conversation = await self.find_or_create_conversation(user, participant)
        now = utcnow()

        await self.session.execute(
            update(Message)
            .where(Message.conversation_id == conversation.id)
            .where(Message.recipient_id == user.id)
            .where(Message.status == MessageStatus.SENT.value)
            .values(status=MessageStatus.DELIVERED.value, delivered_at=now)
        )

        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(PAGE_SIZE)
            .execution_options(populate_existing=True)
        )
        page = [self._message_payload(m, now) for m in (await self.session.execute(stmt)).scalars()]

        await self.session.execute(
            update(Message)
            .where(Message.conversation_id == conversation.id)
            .where(Message.recipient_id == user.id)
            .where(Message.status.in_([MessageStatus.SENT.value, MessageStatus.DELIVERED.value]))
            .values(status=MessageStatus.READ.value, read_at=now)
        )
        await self.session.commit()

        return {"conversation_id": conversation.id, "messages": page}

    async def send(
        self,
        sender: User,
        recipient_id: int,
        message_type: str,
        content: str | None = None,
        upload: UploadedFile | None = None,
        socket_id: str | None = None,
    ) -> dict[str, Any]:
        """Send a text, photo or voice message.

        Raises:
            RecordNotFound: If the recipient does not exist
            InvalidRequest: If the payload is invalid for its type
        """
        recipient = await self._get_user(recipient_id, "Recipient not found")
        if recipient.id == sender.id:
            raise InvalidRequest("You cannot message yourself")

        try:
            kind = MessageType(message_type)
        except ValueError:
            raise InvalidRequest("The selected type is invalid.", type=message_type) from None

        file_url = None
        match kind:
            case MessageType.TEXT:
                if not content:
                    raise InvalidRequest("The content field is required when type is text.")
                if len(content) > MAX_TEXT_LENGTH:
                    raise InvalidRequest("The content may not be greater than 1000 characters.")
            case MessageType.PHOTO | MessageType.VOICE:
                if upload is None:
                    raise InvalidRequest("The file field is required.")
                content = None
                file_url = self.storage.store(
                    upload.data,
                    AttachmentKind(kind.value),
                    upload.content_type,
                    upload.filename,
                    owner_id=sender.id,
                )

        try:
            conversation = await self.find_or_create_conversation(sender, recipient)
            message = Message(
                conversation_id=conversation.id,
                sender_id=sender.id,
                recipient_id=recipient.id,
                type=kind.value,
                content=content,
                file_url=file_url,
                status=MessageStatus.SENT.value,
            )
            self.session.add(message)
            await self.session.flush()

            conversation.last_message = message
            conversation.last_message_at = message.created_at
            await self.session.flush()

            await self.notifications.message_sent(message, sender, recipient)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            if file_url:
                self.storage.delete(file_url)
            raise

        payload = {
            "message": {
                "id": message.id,
                "type": message.type,
                "content": message.content,
                "file_url": message.file_url,
                "created_at": format_message_time(message.created_at),
                "sender": {"id": sender.id, "name": sender.name},
            },
            "conversation_id": conversation.id,
        }
        self.publisher.publish(
            user_channel(recipient.id),
            {"type": "new_message", **payload, "preview": message_preview(message)},
            origin=socket_id,
        )
        self.logger.info("Message sent", message_id=message.id, type=message.type)
        return payload

    async def mark_read(self, user: User, message_id: int, socket_id: str | None = None) -> Message:
        """Mark a received message as read.

        Raises:
            RecordNotFound: If the message does not exist
            ActionForbidden: If the user is not the recipient
        """
        message = await self._get_message(message_id)
        if message.recipient_id != user.id:
            raise ActionForbidden("Unauthorized")

        message.read_at = utcnow()
        message.status = MessageStatus.READ.value
        await self.session.commit()

        self.publisher.publish(
            user_channel(message.sender_id),
            {"type": "message_read", "message_id": message.id, "user_id": message.sender_id},
            origin=socket_id,
        )
        return message

    async def react(
        self,
        user: User,
        message_id: int,
        reaction: str | None,
        socket_id: str | None = None,
    ) -> Message:
        """Set or clear the reaction on a message.

        Raises:
            InvalidRequest: If the reaction is not a single emoji
            RecordNotFound: If the message does not exist
            ActionForbidden: If the user is not a participant
        """
        if reaction and not REACTION_PATTERN.match(reaction):
            raise InvalidRequest("The reaction format is invalid.")

        message = await self._get_message(message_id)
        if user.id not in (message.sender_id, message.recipient_id):
            raise ActionForbidden("Unauthorized")

        message.reaction = reaction or None
        await self.session.flush()
        if message.reaction:
            await self.notifications.reaction_added(message, user, message.reaction)
        await self.session.commit()

        event = {"type": "message_reaction", "message_id": message.id, "reaction": message.reaction}
        for participant_id in (message.sender_id, message.recipient_id):
            self.publisher.publish(user_channel(participant_id), event, origin=socket_id)
        return message

    async def delete(self, user: User, message_id: int) -> None:
        """Delete a message the user sent, along with its attachment.

        Raises:
            RecordNotFound: If the message does not exist
            ActionForbidden: If the user is not the sender
        """
        message = await self._get_message(message_id)
        if message.sender_id != user.id:
            raise ActionForbidden("Unauthorized")

        file_url = message.file_url
        await self.session.delete(message)
        await self.session.commit()

        if file_url:
            self.storage.delete(file_url)
        self.logger.info("Message deleted", message_id=message_id)

    async def unread_count(self, user: User) -> int:
        """Unread messages addressed to the user across all conversations."""
        stmt = (
            select(func.count())
            .select_from(Message)
            .where(Message.recipient_id == user.id)
            .where(Message.read_at.is_(None))
        )
        return (await self.session.execute(stmt)).scalar_one()

    async def search_users(self, user: User, query: str | None = None) -> list[dict[str, Any]]:
        """Users the current user can message, matching name or email."""
        stmt = select(User).where(User.id != user.id).where(User.role != Role.ADMIN)
        if query:
            stmt = stmt.where(or_(User.name.ilike(f"%{query}%"), User.email.ilike(f"%{query}%")))
        stmt = stmt.order_by(User.id).limit(SEARCH_LIMIT).execution_options(populate_existing=True)

        users = (await self.session.execute(stmt)).scalars().all()
        return [user_card(u) for u in users]

    async def _get_user(self, user_id: int, missing_message: str) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise RecordNotFound(missing_message, user_id=user_id)
        return user

    async def _get_message(self, message_id: int) -> Message:
        stmt = select(Message).where(Message.id == message_id).execution_options(populate_existing=True)
        message = (await self.session.execute(stmt)).scalar_one_or_none()
        if message is None:
            raise RecordNotFound("Message not found", message_id=message_id)
        return message

    def _conversation_payload(
        self, conversation: Conversation, user: User, unread_count: int
    ) -> dict[str, Any]:
        other = conversation.other_participant(user.id)
        last = conversation.last_message
        return {
            "id": conversation.id,
            "participant": user_card(other),
            "last_message": (
                {
                    "id": last.id,
                    "type": last.type,
                    "content": message_preview(last),
                    "created_at": format_message_time(last.created_at),
                    "is_read": last.read_at is not None,
                }
                if last
                else None
            ),
            "unread_count": unread_count,
        }

    @staticmethod
    def _message_payload(message: Message, now: datetime) -> dict[str, Any]:
        sender = message.sender
        return {
            "id": message.id,
            "type": message.type,
            "content": message.content,
            "file_url": message.file_url,
            "reaction": message.reaction,
            "created_at": format_message_time(message.created_at, now),
            "status": message.status,
            "delivered_at": message.delivered_at,
            "read_at": message.read_at,
            "sender": {
                "id": sender.id,
                "name": sender.name,
                "avatar": sender.profile.avatar_url if sender.profile else None,
                "role": sender.role.value,
            },
        }
