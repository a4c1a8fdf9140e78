"""Tests for direct messaging."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.errors import ActionForbidden, InvalidRequest, RecordNotFound
from squad_health_server.models import Message, MessageStatus, Notification, NotificationType, Role, User
from squad_health_server.services.messaging import MessagingService, format_message_time
from squad_health_server.services.storage import FileStorage, UploadedFile

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def storage(tmp_path: Path) -> FileStorage:
    return FileStorage(tmp_path, "/storage")


@pytest.fixture
def service(async_session: AsyncSession, publisher, storage: FileStorage) -> MessagingService:
    return MessagingService(async_session, publisher, storage)


class TestFormatMessageTime:
    """Tests for compact message ages."""

    @pytest.mark.parametrize(
        ("age", "expected"),
        [
            (timedelta(seconds=30), "now"),
            (timedelta(minutes=5), "5m"),
            (timedelta(hours=3, minutes=59), "3h"),
            (timedelta(days=2, hours=1), "2d"),
        ],
    )
    def test_ages(self, age: timedelta, expected: str) -> None:
        now = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
        assert format_message_time(now - age, now) == expected

    def test_naive_timestamps_are_utc(self) -> None:
        now = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
        assert format_message_time(datetime(2026, 10, 19, 11, 0), now) == "1h"


class TestSend:
    """Tests for sending messages."""

    async def test_send_text(
        self,
        service: MessagingService,
        async_session: AsyncSession,
        publisher,
        player: User,
        coach: User,
    ) -> None:
        result = await service.send(player, coach.id, "text", "Can we talk?", socket_id="sock-9")

        assert result["message"]["content"] == "Can we talk?"
        assert result["message"]["created_at"] == "now"
        assert result["message"]["sender"] == {"id": player.id, "name": "Tom Hart"}

        [(channel, event, origin)] = publisher.of_type("new_message")
        assert channel == f"user.{coach.id}"
        assert event["preview"] == "Can we talk?"
        assert origin == "sock-9"

        stmt = select(Notification).where(Notification.user_id == coach.id)
        [notification] = (await async_session.execute(stmt)).scalars().all()
        assert notification.type == NotificationType.MESSAGE.value
        assert notification.title == "Tom Hart sent you a message"

    async def test_reuses_conversation(self, service: MessagingService, player: User, coach: User) -> None:
        first = await service.send(player, coach.id, "text", "Hi")
        reply = await service.send(coach, player.id, "text", "Hello")

        assert first["conversation_id"] == reply["conversation_id"]

    async def test_send_photo(
        self, service: MessagingService, storage: FileStorage, player: User, doctor: User
    ) -> None:
        upload = UploadedFile(PNG_BYTES, "image/png", "knee.png")

        result = await service.send(player, doctor.id, "photo", "ignored caption", upload=upload)

        url = result["message"]["file_url"]
        assert url.startswith("/storage/messages/photos/")
        assert url.endswith(".png")
        assert result["message"]["content"] is None
        assert storage.path_for(url).read_bytes() == PNG_BYTES

    @pytest.mark.parametrize(
        ("message_type", "content", "upload"),
        [
            ("text", None, None),
            ("text", "x" * 1001, None),
            ("sticker", "hi", None),
            ("voice", None, None),
            ("voice", None, UploadedFile(PNG_BYTES, "image/png", "not-audio.png")),
        ],
    )
    async def test_invalid_payloads(
        self,
        service: MessagingService,
        player: User,
        coach: User,
        message_type: str,
        content: str | None,
        upload: UploadedFile | None,
    ) -> None:
        with pytest.raises(InvalidRequest):
            await service.send(player, coach.id, message_type, content, upload=upload)

    async def test_cannot_message_self(self, service: MessagingService, player: User) -> None:
        with pytest.raises(InvalidRequest, match="yourself"):
            await service.send(player, player.id, "text", "Hi me")

    async def test_unknown_recipient(self, service: MessagingService, player: User) -> None:
        with pytest.raises(RecordNotFound):
            await service.send(player, 4242, "text", "Hello?")


class TestReading:
    """Tests for listing conversations and reading messages."""

    async def test_messages_marks_read(self, service: MessagingService, player: User, coach: User) -> None:
        await service.send(player, coach.id, "text", "One")
        await service.send(player, coach.id, "text", "Two")
        assert await service.unread_count(coach) == 2

        page = await service.messages(coach, player.id)

        assert [m["content"] for m in page["messages"]] == ["Two", "One"]
        assert page["messages"][0]["sender"]["role"] == "player"
        assert await service.unread_count(coach) == 0

    async def test_conversations_with_unread_counts(
        self, service: MessagingService, player: User, coach: User, doctor: User
    ) -> None:
        await service.send(player, coach.id, "text", "Coach?")
        await service.send(doctor, player.id, "text", "Checkup tomorrow")

        conversations = await service.conversations(player)

        assert [c["participant"]["id"] for c in conversations] == [doctor.id, coach.id]
        assert conversations[0]["unread_count"] == 1
        assert conversations[0]["last_message"]["content"] == "Checkup tomorrow"
        assert conversations[1]["unread_count"] == 0
        assert conversations[1]["participant"]["username"] == "@mark.stone"

    @pytest.mark.parametrize(
        ("query", "expected"),
        [("@sarah.lee", ["Sarah Lee"]), ("@sarah", []), ("stone", ["Mark Stone"]), ("club.test", None)],
    )
    async def test_conversation_search(
        self,
        service: MessagingService,
        player: User,
        coach: User,
        doctor: User,
        query: str,
        expected: list[str] | None,
    ) -> None:
        await service.send(player, coach.id, "text", "Hi coach")
        await service.send(player, doctor.id, "text", "Hi doc")

        names = [c["participant"]["name"] for c in await service.conversations(player, query)]

        assert names == (expected if expected is not None else ["Sarah Lee", "Mark Stone"])

    async def test_search_users_excludes_self_and_admins(
        self, service: MessagingService, player: User, coach: User, doctor: User, admin: User
    ) -> None:
        results = await service.search_users(player)
        assert [u["id"] for u in results] == [doctor.id, coach.id]

        assert [u["name"] for u in await service.search_users(player, "stone")] == ["Mark Stone"]


class TestMessageActions:
    """Tests for read receipts, reactions and deletion."""

    async def _send(self, service: MessagingService, sender: User, recipient: User) -> int:
        result = await service.send(sender, recipient.id, "text", "Ready for Saturday?")
        return result["message"]["id"]

    async def test_mark_read_by_recipient(
        self, service: MessagingService, publisher, player: User, coach: User
    ) -> None:
        message_id = await self._send(service, player, coach)

        message = await service.mark_read(coach, message_id, socket_id="sock-2")

        assert message.status == MessageStatus.READ.value
        assert message.read_at is not None
        assert publisher.of_type("message_read") == [
            (
                f"user.{player.id}",
                {"type": "message_read", "message_id": message_id, "user_id": player.id},
                "sock-2",
            )
        ]

    async def test_mark_read_by_sender_is_forbidden(
        self, service: MessagingService, player: User, coach: User
    ) -> None:
        message_id = await self._send(service, player, coach)

        with pytest.raises(ActionForbidden):
            await service.mark_read(player, message_id)

    async def test_react_notifies_sender_and_publishes_to_both(
        self,
        service: MessagingService,
        async_session: AsyncSession,
        publisher,
        player: User,
        coach: User,
    ) -> None:
        message_id = await self._send(service, player, coach)

        message = await service.react(coach, message_id, "\U0001f44d")

        assert message.reaction == "\U0001f44d"
        channels = [channel for channel, _, _ in publisher.of_type("message_reaction")]
        assert channels == [f"user.{player.id}", f"user.{coach.id}"]

        stmt = select(Notification).where(Notification.type == NotificationType.REACTION.value)
        [notification] = (await async_session.execute(stmt)).scalars().all()
        assert notification.user_id == player.id
        assert notification.body == "Mark Stone added reaction \U0001f44d"

    async def test_clear_reaction(self, service: MessagingService, player: User, coach: User) -> None:
        message_id = await self._send(service, player, coach)
        await service.react(coach, message_id, "\U0001f525")

        assert (await service.react(coach, message_id, None)).reaction is None

    @pytest.mark.parametrize("reaction", ["❤", "ok", "\U0001f44d\U0001f44d"])
    async def test_invalid_reaction(
        self, service: MessagingService, player: User, coach: User, reaction: str
    ) -> None:
        message_id = await self._send(service, player, coach)

        with pytest.raises(InvalidRequest):
            await service.react(coach, message_id, reaction)

    async def test_outsider_cannot_react(
        self, service: MessagingService, player: User, coach: User, doctor: User
    ) -> None:
        message_id = await self._send(service, player, coach)

        with pytest.raises(ActionForbidden):
            await service.react(doctor, message_id, "\U0001f44d")

    async def test_delete_removes_attachment(
        self,
        service: MessagingService,
        async_session: AsyncSession,
        storage: FileStorage,
        player: User,
        doctor: User,
    ) -> None:
        result = await service.send(
            player, doctor.id, "photo", upload=UploadedFile(PNG_BYTES, "image/png", "x.png")
        )
        path = storage.path_for(result["message"]["file_url"])
        assert path.is_file()

        with pytest.raises(ActionForbidden):
            await service.delete(doctor, result["message"]["id"])

        await service.delete(player, result["message"]["id"])

        assert not path.exists()
        assert await async_session.get(Message, result["message"]["id"]) is None
