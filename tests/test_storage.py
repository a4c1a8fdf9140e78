"""Tests for attachment storage."""

from pathlib import Path

import pytest

from squad_health_server.core.errors import InvalidRequest
from squad_health_server.services.storage import AttachmentKind, FileStorage


@pytest.fixture
def storage(tmp_path: Path) -> FileStorage:
    return FileStorage(tmp_path / "public", "/storage/")


def test_store_photo(storage: FileStorage, tmp_path: Path) -> None:
    url = storage.store(b"jpeg-bytes", AttachmentKind.PHOTO, "image/jpeg", "pitch.jpg", owner_id=7)

    assert url.startswith("/storage/messages/photos/7_")
    assert url.endswith(".jpg")
    path = storage.path_for(url)
    assert path.parent == (tmp_path / "public" / "messages" / "photos").resolve()
    assert path.read_bytes() == b"jpeg-bytes"


def test_store_voice_with_parameters_in_type(storage: FileStorage) -> None:
    url = storage.store(b"ogg-bytes", AttachmentKind.VOICE, "audio/ogg; codecs=opus")

    assert "/messages/voice/" in url
    assert storage.path_for(url).read_bytes() == b"ogg-bytes"


@pytest.mark.parametrize(
    ("kind", "content_type", "message"),
    [
        (AttachmentKind.PHOTO, "application/pdf", "The file must be a valid image file."),
        (AttachmentKind.VOICE, "image/png", "The file must be a valid audio file."),
        (AttachmentKind.PHOTO, None, "The file must be a valid image file."),
    ],
)
def test_rejects_wrong_type(
    storage: FileStorage, kind: AttachmentKind, content_type: str | None, message: str
) -> None:
    with pytest.raises(InvalidRequest) as exc_info:
        storage.store(b"data", kind, content_type)
    assert exc_info.value.message == message


def test_rejects_oversized_voice(storage: FileStorage) -> None:
    with pytest.raises(InvalidRequest, match="exceeds maximum limit"):
        storage.validate(AttachmentKind.VOICE, "audio/mpeg", 5 * 1024 * 1024 + 1)

    storage.validate(AttachmentKind.VOICE, "audio/mpeg", 5 * 1024 * 1024)


def test_delete(storage: FileStorage) -> None:
    url = storage.store(b"png", AttachmentKind.PHOTO, "image/png", "a.png")

    assert storage.delete(url)
    assert not storage.delete(url)


def test_path_outside_root_is_refused(storage: FileStorage, tmp_path: Path) -> None:
    outside = tmp_path / "secret.txt"
    outside.write_text("keep me")

    assert storage.path_for("/storage/../secret.txt") is None
    assert not storage.delete("/storage/../secret.txt")
    assert storage.path_for("/elsewhere/messages/photos/a.png") is None
    assert outside.exists()
