"""Local disk storage for message attachments."""

import mimetypes
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

from squad_health_server.core.config import settings
from squad_health_server.core.errors import InvalidRequest

logger = structlog.get_logger()


class AttachmentKind(str, Enum):
    """Kinds of files a message can carry."""

    PHOTO = "photo"
    VOICE = "voice"


@dataclass(frozen=True)
class AttachmentRule:
    """Where a kind of attachment is stored and what it may contain."""

    directory: str
    max_bytes: int
    content_types: frozenset[str]
    invalid_type_message: str


@dataclass(frozen=True)
class UploadedFile:
    """File received from a client, already read into memory."""

    data: bytes
    content_type: str | None
    filename: str | None = None


ATTACHMENT_RULES: dict[AttachmentKind, AttachmentRule] = {
    AttachmentKind.PHOTO: AttachmentRule(
        directory="messages/photos",
        max_bytes=10 * 1024 * 1024,
        content_types=frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"}),
        invalid_type_message="The file must be a valid image file.",
    ),
    AttachmentKind.VOICE: AttachmentRule(
        directory="messages/voice",
        max_bytes=5 * 1024 * 1024,
        content_types=frozenset({"audio/mpeg", "audio/mp4", "audio/ogg", "audio/wav", "audio/webm"}),
        invalid_type_message="The file must be a valid audio file.",
    ),
}


class FileStorage:
    """Store attachments under a public directory and hand out their URLs."""

    def __init__(self, root: Path | None = None, base_url: str | None = None) -> None:
        """Initialize file storage.

        Args:
            root: Directory files are written under (defaults to config)
            base_url: Public URL prefix matching ``root`` (defaults to config)
        """
        self.root = Path(root or settings.storage_dir)
        self.base_url = (base_url or settings.storage_base_url).rstrip("/")
        self.logger = logger.bind(service="storage")

    def validate(self, kind: AttachmentKind, content_type: str | None, size: int) -> AttachmentRule:
        """Check an upload against the rules for its kind.

        Raises:
            InvalidRequest: If the type is not allowed or the file is too large
        """
        rule = ATTACHMENT_RULES[kind]
        if (content_type or "").split(";")[0].strip().lower() not in rule.content_types:
            raise InvalidRequest(rule.invalid_type_message, content_type=content_type)
        if size > rule.max_bytes:
            raise InvalidRequest(
                "File size exceeds maximum limit",
                size=size,
                max_bytes=rule.max_bytes,
            )
        return rule

    def store(
        self,
        data: bytes,
        kind: AttachmentKind,
        content_type: str | None,
        filename: str | None = None,
        owner_id: int | None = None,
    ) -> str:
        """Write an attachment to disk.

        Args:
            data: File contents
            kind: Photo or voice
            content_type: MIME type reported by the client
            filename: Original filename, used for its extension
            owner_id: Uploading user, prefixed to the stored name

        Returns:
            Public URL of the stored file

        Raises:
            InvalidRequest: If the file fails validation
        """
        rule = self.validate(kind, content_type, len(data))

        extension = Path(filename or "").suffix
        if not extension and content_type:
            extension = mimetypes.guess_extension(content_type.split(";")[0].strip()) or ""
        prefix = f"{owner_id}_" if owner_id is not None else ""
        name = f"{prefix}{uuid.uuid4().hex}_{int(time.time())}{extension}"

        target = self.root / rule.directory / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

        url = f"{self.base_url}/{rule.directory}/{name}"
        self.logger.info("Attachment stored", kind=kind.value, size=len(data), url=url)
        return url

    def delete(self, url: str) -> bool:
        """Remove a stored attachment.

        Returns:
            True if a file was removed
        """
        path = self.path_for(url)
        if path is None or not path.is_file():
            return False
        path.unlink()
        self.logger.info("Attachment deleted", url=url)
        return True

    def path_for(self, url: str) -> Path | None:
        """Map a public URL back to a path inside the storage root."""
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            return None

        root = self.root.resolve()
        path = (root / url[len(prefix):]).resolve()
        if not path.is_relative_to(root):
            self.logger.warning("Refusing path outside storage root", url=url)
            return None
        return path
