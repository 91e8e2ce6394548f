"""Access-scoped file gateway: the only way handlers reach stored files.

A file owned by someone else is reported exactly like a file that does not
exist (FileNotFound / False), never as forbidden.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, List, Optional

from fastapi import Depends

from app.files.models import FileMetadata, StoredFile
from app.files.store import FileStore, get_file_store

log = logging.getLogger(__name__)

FILE_KINDS = ("all", "images", "videos", "audio", "documents")


class FileNotFound(LookupError):
    """No file with that id for this owner (missing or owned by someone else)."""


@dataclass
class UploadMetadata:
    """What the client declared about an upload."""

    original_name: str
    mime_type: str
    file_size: int
    file_name: Optional[str] = None


def matches_kind(mime_type: str, kind: str) -> bool:
    """True if mime_type belongs to the list filter kind (all/images/videos/audio/documents)."""
    if kind == "all":
        return True
    if kind == "images":
        return mime_type.startswith("image/")
    if kind == "videos":
        return mime_type.startswith("video/")
    if kind == "audio":
        return mime_type.startswith("audio/")
    if kind == "documents":
        return "pdf" in mime_type or "document" in mime_type
    raise ValueError(f"Unknown file type filter: {kind!r}")


def preview_kind(mime_type: str) -> str:
    """How a client can preview this media type: image, video, audio, pdf, text or none."""
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    if mime_type.startswith("audio/"):
        return "audio"
    if mime_type == "application/pdf":
        return "pdf"
    if mime_type.startswith("text/") or mime_type in ("application/json", "application/javascript"):
        return "text"
    return "none"


# Types a browser would execute or render as a document if served inline
_ACTIVE_TYPES = (
    "text/html",
    "application/xhtml+xml",
    "image/svg+xml",
    "text/xml",
    "application/xml",
    "text/javascript",
    "application/javascript",
)


def inline_media_type(mime_type: str) -> str:
    """Media type to use when serving a payload inline; active types become text/plain."""
    base = mime_type.split(";", 1)[0].strip().lower()
    if base in _ACTIVE_TYPES or base.endswith("+xml"):
        return "text/plain"
    return mime_type


def to_metadata(record: StoredFile) -> FileMetadata:
    return FileMetadata(
        id=record.id,
        file_name=record.file_name,
        original_name=record.original_name,
        mime_type=record.mime_type,
        file_size=record.file_size,
        uploaded_at=record.uploaded_at,
        preview=preview_kind(record.mime_type),
    )


def decode_payload(record: StoredFile) -> bytes:
    """Payload bytes of a fetched file."""
    try:
        return base64.b64decode(record.file_data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise RuntimeError(f"Corrupt payload for file id={record.id}") from e


class FileGateway:
    """Owner-scoped list/fetch/create/delete over a FileStore."""

    def __init__(self, store: FileStore) -> None:
        self.store = store

    async def list_for_owner(
        self,
        owner_id: str,
        query: Optional[str] = None,
        kind: str = "all",
    ) -> List[FileMetadata]:
        """
        Owner's files newest first, without payloads.
        query: case-insensitive substring of the original name.
        kind: one of FILE_KINDS; raises ValueError otherwise.
        """
        if kind not in FILE_KINDS:
            raise ValueError(f"Unknown file type filter: {kind!r}")
        needle = (query or "").strip().lower()
        records = await self.store.list_by_owner(owner_id)
        return [
            to_metadata(r)
            for r in records
            if needle in r.original_name.lower() and matches_kind(r.mime_type, kind)
        ]

    async def fetch(self, file_id: str, owner_id: str) -> StoredFile:
        """Return the owner's file (payload loaded). Raises FileNotFound."""
        record = await self.store.get_by_id_and_owner(file_id, owner_id)
        if record is None:
            raise FileNotFound(file_id)
        return record

    async def create(self, owner_id: str, metadata: UploadMetadata, payload: bytes) -> StoredFile:
        """Store payload for owner_id under a fresh id and creation time.

        Raises ValueError if the declared size does not match the payload.
        """
        if metadata.file_size != len(payload):
            raise ValueError(
                f"Declared size {metadata.file_size} does not match payload size {len(payload)}"
            )
        record = StoredFile(
            user_id=owner_id,
            file_name=metadata.file_name or metadata.original_name,
            original_name=metadata.original_name,
            mime_type=metadata.mime_type or "application/octet-stream",
            file_size=len(payload),
            file_data=base64.b64encode(payload).decode("ascii"),
            uploaded_at=datetime.now(timezone.utc),
        )
        await self.store.insert(record)
        log.info("Stored file id=%s owner=%s size=%d", record.id, owner_id, record.file_size)
        return record

    async def delete(self, file_id: str, owner_id: str) -> bool:
        """Delete the owner's file. False when nothing was removed (missing or not theirs)."""
        removed = await self.store.delete_by_id_and_owner(file_id, owner_id)
        if removed:
            log.info("Deleted file id=%s owner=%s", file_id, owner_id)
        return removed > 0


def get_file_gateway(store: Annotated[FileStore, Depends(get_file_store)]) -> FileGateway:
    """FastAPI dependency: FileGateway on the request's session."""
    return FileGateway(store)
