"""Stored file SQLAlchemy model and Pydantic schemas."""

import uuid
from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict
from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredFile(Base):
    """An uploaded file. Payload is base64 text in file_data; every row has exactly one owner."""

    __tablename__ = "files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    original_name: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    # Deferred: listings never load payloads; owner-scoped fetch undefers it
    file_data: Mapped[str] = mapped_column(Text, nullable=False, deferred=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )


class FileMetadata(BaseModel):
    """File as listed by the API (no payload)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    file_name: str
    original_name: str
    mime_type: str
    file_size: int
    uploaded_at: datetime
    preview: str = "none"


class FileListResponse(BaseModel):
    files: List[FileMetadata]
