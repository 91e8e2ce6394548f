"""File store: owner-scoped reads and writes on the files table.

Every read or delete filters on id and owner in the same statement; there is no
unscoped lookup by id.
"""

from typing import Annotated, List, Optional

from fastapi import Depends
from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from app.db.session import get_db
from app.files.models import StoredFile


class FileStore:
    """File rows, bound to one session. Caller commits."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, record: StoredFile) -> StoredFile:
        self.session.add(record)
        await self.session.flush()
        return record

    async def list_by_owner(self, owner_id: str) -> List[StoredFile]:
        """Owner's files, newest first. file_data stays unloaded."""
        result = await self.session.execute(
            select(StoredFile)
            .where(StoredFile.user_id == owner_id)
            .order_by(StoredFile.uploaded_at.desc(), StoredFile.id)
        )
        return list(result.scalars().all())

    async def get_by_id_and_owner(self, file_id: str, owner_id: str) -> Optional[StoredFile]:
        result = await self.session.execute(
            select(StoredFile)
            .options(undefer(StoredFile.file_data))
            .where(and_(StoredFile.id == file_id, StoredFile.user_id == owner_id))
        )
        return result.scalar_one_or_none()

    async def delete_by_id_and_owner(self, file_id: str, owner_id: str) -> int:
        """Delete the owner's file; return rows removed (0 or 1)."""
        result = await self.session.execute(
            delete(StoredFile).where(
                and_(StoredFile.id == file_id, StoredFile.user_id == owner_id)
            )
        )
        return result.rowcount or 0


def get_file_store(session: Annotated[AsyncSession, Depends(get_db)]) -> FileStore:
    """FastAPI dependency: FileStore on the request's session."""
    return FileStore(session)
