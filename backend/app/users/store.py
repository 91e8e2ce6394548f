"""Identity store: user lookups and inserts. Lookups return None when absent."""

from typing import Annotated, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.users.models import User


class UserStore:
    """User rows, bound to one session. Caller commits."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def create(self, **fields) -> User:
        """Insert a user and flush so id and created_at are populated.

        Raises sqlalchemy IntegrityError when username or email is taken.
        """
        user = User(**fields)
        self.session.add(user)
        await self.session.flush()
        return user

    async def update_password(self, user: User, encoded: str) -> None:
        user.password = encoded
        await self.session.flush()


def get_user_store(session: Annotated[AsyncSession, Depends(get_db)]) -> UserStore:
    """FastAPI dependency: UserStore on the request's session."""
    return UserStore(session)
