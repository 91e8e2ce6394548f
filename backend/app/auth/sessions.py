"""Server-side sessions: opaque session id -> user id, with expiry."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

from fastapi import Depends, Response
from sqlalchemy import DateTime, ForeignKey, String, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from app.config import Settings, get_settings
from app.db.session import Base, get_db

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class UserSession(Base):
    """One row per logged-in browser session."""

    __tablename__ = "sessions"

    sid: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SessionStore:
    """Session rows, bound to one db session. Caller commits."""

    def __init__(self, session: AsyncSession, max_age: timedelta) -> None:
        self.session = session
        self.max_age = max_age

    async def create(self, user_id: str) -> str:
        """Start a session for user_id and return its id."""
        sid = secrets.token_urlsafe(32)
        self.session.add(UserSession(sid=sid, user_id=user_id, expires_at=_utcnow() + self.max_age))
        await self.session.flush()
        return sid

    async def resolve(self, sid: Optional[str]) -> Optional[str]:
        """Return the user id for a live session, else None. Expired rows are removed."""
        if not sid:
            return None
        row = await self.session.get(UserSession, sid)
        if row is None:
            return None
        if _as_utc(row.expires_at) <= _utcnow():
            log.debug("Session expired for user id=%s", row.user_id)
            await self.session.delete(row)
            await self.session.flush()
            return None
        return row.user_id

    async def destroy(self, sid: Optional[str]) -> None:
        if not sid:
            return
        await self.session.execute(delete(UserSession).where(UserSession.sid == sid))

    async def purge_expired(self) -> int:
        """Delete all expired sessions; return how many were removed."""
        result = await self.session.execute(
            delete(UserSession)
            .where(UserSession.expires_at <= _utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


def get_session_store(session: Annotated[AsyncSession, Depends(get_db)]) -> SessionStore:
    """FastAPI dependency: SessionStore with the configured lifetime."""
    settings = get_settings()
    return SessionStore(session, timedelta(minutes=settings.session_max_age_minutes))


def set_session_cookie(response: Response, sid: str, settings: Settings) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        sid,
        max_age=settings.session_max_age_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.session_cookie_name)
