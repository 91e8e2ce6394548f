"""User SQLAlchemy model and Pydantic schemas."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """User table. Username is the login identifier; id is what sessions and files reference."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    username: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    # Encoded credential "<hex digest>.<hex salt>"
    password: Mapped[str] = mapped_column(Text, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )


# Pydantic schemas for API
class UserRegister(BaseModel):
    """Registration request body."""

    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=1)
    email: EmailStr
    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)


class UserResponse(BaseModel):
    """User as returned by API (no password)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: datetime


class UserLogin(BaseModel):
    """Login request body. Fields are optional so missing ones get a 400, not a 422."""

    username: Optional[str] = None
    password: Optional[str] = None


class ChangePassword(BaseModel):
    """Request body for changing own password."""

    current_password: str
    new_password: str
