"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Relationships, constraints, and indexes defined here.
Alembic auto-generates migrations by comparing these models to the actual DB.

Key concepts:
- Integer primary keys; the session token's subject is str(user.id)
- Soft delete on threads: deleted_at is set instead of removing the row,
  and the row keeps its (user_id, thread_id) slot so it can be restored
- Portable column types only, so the same models run on PostgreSQL
  (asyncpg) and on SQLite (aiosqlite, used by the test suite)
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """An account. Owns threads; authenticates with email + password.

    Learn: password_hash never leaves the service layer — the API read
    schemas simply don't declare it.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    threads: Mapped[list["Thread"]] = relationship(back_populates="owner")


class Thread(Base):
    """A thread record in a user's inventory.

    Learn: thread_id is the user's own identifier for the thread (e.g. a
    manufacturer reference), unique per owner. id is our row id.
    """

    __tablename__ = "threads"
    __table_args__ = (
        UniqueConstraint("user_id", "thread_id", name="uq_threads_user_thread"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    thread_id: Mapped[str] = mapped_column(String(100), nullable=False)
    is_e: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_c: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_s: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    brand: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    thread_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    owner: Mapped["User"] = relationship(back_populates="threads")


class PasswordResetToken(Base):
    """Single-use password reset token.

    Learn: Only the SHA-256 digest of the token is stored (same approach
    as API key storage) — a leaked table can't be replayed. The raw token
    lives only in the emailed link.
    """

    __tablename__ = "password_reset_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped["User"] = relationship()
