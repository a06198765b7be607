"""SQLModel table definitions for the helpdesk data layer."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserTable(SQLModel, table=True):
    """User accounts with a single static role."""

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(sa_column=Column(String(150), nullable=False, unique=True))
    password: str = Field(sa_column=Column(String(255), nullable=False))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    role: str = Field(default="customer", sa_column=Column(String(20), nullable=False, default="customer"))
    avatar_url: str | None = Field(default=None, sa_column=Column(Text, nullable=True))


class TicketTable(SQLModel, table=True):
    __tablename__ = "tickets"

    id: int | None = Field(default=None, primary_key=True)
    subject: str = Field(sa_column=Column(String(255), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(default="open", sa_column=Column(String(20), nullable=False, index=True))
    priority: str = Field(default="medium", sa_column=Column(String(20), nullable=False, index=True))
    category: str = Field(sa_column=Column(String(100), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    created_by_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id"), nullable=False, index=True))
    assigned_to_id: int | None = Field(
        default=None, sa_column=Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    )


class CommentTable(SQLModel, table=True):
    """Comments are immutable once written."""

    __tablename__ = "comments"

    id: int | None = Field(default=None, primary_key=True)
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    ticket_id: int = Field(sa_column=Column(Integer, ForeignKey("tickets.id"), nullable=False, index=True))
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id"), nullable=False))


class ActivityTable(SQLModel, table=True):
    """Append-only activity trail."""

    __tablename__ = "activities"

    id: int | None = Field(default=None, primary_key=True)
    type: str = Field(sa_column=Column(String(20), nullable=False))
    ticket_id: int | None = Field(
        default=None, sa_column=Column(Integer, ForeignKey("tickets.id"), nullable=True, index=True)
    )
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id"), nullable=False))
    message: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
