"""Relational implementation of the entity store (SQLModel on async SQLAlchemy)."""

from __future__ import annotations

from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping, Sequence

from sqlalchemy import func, or_
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from helpdesk.db.models import ActivityTable, CommentTable, TicketTable, UserTable
from helpdesk.security.access import Role

from .models import (
    Activity,
    ActivityType,
    Comment,
    NewActivity,
    NewComment,
    NewTicket,
    NewUser,
    Ticket,
    TicketPage,
    User,
)
from .repository import check_ticket_changes, next_timestamp, page_bounds, utcnow
from .state import TicketPriority, TicketStatus

_active_session: ContextVar[AsyncSession | None] = ContextVar("helpdesk_active_session", default=None)


def to_async_dsn(dsn: str) -> str:
    """Ensure a PostgreSQL DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn[len("postgres://") :]
    return dsn


def like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqlStore:
    """Store backed by relational tables.

    Each call runs in its own transaction unless it happens inside
    ``transaction()``, in which case all writes share one session and commit
    together.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if _active_session.get() is not None:
            yield
            return
        async with self._session_factory() as session:
            async with session.begin():
                token = _active_session.set(session)
                try:
                    yield
                finally:
                    _active_session.reset(token)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        current = _active_session.get()
        if current is not None:
            yield current
            return
        async with self._session_factory() as session:
            async with session.begin():
                yield session

    async def _all(self, statement: Any) -> list[Any]:
        async with self._session() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def _add(self, row: SQLModel) -> Any:
        async with self._session() as session:
            session.add(row)
            await session.flush()
            return row

    # Users

    async def get_user(self, user_id: int) -> User | None:
        async with self._session() as session:
            row = await session.get(UserTable, user_id)
            return None if row is None else _row_to_user(row)

    async def get_user_by_username(self, username: str) -> User | None:
        rows = await self._all(select(UserTable).where(UserTable.username == username))
        return _row_to_user(rows[0]) if rows else None

    async def get_user_by_email(self, email: str) -> User | None:
        rows = await self._all(select(UserTable).where(UserTable.email == email))
        return _row_to_user(rows[0]) if rows else None

    async def create_user(self, user: NewUser) -> User:
        row = await self._add(
            UserTable(
                username=user.username,
                password=user.password,
                name=user.name,
                email=user.email,
                role=user.role.value,
                avatar_url=user.avatar_url,
            )
        )
        return _row_to_user(row)

    async def list_users(self) -> Sequence[User]:
        rows = await self._all(select(UserTable).order_by(UserTable.id))
        return [_row_to_user(row) for row in rows]

    async def list_users_by_role(self, role: Role) -> Sequence[User]:
        rows = await self._all(select(UserTable).where(UserTable.role == role.value).order_by(UserTable.id))
        return [_row_to_user(row) for row in rows]

    # Tickets

    async def create_ticket(self, ticket: NewTicket) -> Ticket:
        now = utcnow()
        row = await self._add(
            TicketTable(
                subject=ticket.subject,
                description=ticket.description,
                status=ticket.status.value,
                priority=ticket.priority.value,
                category=ticket.category,
                created_at=now,
                updated_at=now,
                created_by_id=ticket.created_by_id,
                assigned_to_id=ticket.assigned_to_id,
            )
        )
        return _row_to_ticket(row)

    async def get_ticket(self, ticket_id: int) -> Ticket | None:
        async with self._session() as session:
            row = await session.get(TicketTable, ticket_id)
            return None if row is None else _row_to_ticket(row)

    async def get_ticket_for_update(self, ticket_id: int) -> Ticket | None:
        rows = await self._all(select(TicketTable).where(TicketTable.id == ticket_id).with_for_update())
        return _row_to_ticket(rows[0]) if rows else None

    async def update_ticket(self, ticket_id: int, changes: Mapping[str, Any]) -> Ticket | None:
        check_ticket_changes(changes)
        async with self._session() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            for name, value in changes.items():
                setattr(row, name, value.value if isinstance(value, (TicketStatus, TicketPriority)) else value)
            row.updated_at = next_timestamp(_ensure_datetime(row.updated_at))
            await session.flush()
            return _row_to_ticket(row)

    async def list_tickets(self) -> Sequence[Ticket]:
        return await self._tickets_where()

    async def list_tickets_by_status(self, status: TicketStatus) -> Sequence[Ticket]:
        return await self._tickets_where(TicketTable.status == status.value)

    async def list_tickets_by_priority(self, priority: TicketPriority) -> Sequence[Ticket]:
        return await self._tickets_where(TicketTable.priority == priority.value)

    async def list_tickets_by_assignee(self, user_id: int) -> Sequence[Ticket]:
        return await self._tickets_where(TicketTable.assigned_to_id == user_id)

    async def list_tickets_by_creator(self, user_id: int) -> Sequence[Ticket]:
        return await self._tickets_where(TicketTable.created_by_id == user_id)

    async def paginate_tickets(self, page: int, limit: int) -> TicketPage:
        async with self._session() as session:
            total = int((await session.execute(sa_select(func.count()).select_from(TicketTable))).scalar_one())
            bounds = page_bounds(page, limit)
            if bounds is None:
                return TicketPage(tickets=[], total=total)
            start, _ = bounds
            result = await session.execute(
                select(TicketTable)
                .order_by(TicketTable.created_at.desc(), TicketTable.id.desc())
                .offset(start)
                .limit(limit)
            )
            return TicketPage(tickets=[_row_to_ticket(row) for row in result.scalars().all()], total=total)

    async def search_tickets(self, query: str) -> Sequence[Ticket]:
        pattern = like_pattern(query)
        return await self._tickets_where(
            or_(
                TicketTable.subject.ilike(pattern, escape="\\"),
                TicketTable.description.ilike(pattern, escape="\\"),
                TicketTable.category.ilike(pattern, escape="\\"),
            )
        )

    async def _tickets_where(self, *criteria: Any) -> list[Ticket]:
        statement = select(TicketTable).where(*criteria).order_by(TicketTable.id)
        return [_row_to_ticket(row) for row in await self._all(statement)]

    # Comments

    async def create_comment(self, comment: NewComment) -> Comment:
        row = await self._add(
            CommentTable(
                content=comment.content,
                created_at=utcnow(),
                ticket_id=comment.ticket_id,
                user_id=comment.user_id,
            )
        )
        return _row_to_comment(row)

    async def list_comments(self, ticket_id: int) -> Sequence[Comment]:
        rows = await self._all(
            select(CommentTable)
            .where(CommentTable.ticket_id == ticket_id)
            .order_by(CommentTable.created_at.asc(), CommentTable.id.asc())
        )
        return [_row_to_comment(row) for row in rows]

    async def count_comments(self, ticket_id: int) -> int:
        async with self._session() as session:
            result = await session.execute(
                sa_select(func.count()).select_from(CommentTable).where(CommentTable.ticket_id == ticket_id)
            )
            return int(result.scalar_one())

    # Activities

    async def create_activity(self, activity: NewActivity) -> Activity:
        row = await self._add(
            ActivityTable(
                type=activity.type.value,
                ticket_id=activity.ticket_id,
                user_id=activity.user_id,
                message=activity.message,
                created_at=utcnow(),
            )
        )
        return _row_to_activity(row)

    async def list_ticket_activities(self, ticket_id: int) -> Sequence[Activity]:
        rows = await self._all(
            select(ActivityTable)
            .where(ActivityTable.ticket_id == ticket_id)
            .order_by(ActivityTable.created_at.desc(), ActivityTable.id.desc())
        )
        return [_row_to_activity(row) for row in rows]

    async def recent_activities(self, limit: int) -> Sequence[Activity]:
        if limit < 1:
            return []
        rows = await self._all(
            select(ActivityTable).order_by(ActivityTable.created_at.desc(), ActivityTable.id.desc()).limit(limit)
        )
        return [_row_to_activity(row) for row in rows]


def _row_to_user(row: UserTable) -> User:
    return User(
        id=int(row.id),
        username=row.username,
        password=row.password,
        name=row.name,
        email=row.email,
        role=Role(row.role),
        avatar_url=row.avatar_url,
    )


def _row_to_ticket(row: TicketTable) -> Ticket:
    return Ticket(
        id=int(row.id),
        subject=row.subject,
        description=row.description,
        status=TicketStatus(row.status),
        priority=TicketPriority(row.priority),
        category=row.category,
        created_at=_ensure_datetime(row.created_at),
        updated_at=_ensure_datetime(row.updated_at),
        created_by_id=row.created_by_id,
        assigned_to_id=row.assigned_to_id,
    )


def _row_to_comment(row: CommentTable) -> Comment:
    return Comment(
        id=int(row.id),
        content=row.content,
        created_at=_ensure_datetime(row.created_at),
        ticket_id=row.ticket_id,
        user_id=row.user_id,
    )


def _row_to_activity(row: ActivityTable) -> Activity:
    return Activity(
        id=int(row.id),
        type=ActivityType(row.type),
        user_id=row.user_id,
        message=row.message,
        created_at=_ensure_datetime(row.created_at),
        ticket_id=row.ticket_id,
    )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
