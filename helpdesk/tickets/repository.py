"""Entity store contract and its in-memory implementation."""

from __future__ import annotations

import itertools
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Iterable, Mapping, Protocol, Sequence

from helpdesk.security.access import Role

from .models import (
    Activity,
    Comment,
    NewActivity,
    NewComment,
    NewTicket,
    NewUser,
    Ticket,
    TicketPage,
    User,
)
from .state import TicketPriority, TicketStatus

MUTABLE_TICKET_FIELDS: frozenset[str] = frozenset(
    {"subject", "description", "status", "priority", "category", "assigned_to_id"}
)

_TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_timestamp(previous: datetime | None) -> datetime:
    """Current time, nudged forward so it is strictly after ``previous``."""

    now = utcnow()
    if previous is not None and now <= previous:
        return previous + _TICK
    return now


def check_ticket_changes(changes: Mapping[str, Any]) -> None:
    unknown = set(changes) - MUTABLE_TICKET_FIELDS
    if unknown:
        raise ValueError(f"Unsupported ticket fields: {', '.join(sorted(unknown))}")


def newest_first(tickets: Iterable[Ticket]) -> list[Ticket]:
    return sorted(tickets, key=lambda ticket: (ticket.created_at, ticket.id), reverse=True)


def page_bounds(page: int, limit: int) -> tuple[int, int] | None:
    if page < 1 or limit < 1:
        return None
    start = (page - 1) * limit
    return start, start + limit


def matches_query(ticket: Ticket, query: str) -> bool:
    needle = query.lower()
    return (
        needle in ticket.subject.lower()
        or needle in ticket.description.lower()
        or needle in ticket.category.lower()
    )


class HelpdeskStore(Protocol):
    """Storage contract shared by the in-memory and relational stores.

    Reads return ``None`` or empty sequences for missing data and never raise.
    ``update_ticket`` merges the given fields, always refreshes ``updated_at`` and
    returns ``None`` when the ticket does not exist.
    """

    def transaction(self) -> Any:
        """Async context manager grouping several writes."""

    async def get_user(self, user_id: int) -> User | None: ...

    async def get_user_by_username(self, username: str) -> User | None: ...

    async def get_user_by_email(self, email: str) -> User | None: ...

    async def create_user(self, user: NewUser) -> User: ...

    async def list_users(self) -> Sequence[User]: ...

    async def list_users_by_role(self, role: Role) -> Sequence[User]: ...

    async def create_ticket(self, ticket: NewTicket) -> Ticket: ...

    async def get_ticket(self, ticket_id: int) -> Ticket | None: ...

    async def get_ticket_for_update(self, ticket_id: int) -> Ticket | None:
        """Read a ticket and hold it until the surrounding transaction ends."""

    async def update_ticket(self, ticket_id: int, changes: Mapping[str, Any]) -> Ticket | None: ...

    async def list_tickets(self) -> Sequence[Ticket]: ...

    async def list_tickets_by_status(self, status: TicketStatus) -> Sequence[Ticket]: ...

    async def list_tickets_by_priority(self, priority: TicketPriority) -> Sequence[Ticket]: ...

    async def list_tickets_by_assignee(self, user_id: int) -> Sequence[Ticket]: ...

    async def list_tickets_by_creator(self, user_id: int) -> Sequence[Ticket]: ...

    async def paginate_tickets(self, page: int, limit: int) -> TicketPage: ...

    async def search_tickets(self, query: str) -> Sequence[Ticket]: ...

    async def create_comment(self, comment: NewComment) -> Comment: ...

    async def list_comments(self, ticket_id: int) -> Sequence[Comment]: ...

    async def count_comments(self, ticket_id: int) -> int: ...

    async def create_activity(self, activity: NewActivity) -> Activity: ...

    async def list_ticket_activities(self, ticket_id: int) -> Sequence[Activity]: ...

    async def recent_activities(self, limit: int) -> Sequence[Activity]: ...


class InMemoryStore:
    """Dictionary backed store used for development and tests.

    Stored records are replaced, never mutated, so snapshots handed out earlier
    keep their values.
    """

    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._tickets: dict[int, Ticket] = {}
        self._comments: dict[int, Comment] = {}
        self._activities: dict[int, Activity] = {}
        self._user_ids = itertools.count(1)
        self._ticket_ids = itertools.count(1)
        self._comment_ids = itertools.count(1)
        self._activity_ids = itertools.count(1)
        self._last_stamp: datetime | None = None

    def _stamp(self) -> datetime:
        self._last_stamp = next_timestamp(self._last_stamp)
        return self._last_stamp

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        yield

    # Users

    async def get_user(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> User | None:
        return next((user for user in self._users.values() if user.username == username), None)

    async def get_user_by_email(self, email: str) -> User | None:
        return next((user for user in self._users.values() if user.email == email), None)

    async def create_user(self, user: NewUser) -> User:
        record = User(
            id=next(self._user_ids),
            username=user.username,
            password=user.password,
            name=user.name,
            email=user.email,
            role=user.role,
            avatar_url=user.avatar_url,
        )
        self._users[record.id] = record
        return record

    async def list_users(self) -> Sequence[User]:
        return list(self._users.values())

    async def list_users_by_role(self, role: Role) -> Sequence[User]:
        return [user for user in self._users.values() if user.role == role]

    # Tickets

    async def create_ticket(self, ticket: NewTicket) -> Ticket:
        now = self._stamp()
        record = Ticket(
            id=next(self._ticket_ids),
            subject=ticket.subject,
            description=ticket.description,
            status=ticket.status,
            priority=ticket.priority,
            category=ticket.category,
            created_at=now,
            updated_at=now,
            created_by_id=ticket.created_by_id,
            assigned_to_id=ticket.assigned_to_id,
        )
        self._tickets[record.id] = record
        return record

    async def get_ticket(self, ticket_id: int) -> Ticket | None:
        return self._tickets.get(ticket_id)

    async def get_ticket_for_update(self, ticket_id: int) -> Ticket | None:
        return self._tickets.get(ticket_id)

    async def update_ticket(self, ticket_id: int, changes: Mapping[str, Any]) -> Ticket | None:
        check_ticket_changes(changes)
        current = self._tickets.get(ticket_id)
        if current is None:
            return None
        updated = replace(current, **dict(changes), updated_at=next_timestamp(current.updated_at))
        self._tickets[ticket_id] = updated
        return updated

    async def list_tickets(self) -> Sequence[Ticket]:
        return list(self._tickets.values())

    async def list_tickets_by_status(self, status: TicketStatus) -> Sequence[Ticket]:
        return [ticket for ticket in self._tickets.values() if ticket.status == status]

    async def list_tickets_by_priority(self, priority: TicketPriority) -> Sequence[Ticket]:
        return [ticket for ticket in self._tickets.values() if ticket.priority == priority]

    async def list_tickets_by_assignee(self, user_id: int) -> Sequence[Ticket]:
        return [ticket for ticket in self._tickets.values() if ticket.assigned_to_id == user_id]

    async def list_tickets_by_creator(self, user_id: int) -> Sequence[Ticket]:
        return [ticket for ticket in self._tickets.values() if ticket.created_by_id == user_id]

    async def paginate_tickets(self, page: int, limit: int) -> TicketPage:
        total = len(self._tickets)
        bounds = page_bounds(page, limit)
        if bounds is None:
            return TicketPage(tickets=[], total=total)
        start, end = bounds
        return TicketPage(tickets=newest_first(self._tickets.values())[start:end], total=total)

    async def search_tickets(self, query: str) -> Sequence[Ticket]:
        return [ticket for ticket in self._tickets.values() if matches_query(ticket, query)]

    # Comments

    async def create_comment(self, comment: NewComment) -> Comment:
        record = Comment(
            id=next(self._comment_ids),
            content=comment.content,
            created_at=self._stamp(),
            ticket_id=comment.ticket_id,
            user_id=comment.user_id,
        )
        self._comments[record.id] = record
        return record

    async def list_comments(self, ticket_id: int) -> Sequence[Comment]:
        comments = [comment for comment in self._comments.values() if comment.ticket_id == ticket_id]
        return sorted(comments, key=lambda comment: (comment.created_at, comment.id))

    async def count_comments(self, ticket_id: int) -> int:
        return sum(1 for comment in self._comments.values() if comment.ticket_id == ticket_id)

    # Activities

    async def create_activity(self, activity: NewActivity) -> Activity:
        record = Activity(
            id=next(self._activity_ids),
            type=activity.type,
            user_id=activity.user_id,
            message=activity.message,
            created_at=self._stamp(),
            ticket_id=activity.ticket_id,
        )
        self._activities[record.id] = record
        return record

    async def list_ticket_activities(self, ticket_id: int) -> Sequence[Activity]:
        activities = [item for item in self._activities.values() if item.ticket_id == ticket_id]
        return _latest_first(activities)

    async def recent_activities(self, limit: int) -> Sequence[Activity]:
        if limit < 1:
            return []
        return _latest_first(self._activities.values())[:limit]


def _latest_first(activities: Iterable[Activity]) -> list[Activity]:
    return sorted(activities, key=lambda activity: (activity.created_at, activity.id), reverse=True)
