from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Sequence

from helpdesk.security.access import Role

from .state import TicketPriority, TicketStatus


class ActivityType(str, Enum):
    """Kinds of entries in the activity trail."""

    CREATED = "created"
    UPDATED = "updated"
    COMMENTED = "commented"
    ASSIGNED = "assigned"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REOPENED = "reopened"
    ESCALATED = "escalated"


@dataclass(slots=True)
class User:
    """Account able to sign in; ``password`` is never serialized."""

    id: int
    username: str
    password: str
    name: str
    email: str
    role: Role
    avatar_url: str | None = None


@dataclass(slots=True)
class Ticket:
    """Support request tracked through its status and priority lifecycle."""

    id: int
    subject: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    category: str
    created_at: datetime
    updated_at: datetime
    created_by_id: int
    assigned_to_id: int | None = None

    @property
    def display_id(self) -> str:
        return display_ticket_id(self.id)


@dataclass(slots=True)
class Comment:
    id: int
    content: str
    created_at: datetime
    ticket_id: int
    user_id: int


@dataclass(slots=True)
class Activity:
    """Append-only audit entry."""

    id: int
    type: ActivityType
    user_id: int
    message: str
    created_at: datetime
    ticket_id: int | None = None


@dataclass(slots=True)
class NewUser:
    username: str
    password: str
    name: str
    email: str
    role: Role = Role.CUSTOMER
    avatar_url: str | None = None


@dataclass(slots=True)
class NewTicket:
    subject: str
    description: str
    category: str
    created_by_id: int
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
    assigned_to_id: int | None = None


@dataclass(slots=True)
class NewComment:
    content: str
    ticket_id: int
    user_id: int


@dataclass(slots=True)
class NewActivity:
    type: ActivityType
    user_id: int
    message: str
    ticket_id: int | None = None


@dataclass(slots=True)
class TicketPage:
    tickets: Sequence[Ticket]
    total: int


@dataclass(slots=True)
class TicketStats:
    total: int = 0
    open_count: int = 0
    in_progress_count: int = 0
    resolved_count: int = 0
    closed_count: int = 0
    high_priority_count: int = 0
    resolved_today: int = 0


@dataclass(slots=True)
class EnhancedTicket:
    """Ticket joined with the users it references, for display."""

    ticket: Ticket
    created_by: User | None
    assigned_to: User | None = None
    comment_count: int = 0


@dataclass(slots=True)
class TicketDetail:
    ticket: Ticket
    created_by: User
    assigned_to: User | None = None
    comments: Sequence[Comment] = field(default_factory=list)


@dataclass(slots=True)
class EnhancedComment:
    comment: Comment
    user: User | None


@dataclass(slots=True)
class EnhancedActivity:
    activity: Activity
    user: User | None


def display_ticket_id(ticket_id: int) -> str:
    return f"#TK-{ticket_id}"
