from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from helpdesk.core.errors import ForbiddenError, NotFoundError, ValidationError
from helpdesk.core.logging import get_tracer
from helpdesk.security.access import AccessGate, Action, AuthContext, Role

from .activity import ActivityRecorder, TicketChange
from .models import (
    Comment,
    EnhancedActivity,
    EnhancedComment,
    EnhancedTicket,
    NewComment,
    NewTicket,
    NewUser,
    Ticket,
    TicketDetail,
    TicketStats,
    User,
)
from .repository import MUTABLE_TICKET_FIELDS, HelpdeskStore
from .state import TicketPriority, TicketStateMachine, TicketStatus
from .stats import compute_ticket_stats

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

_TEXT_FIELDS = ("subject", "description", "category")


def _require_text(value: Any, field_name: str, *, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {what} data: {field_name} is required")
    return value


def _coerce_enum(enum_type: type, value: Any, field_name: str) -> Any:
    try:
        return enum_type(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid update data: unknown {field_name} {value!r}") from exc


class TicketService:
    """High level orchestration of tickets, comments, users and the activity trail.

    Every public call takes an explicit ``AuthContext`` and checks it against the
    access gate before touching the store.
    """

    def __init__(
        self,
        store: HelpdeskStore,
        *,
        recorder: ActivityRecorder | None = None,
        gate: AccessGate | None = None,
    ) -> None:
        self._store = store
        self._recorder = recorder or ActivityRecorder(store)
        self._gate = gate or AccessGate()

    @property
    def store(self) -> HelpdeskStore:
        return self._store

    # Authentication

    async def authenticate(self, username: str, password: str) -> User:
        user = await self._store.get_user_by_username(username)
        if user is None:
            logger.warning("Login failed for unknown user %r", username)
            raise ValidationError("Incorrect username.")
        # Plaintext comparison; hardening password storage is out of scope.
        if user.password != password:
            logger.warning("Login failed for user %r: wrong password", username)
            raise ValidationError("Incorrect password.")
        logger.info("User %s signed in", user.username)
        return user

    async def resolve_session(self, user_id: Any) -> tuple[User, AuthContext] | None:
        """Map a session's user id back to a live user, if there still is one."""

        if not isinstance(user_id, int):
            return None
        user = await self._store.get_user(user_id)
        if user is None:
            return None
        return user, AuthContext(user_id=user.id, role=user.role)

    # Users

    async def create_user(self, context: AuthContext, new_user: NewUser) -> User:
        self._gate.ensure(context, Action.CREATE_USER)
        for field_name in ("username", "password", "name", "email"):
            _require_text(getattr(new_user, field_name), field_name, what="user")
        if await self._store.get_user_by_username(new_user.username) is not None:
            raise ValidationError("Invalid user data: username already taken")
        if await self._store.get_user_by_email(new_user.email) is not None:
            raise ValidationError("Invalid user data: email already registered")
        user = await self._store.create_user(new_user)
        logger.info("User %s (%s) created by %s", user.username, user.role.value, context.user_id)
        return user

    async def list_users(self, context: AuthContext) -> Sequence[User]:
        self._gate.ensure(context, Action.LIST_USERS)
        return await self._store.list_users()

    async def list_agents(self, context: AuthContext) -> Sequence[User]:
        self._gate.ensure(context, Action.LIST_AGENTS)
        return await self._store.list_users_by_role(Role.AGENT)

    # Ticket mutations

    async def create_ticket(
        self,
        context: AuthContext,
        *,
        subject: str,
        description: str,
        category: str,
        priority: TicketPriority = TicketPriority.MEDIUM,
        assigned_to_id: int | None = None,
    ) -> Ticket:
        self._gate.ensure(context, Action.CREATE_TICKET)
        for field_name, value in zip(_TEXT_FIELDS, (subject, description, category)):
            _require_text(value, field_name, what="ticket")
        priority = _coerce_enum(TicketPriority, priority, "priority")
        if assigned_to_id is not None:
            await self._require_user(assigned_to_id)

        with tracer.start_as_current_span("tickets.create"):
            async with self._store.transaction():
                ticket = await self._store.create_ticket(
                    NewTicket(
                        subject=subject,
                        description=description,
                        category=category,
                        priority=priority,
                        status=TicketStateMachine.initial_state(),
                        created_by_id=context.user_id,
                        assigned_to_id=assigned_to_id,
                    )
                )
                await self._recorder.ticket_created(ticket, actor_id=context.user_id)
        logger.info("Ticket %s created by user %s", ticket.display_id, context.user_id)
        return ticket

    async def update_ticket(self, context: AuthContext, ticket_id: int, changes: Mapping[str, Any]) -> Ticket:
        with tracer.start_as_current_span("tickets.update"):
            async with self._store.transaction():
                # The snapshot is read under the row lock so concurrent updates diff in order.
                before = await self._require_ticket(ticket_id, for_update=True)
                if not self._gate.can_update_ticket(context, created_by_id=before.created_by_id):
                    logger.warning("User %s may not update ticket %s", context.user_id, before.display_id)
                    raise ForbiddenError("Forbidden")

                cleaned = self._clean_changes(changes)
                assignee: User | None = None
                if cleaned.get("assigned_to_id") is not None:
                    assignee = await self._require_user(cleaned["assigned_to_id"])

                after = await self._store.update_ticket(ticket_id, cleaned)
                if after is None:
                    raise NotFoundError("Ticket not found")
                await self._recorder.ticket_changed(
                    TicketChange(before=before, after=after, assignee=assignee),
                    actor_id=context.user_id,
                )
        return after

    async def add_comment(self, context: AuthContext, ticket_id: int, content: str) -> Comment:
        self._gate.ensure(context, Action.COMMENT)

        with tracer.start_as_current_span("tickets.comment"):
            async with self._store.transaction():
                ticket = await self._require_ticket(ticket_id, for_update=True)
                _require_text(content, "content", what="comment")
                creator = await self._store.get_user(ticket.created_by_id)
                comment = await self._store.create_comment(
                    NewComment(content=content, ticket_id=ticket.id, user_id=context.user_id)
                )
                await self._recorder.comment_added(ticket, creator=creator, actor_id=context.user_id)
                # No field changes: only refreshes updated_at.
                await self._store.update_ticket(ticket.id, {})
        return comment

    def _clean_changes(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(changes) - MUTABLE_TICKET_FIELDS
        if unknown:
            raise ValidationError(f"Invalid update data: unsupported fields {', '.join(sorted(unknown))}")
        cleaned: dict[str, Any] = {}
        for field_name, value in changes.items():
            if field_name in _TEXT_FIELDS:
                cleaned[field_name] = _require_text(value, field_name, what="update")
            elif field_name == "status":
                cleaned[field_name] = _coerce_enum(TicketStatus, value, field_name)
            elif field_name == "priority":
                cleaned[field_name] = _coerce_enum(TicketPriority, value, field_name)
            elif field_name == "assigned_to_id":
                if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                    raise ValidationError("Invalid update data: assignedToId must be an integer")
                cleaned[field_name] = value
        return cleaned

    # Ticket reads

    async def list_tickets_page(
        self, context: AuthContext, *, page: int, limit: int
    ) -> tuple[list[EnhancedTicket], int]:
        self._gate.ensure(context, Action.READ_TICKETS)
        if page < 1 or limit < 1:
            raise ValidationError("Invalid pagination: page and limit must be positive")
        result = await self._store.paginate_tickets(page, limit)
        return await self._enhance_tickets(result.tickets), result.total

    async def search_tickets(self, context: AuthContext, query: str) -> Sequence[Ticket]:
        self._gate.ensure(context, Action.READ_TICKETS)
        if not query:
            raise ValidationError("Search query is required")
        return await self._store.search_tickets(query)

    async def tickets_by_status(self, context: AuthContext, status: TicketStatus) -> Sequence[Ticket]:
        self._gate.ensure(context, Action.READ_TICKETS)
        return await self._store.list_tickets_by_status(status)

    async def tickets_by_priority(self, context: AuthContext, priority: TicketPriority) -> Sequence[Ticket]:
        self._gate.ensure(context, Action.READ_TICKETS)
        return await self._store.list_tickets_by_priority(priority)

    async def tickets_assigned_to(self, context: AuthContext, user_id: int) -> Sequence[Ticket]:
        self._gate.ensure(context, Action.READ_TICKETS)
        return await self._store.list_tickets_by_assignee(user_id)

    async def tickets_created_by(self, context: AuthContext, user_id: int) -> Sequence[Ticket]:
        self._gate.ensure(context, Action.READ_TICKETS)
        return await self._store.list_tickets_by_creator(user_id)

    async def get_ticket_detail(self, context: AuthContext, ticket_id: int) -> TicketDetail:
        self._gate.ensure(context, Action.READ_TICKETS)
        ticket = await self._require_ticket(ticket_id)
        created_by = await self._store.get_user(ticket.created_by_id)
        if created_by is None:
            raise NotFoundError("Ticket not found")
        assigned_to = await self._store.get_user(ticket.assigned_to_id) if ticket.assigned_to_id else None
        comments = await self._store.list_comments(ticket.id)
        return TicketDetail(ticket=ticket, created_by=created_by, assigned_to=assigned_to, comments=list(comments))

    async def list_comments(self, context: AuthContext, ticket_id: int) -> list[EnhancedComment]:
        self._gate.ensure(context, Action.COMMENT)
        await self._require_ticket(ticket_id)
        comments = await self._store.list_comments(ticket_id)
        users = await self._users_by_id(comment.user_id for comment in comments)
        return [EnhancedComment(comment=comment, user=users.get(comment.user_id)) for comment in comments]

    # Activity and stats

    async def recent_activities(self, context: AuthContext, *, limit: int) -> list[EnhancedActivity]:
        self._gate.ensure(context, Action.READ_ACTIVITY)
        activities = await self._store.recent_activities(limit)
        users = await self._users_by_id(activity.user_id for activity in activities)
        return [EnhancedActivity(activity=activity, user=users.get(activity.user_id)) for activity in activities]

    async def ticket_activities(self, context: AuthContext, ticket_id: int) -> list[EnhancedActivity]:
        self._gate.ensure(context, Action.READ_ACTIVITY)
        await self._require_ticket(ticket_id)
        activities = await self._store.list_ticket_activities(ticket_id)
        users = await self._users_by_id(activity.user_id for activity in activities)
        return [EnhancedActivity(activity=activity, user=users.get(activity.user_id)) for activity in activities]

    async def ticket_stats(self, context: AuthContext) -> TicketStats:
        self._gate.ensure(context, Action.READ_STATS)
        return compute_ticket_stats(await self._store.list_tickets())

    # Helpers

    async def _require_ticket(self, ticket_id: int, *, for_update: bool = False) -> Ticket:
        if for_update:
            ticket = await self._store.get_ticket_for_update(ticket_id)
        else:
            ticket = await self._store.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        return ticket

    async def _require_user(self, user_id: int) -> User:
        user = await self._store.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def _users_by_id(self, user_ids: Iterable[int | None]) -> dict[int, User]:
        users: dict[int, User] = {}
        for user_id in user_ids:
            if user_id is None or user_id in users:
                continue
            user = await self._store.get_user(user_id)
            if user is not None:
                users[user_id] = user
        return users

    async def _enhance_tickets(self, tickets: Sequence[Ticket]) -> list[EnhancedTicket]:
        users = await self._users_by_id(
            user_id for ticket in tickets for user_id in (ticket.created_by_id, ticket.assigned_to_id)
        )
        enhanced: list[EnhancedTicket] = []
        for ticket in tickets:
            enhanced.append(
                EnhancedTicket(
                    ticket=ticket,
                    created_by=users.get(ticket.created_by_id),
                    assigned_to=users.get(ticket.assigned_to_id) if ticket.assigned_to_id else None,
                    comment_count=await self._store.count_comments(ticket.id),
                )
            )
        return enhanced
