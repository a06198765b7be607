"""Derive activity trail entries from ticket mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from .models import Activity, ActivityType, NewActivity, Ticket, User
from .repository import HelpdeskStore
from .state import TicketPriority, TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TicketChange:
    """Pre-update snapshot next to the snapshot the update produces."""

    before: Ticket
    after: Ticket
    assignee: User | None = None

    @property
    def status_changed(self) -> bool:
        return self.after.status != self.before.status

    @property
    def priority_changed(self) -> bool:
        return self.after.priority != self.before.priority


@dataclass(frozen=True, slots=True)
class ActivityRule:
    predicate: Callable[[TicketChange], bool]
    kind: ActivityType
    template: str

    def render(self, change: TicketChange) -> str:
        return self.template.format(
            ref=change.after.display_id,
            priority=change.after.priority.value,
            assignee=change.assignee.name if change.assignee is not None else f"user {change.after.assigned_to_id}",
        )


def _status_became(status: TicketStatus) -> Callable[[TicketChange], bool]:
    return lambda change: change.status_changed and change.after.status == status


def _reopened(change: TicketChange) -> bool:
    return change.status_changed and TicketStateMachine.is_reopen(change.before.status, change.after.status)


def _other_status_change(change: TicketChange) -> bool:
    return (
        change.status_changed
        and change.after.status not in (TicketStatus.RESOLVED, TicketStatus.CLOSED)
        and not _reopened(change)
    )


def _assigned(change: TicketChange) -> bool:
    return change.after.assigned_to_id is not None and change.after.assigned_to_id != change.before.assigned_to_id


def _escalated(change: TicketChange) -> bool:
    return change.priority_changed and change.after.priority == TicketPriority.HIGH


def _reprioritized(change: TicketChange) -> bool:
    return change.priority_changed and change.after.priority != TicketPriority.HIGH


# Status rules are mutually exclusive, so each field yields at most one entry.
UPDATE_RULES: tuple[ActivityRule, ...] = (
    ActivityRule(_status_became(TicketStatus.RESOLVED), ActivityType.RESOLVED, "Resolved ticket {ref}"),
    ActivityRule(_status_became(TicketStatus.CLOSED), ActivityType.CLOSED, "Closed ticket {ref}"),
    ActivityRule(_reopened, ActivityType.REOPENED, "Reopened ticket {ref}"),
    ActivityRule(_other_status_change, ActivityType.UPDATED, "Updated ticket {ref}"),
    ActivityRule(_assigned, ActivityType.ASSIGNED, "Assigned ticket {ref} to {assignee}"),
    ActivityRule(_escalated, ActivityType.ESCALATED, "Escalated ticket {ref} to high priority"),
    ActivityRule(_reprioritized, ActivityType.UPDATED, "Updated ticket {ref} priority to {priority}"),
)


def classify_change(
    change: TicketChange,
    *,
    actor_id: int,
    rules: Sequence[ActivityRule] = UPDATE_RULES,
) -> list[NewActivity]:
    """Evaluate every rule in order and return the entries that apply."""

    return [
        NewActivity(type=rule.kind, ticket_id=change.after.id, user_id=actor_id, message=rule.render(change))
        for rule in rules
        if rule.predicate(change)
    ]


class ActivityRecorder:
    """Append classified entries to the store's activity log."""

    def __init__(self, store: HelpdeskStore, *, rules: Sequence[ActivityRule] = UPDATE_RULES) -> None:
        self._store = store
        self._rules = tuple(rules)

    async def record(self, entry: NewActivity) -> Activity:
        activity = await self._store.create_activity(entry)
        logger.info("Activity %s on ticket %s by user %s", activity.type.value, activity.ticket_id, activity.user_id)
        return activity

    async def ticket_created(self, ticket: Ticket, *, actor_id: int) -> Activity:
        return await self.record(
            NewActivity(
                type=ActivityType.CREATED,
                ticket_id=ticket.id,
                user_id=actor_id,
                message=f"Created ticket {ticket.display_id}: {ticket.subject}",
            )
        )

    async def ticket_changed(self, change: TicketChange, *, actor_id: int) -> list[Activity]:
        return [await self.record(entry) for entry in classify_change(change, actor_id=actor_id, rules=self._rules)]

    async def comment_added(self, ticket: Ticket, *, creator: User | None, actor_id: int) -> Activity:
        recipient = creator.name if creator is not None else "customer"
        return await self.record(
            NewActivity(
                type=ActivityType.COMMENTED,
                ticket_id=ticket.id,
                user_id=actor_id,
                message=f"Replied to {recipient} on {ticket.display_id}",
            )
        )
