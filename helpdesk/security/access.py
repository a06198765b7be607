"""Role capability table and the gate the orchestrator checks against."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from helpdesk.core.errors import ForbiddenError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Static roles a user may hold."""

    ADMIN = "admin"
    AGENT = "agent"
    CUSTOMER = "customer"


class Action(str, Enum):
    """Operations guarded by the access gate."""

    CREATE_USER = "create_user"
    LIST_USERS = "list_users"
    LIST_AGENTS = "list_agents"
    CREATE_TICKET = "create_ticket"
    READ_TICKETS = "read_tickets"
    UPDATE_OWN_TICKET = "update_own_ticket"
    UPDATE_ANY_TICKET = "update_any_ticket"
    COMMENT = "comment"
    READ_ACTIVITY = "read_activity"
    READ_STATS = "read_stats"


_EVERYONE = frozenset(Role)
_STAFF = frozenset({Role.ADMIN, Role.AGENT})

CAPABILITIES: Mapping[Action, frozenset[Role]] = {
    Action.CREATE_USER: frozenset({Role.ADMIN}),
    Action.LIST_USERS: _STAFF,
    Action.LIST_AGENTS: _EVERYONE,
    Action.CREATE_TICKET: _EVERYONE,
    Action.READ_TICKETS: _EVERYONE,
    Action.UPDATE_OWN_TICKET: _EVERYONE,
    Action.UPDATE_ANY_TICKET: _STAFF,
    Action.COMMENT: _EVERYONE,
    Action.READ_ACTIVITY: _EVERYONE,
    Action.READ_STATS: _EVERYONE,
}


@dataclass(frozen=True, slots=True)
class AuthContext:
    """Identity of the caller, passed explicitly into every orchestrator call."""

    user_id: int
    role: Role


def authorize(role: Role, action: Action) -> bool:
    return role in CAPABILITIES.get(action, frozenset())


class AccessGate:
    """Raise ``ForbiddenError`` when a caller's role lacks a capability."""

    def __init__(self, capabilities: Mapping[Action, frozenset[Role]] | None = None) -> None:
        self._capabilities = capabilities or CAPABILITIES

    def allows(self, context: AuthContext, action: Action) -> bool:
        return context.role in self._capabilities.get(action, frozenset())

    def ensure(self, context: AuthContext, action: Action) -> None:
        if not self.allows(context, action):
            logger.warning("User %s (%s) denied %s", context.user_id, context.role.value, action.value)
            raise ForbiddenError("Forbidden")

    def can_update_ticket(self, context: AuthContext, *, created_by_id: int) -> bool:
        if self.allows(context, Action.UPDATE_ANY_TICKET):
            return True
        return context.user_id == created_by_id and self.allows(context, Action.UPDATE_OWN_TICKET)
