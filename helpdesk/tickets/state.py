from __future__ import annotations

from enum import Enum


class TicketStatus(str, Enum):
    """Lifecycle states of a ticket."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TicketStateMachine:
    """Classify status moves on top of free transitions.

    Any status may follow any other; the only special case is a ticket that comes
    back to ``open`` after having been resolved or closed, which counts as a reopen.
    """

    _TERMINAL: frozenset[TicketStatus] = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.OPEN

    @classmethod
    def is_reopen(cls, current: TicketStatus, new: TicketStatus) -> bool:
        return new == TicketStatus.OPEN and current in cls._TERMINAL
