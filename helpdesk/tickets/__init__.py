"""Ticket domain: entities, stores, activity trail and orchestration."""

from .activity import ActivityRecorder, TicketChange, classify_change
from .models import Activity, ActivityType, Comment, Ticket, TicketStats, User
from .repository import HelpdeskStore, InMemoryStore
from .service import TicketService
from .sql import SqlStore
from .state import TicketPriority, TicketStateMachine, TicketStatus

__all__ = [
    "Activity",
    "ActivityRecorder",
    "ActivityType",
    "Comment",
    "HelpdeskStore",
    "InMemoryStore",
    "SqlStore",
    "Ticket",
    "TicketChange",
    "TicketPriority",
    "TicketService",
    "TicketStateMachine",
    "TicketStats",
    "TicketStatus",
    "User",
    "classify_change",
]
