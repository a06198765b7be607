"""Full-scan ticket statistics, recomputed on every call."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Iterable

from .models import Ticket, TicketStats
from .state import TicketPriority, TicketStatus


def start_of_local_day(now: datetime | None = None) -> datetime:
    """Local midnight of the day containing ``now`` as an aware datetime."""

    local_now = (now or datetime.now()).astimezone()
    return local_now.replace(hour=0, minute=0, second=0, microsecond=0)


def compute_ticket_stats(tickets: Iterable[Ticket], *, now: datetime | None = None) -> TicketStats:
    midnight = start_of_local_day(now)
    statuses: Counter[TicketStatus] = Counter()
    total = high_priority = resolved_today = 0
    for ticket in tickets:
        total += 1
        statuses[ticket.status] += 1
        if ticket.priority == TicketPriority.HIGH:
            high_priority += 1
        if ticket.status == TicketStatus.RESOLVED and ticket.updated_at >= midnight:
            resolved_today += 1
    return TicketStats(
        total=total,
        open_count=statuses[TicketStatus.OPEN],
        in_progress_count=statuses[TicketStatus.IN_PROGRESS],
        resolved_count=statuses[TicketStatus.RESOLVED],
        closed_count=statuses[TicketStatus.CLOSED],
        high_priority_count=high_priority,
        resolved_today=resolved_today,
    )
