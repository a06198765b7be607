import pytest

from helpdesk.security.access import Role
from helpdesk.seed import DEMO_USERS, seed_demo_data
from helpdesk.tickets.models import ActivityType
from helpdesk.tickets.repository import InMemoryStore
from helpdesk.tickets.state import TicketStatus


@pytest.mark.asyncio
async def test_seed_populates_empty_store_once():
    store = InMemoryStore()

    assert await seed_demo_data(store) is True
    assert await seed_demo_data(store) is False

    users = await store.list_users()
    assert len(users) == len(DEMO_USERS) == 6
    assert [user.role for user in users[:2]] == [Role.ADMIN, Role.AGENT]
    tickets = await store.list_tickets()
    assert [ticket.status for ticket in tickets] == [
        TicketStatus.IN_PROGRESS,
        TicketStatus.OPEN,
        TicketStatus.RESOLVED,
        TicketStatus.OPEN,
    ]
    assert all(ticket.assigned_to_id == 2 for ticket in tickets)
    assert sum([await store.count_comments(ticket.id) for ticket in tickets]) == 8
    assert len(await store.recent_activities(100)) == 8


@pytest.mark.asyncio
async def test_seeded_history_uses_ticket_references():
    store = InMemoryStore()
    await seed_demo_data(store)

    history = await store.list_ticket_activities(2)

    assert [(entry.type, entry.message) for entry in history] == [
        (ActivityType.ESCALATED, "Escalated ticket #TK-2 to high priority"),
        (ActivityType.CREATED, "Created ticket #TK-2: Payment processing error"),
    ]
