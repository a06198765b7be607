from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from helpdesk.security.access import Role
from helpdesk.tickets.models import ActivityType, NewActivity, NewComment, NewTicket, NewUser
from helpdesk.tickets.repository import InMemoryStore, next_timestamp, page_bounds
from helpdesk.tickets.state import TicketPriority, TicketStatus


def _new_ticket(subject: str = "Subject", **overrides) -> NewTicket:
    values = dict(subject=subject, description="Body", category="General", created_by_id=1)
    values.update(overrides)
    return NewTicket(**values)


def test_next_timestamp_is_strictly_after_previous():
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    assert next_timestamp(future) == future + timedelta(microseconds=1)
    assert next_timestamp(None) <= datetime.now(timezone.utc)


@pytest.mark.parametrize(
    ("page", "limit", "expected"),
    [(1, 10, (0, 10)), (3, 10, (20, 30)), (0, 10, None), (1, 0, None), (-2, 5, None)],
)
def test_page_bounds(page, limit, expected):
    assert page_bounds(page, limit) == expected


@pytest.mark.asyncio
async def test_ids_start_at_one_per_entity_kind():
    store = InMemoryStore()

    user = await store.create_user(NewUser("u", "p", "U", "u@example.com"))
    ticket = await store.create_ticket(_new_ticket())
    comment = await store.create_comment(NewComment(content="hi", ticket_id=ticket.id, user_id=user.id))
    activity = await store.create_activity(
        NewActivity(type=ActivityType.CREATED, user_id=user.id, message="m", ticket_id=ticket.id)
    )

    assert (user.id, ticket.id, comment.id, activity.id) == (1, 1, 1, 1)
    assert user.role == Role.CUSTOMER
    assert ticket.created_at == ticket.updated_at
    assert ticket.status == TicketStatus.OPEN
    assert ticket.priority == TicketPriority.MEDIUM


@pytest.mark.asyncio
async def test_lookups_for_missing_records_return_none():
    store = InMemoryStore()

    assert await store.get_user(99) is None
    assert await store.get_user_by_username("ghost") is None
    assert await store.get_ticket(99) is None
    assert await store.update_ticket(99, {"status": TicketStatus.CLOSED}) is None
    assert await store.list_comments(99) == []
    assert await store.list_ticket_activities(99) == []


@pytest.mark.asyncio
async def test_update_merges_fields_and_leaves_old_snapshot_untouched():
    store = InMemoryStore()
    original = await store.create_ticket(_new_ticket())

    updated = await store.update_ticket(original.id, {"status": TicketStatus.RESOLVED, "assigned_to_id": 4})

    assert updated is not None
    assert updated.status == TicketStatus.RESOLVED
    assert updated.assigned_to_id == 4
    assert updated.subject == original.subject
    assert updated.created_at == original.created_at
    assert updated.updated_at > original.updated_at
    assert original.status == TicketStatus.OPEN
    assert original.assigned_to_id is None


@pytest.mark.asyncio
async def test_empty_update_only_refreshes_updated_at():
    store = InMemoryStore()
    original = await store.create_ticket(_new_ticket())

    touched = await store.update_ticket(original.id, {})

    assert touched is not None
    assert touched.updated_at > original.updated_at
    assert (touched.subject, touched.status, touched.priority) == (
        original.subject,
        original.status,
        original.priority,
    )


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields():
    store = InMemoryStore()
    ticket = await store.create_ticket(_new_ticket())

    with pytest.raises(ValueError):
        await store.update_ticket(ticket.id, {"created_by_id": 7})


@pytest.mark.asyncio
async def test_pagination_returns_newest_first_with_full_total():
    store = InMemoryStore()
    for index in range(25):
        await store.create_ticket(_new_ticket(f"Ticket {index + 1}"))

    first = await store.paginate_tickets(1, 10)
    third = await store.paginate_tickets(3, 10)
    beyond = await store.paginate_tickets(4, 10)
    invalid = await store.paginate_tickets(0, 10)

    assert [ticket.id for ticket in first.tickets] == list(range(25, 15, -1))
    assert [ticket.id for ticket in third.tickets] == [5, 4, 3, 2, 1]
    assert beyond.tickets == []
    assert invalid.tickets == []
    assert first.total == third.total == beyond.total == invalid.total == 25


@pytest.mark.asyncio
async def test_search_is_case_insensitive_across_text_fields():
    store = InMemoryStore()
    by_subject = await store.create_ticket(_new_ticket("Payment failed"))
    by_description = await store.create_ticket(_new_ticket("Other", description="The PAYMENT page hangs"))
    by_category = await store.create_ticket(_new_ticket("Invoice", category="payments"))
    await store.create_ticket(_new_ticket("Unrelated"))

    found = await store.search_tickets("payment")

    assert {ticket.id for ticket in found} == {by_subject.id, by_description.id, by_category.id}
    assert await store.search_tickets("nothing matches") == []


@pytest.mark.asyncio
async def test_filters_by_status_priority_assignee_and_creator():
    store = InMemoryStore()
    first = await store.create_ticket(_new_ticket(priority=TicketPriority.HIGH, assigned_to_id=2))
    second = await store.create_ticket(_new_ticket(status=TicketStatus.CLOSED, created_by_id=3))

    assert [t.id for t in await store.list_tickets_by_status(TicketStatus.CLOSED)] == [second.id]
    assert [t.id for t in await store.list_tickets_by_priority(TicketPriority.HIGH)] == [first.id]
    assert [t.id for t in await store.list_tickets_by_assignee(2)] == [first.id]
    assert [t.id for t in await store.list_tickets_by_creator(3)] == [second.id]
    assert await store.list_tickets_by_assignee(99) == []


@pytest.mark.asyncio
async def test_comments_oldest_first_and_activities_latest_first():
    store = InMemoryStore()
    ticket = await store.create_ticket(_new_ticket())
    other = await store.create_ticket(_new_ticket())
    for content in ("one", "two", "three"):
        await store.create_comment(NewComment(content=content, ticket_id=ticket.id, user_id=1))
    await store.create_comment(NewComment(content="elsewhere", ticket_id=other.id, user_id=1))
    for message in ("a", "b", "c"):
        await store.create_activity(
            NewActivity(type=ActivityType.UPDATED, user_id=1, message=message, ticket_id=ticket.id)
        )

    comments = await store.list_comments(ticket.id)
    activities = await store.list_ticket_activities(ticket.id)
    recent = await store.recent_activities(2)

    assert [comment.content for comment in comments] == ["one", "two", "three"]
    assert await store.count_comments(ticket.id) == 3
    assert await store.count_comments(other.id) == 1
    assert [activity.message for activity in activities] == ["c", "b", "a"]
    assert [activity.message for activity in recent] == ["c", "b"]
    assert await store.recent_activities(0) == []


@pytest.mark.asyncio
async def test_users_by_role_and_email():
    store = InMemoryStore()
    await store.create_user(NewUser("agent", "p", "Agent", "agent@example.com", Role.AGENT))
    await store.create_user(NewUser("cust", "p", "Cust", "cust@example.com"))

    agents = await store.list_users_by_role(Role.AGENT)

    assert [user.username for user in agents] == ["agent"]
    assert (await store.get_user_by_email("cust@example.com")).username == "cust"
    assert len(await store.list_users()) == 2
