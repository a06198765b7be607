from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from helpdesk.security.access import AuthContext, Role
from helpdesk.seed import seed_demo_data
from helpdesk.tickets.models import ActivityType, NewActivity, NewComment, NewTicket, NewUser
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.sql import SqlStore, like_pattern, to_async_dsn
from helpdesk.tickets.state import TicketPriority, TicketStatus


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncEngine:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}")
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def sql_store(engine: AsyncEngine) -> SqlStore:
    store = SqlStore(async_sessionmaker(engine, expire_on_commit=False), engine=engine)
    await store.ensure_schema()
    return store


async def _user(store: SqlStore, username: str = "sarah", role: Role = Role.CUSTOMER):
    return await store.create_user(NewUser(username, "pw", username.title(), f"{username}@example.com", role))


def test_to_async_dsn_rewrites_postgres_schemes():
    assert to_async_dsn("postgresql://u:p@db/helpdesk") == "postgresql+asyncpg://u:p@db/helpdesk"
    assert to_async_dsn("postgres://u:p@db/helpdesk") == "postgresql+asyncpg://u:p@db/helpdesk"
    assert to_async_dsn("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


def test_like_pattern_escapes_wildcards():
    assert like_pattern("50%_off") == "%50\\%\\_off%"


@pytest.mark.asyncio
async def test_ensure_schema_creates_tables(engine: AsyncEngine):
    store = SqlStore(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    await store.ensure_schema()

    async with engine.begin() as conn:
        tables = await conn.run_sync(lambda sync_conn: set(sa_inspect(sync_conn).get_table_names()))
    assert {"users", "tickets", "comments", "activities"} <= tables


@pytest.mark.asyncio
async def test_ensure_schema_requires_engine(engine: AsyncEngine):
    store = SqlStore(async_sessionmaker(engine, expire_on_commit=False))

    with pytest.raises(RuntimeError):
        await store.ensure_schema()


@pytest.mark.asyncio
async def test_user_round_trip(sql_store: SqlStore):
    created = await _user(sql_store, "agent", Role.AGENT)

    assert created.id == 1
    assert (await sql_store.get_user(created.id)).role == Role.AGENT
    assert (await sql_store.get_user_by_username("agent")).email == "agent@example.com"
    assert (await sql_store.get_user_by_email("agent@example.com")).id == created.id
    assert await sql_store.get_user(42) is None
    assert [user.username for user in await sql_store.list_users_by_role(Role.AGENT)] == ["agent"]


@pytest.mark.asyncio
async def test_ticket_update_merges_and_refreshes_timestamp(sql_store: SqlStore):
    owner = await _user(sql_store)
    ticket = await sql_store.create_ticket(
        NewTicket(subject="Printer", description="Jammed", category="Hardware", created_by_id=owner.id)
    )

    updated = await sql_store.update_ticket(ticket.id, {"status": TicketStatus.CLOSED, "priority": TicketPriority.HIGH})
    touched = await sql_store.update_ticket(ticket.id, {})

    assert ticket.status == TicketStatus.OPEN
    assert ticket.created_at.tzinfo is not None
    assert updated.status == TicketStatus.CLOSED
    assert updated.priority == TicketPriority.HIGH
    assert updated.updated_at > ticket.updated_at
    assert touched.updated_at > updated.updated_at
    assert touched.status == TicketStatus.CLOSED
    assert await sql_store.update_ticket(999, {"status": TicketStatus.OPEN}) is None
    with pytest.raises(ValueError):
        await sql_store.update_ticket(ticket.id, {"id": 5})


@pytest.mark.asyncio
async def test_pagination_and_filters(sql_store: SqlStore):
    owner = await _user(sql_store)
    for index in range(12):
        await sql_store.create_ticket(
            NewTicket(
                subject=f"Ticket {index + 1}",
                description="Body",
                category="General",
                created_by_id=owner.id,
                priority=TicketPriority.HIGH if index % 4 == 0 else TicketPriority.LOW,
            )
        )

    first = await sql_store.paginate_tickets(1, 5)
    last = await sql_store.paginate_tickets(3, 5)
    empty = await sql_store.paginate_tickets(0, 5)

    assert first.total == last.total == empty.total == 12
    assert [ticket.id for ticket in first.tickets] == [12, 11, 10, 9, 8]
    assert [ticket.id for ticket in last.tickets] == [2, 1]
    assert empty.tickets == []
    assert [t.id for t in await sql_store.list_tickets_by_priority(TicketPriority.HIGH)] == [1, 5, 9]
    assert len(await sql_store.list_tickets_by_creator(owner.id)) == 12
    assert await sql_store.list_tickets_by_status(TicketStatus.RESOLVED) == []


@pytest.mark.asyncio
async def test_search_matches_any_text_field_and_treats_wildcards_literally(sql_store: SqlStore):
    owner = await _user(sql_store)
    for subject, description, category in (
        ("Refund request", "Charged twice", "Billing"),
        ("Login loop", "Keeps redirecting", "Account"),
        ("Promo", "50% discount missing", "Sales"),
        ("Other", "Nothing", "BILLING issues"),
    ):
        await sql_store.create_ticket(
            NewTicket(subject=subject, description=description, category=category, created_by_id=owner.id)
        )

    assert [t.id for t in await sql_store.search_tickets("billing")] == [1, 4]
    assert [t.id for t in await sql_store.search_tickets("REDIRECT")] == [2]
    assert [t.id for t in await sql_store.search_tickets("50%")] == [3]
    assert await sql_store.search_tickets("%") == [await sql_store.get_ticket(3)]
    assert await sql_store.search_tickets("_") == []


@pytest.mark.asyncio
async def test_comments_and_activities_ordering(sql_store: SqlStore):
    owner = await _user(sql_store)
    ticket = await sql_store.create_ticket(
        NewTicket(subject="S", description="D", category="C", created_by_id=owner.id)
    )
    for content in ("first", "second"):
        await sql_store.create_comment(NewComment(content=content, ticket_id=ticket.id, user_id=owner.id))
    for kind in (ActivityType.CREATED, ActivityType.COMMENTED, ActivityType.ESCALATED):
        await sql_store.create_activity(
            NewActivity(type=kind, user_id=owner.id, message=kind.value, ticket_id=ticket.id)
        )

    assert [c.content for c in await sql_store.list_comments(ticket.id)] == ["first", "second"]
    assert await sql_store.count_comments(ticket.id) == 2
    assert await sql_store.count_comments(999) == 0
    assert [a.type for a in await sql_store.list_ticket_activities(ticket.id)] == [
        ActivityType.ESCALATED,
        ActivityType.COMMENTED,
        ActivityType.CREATED,
    ]
    assert [a.type for a in await sql_store.recent_activities(1)] == [ActivityType.ESCALATED]


@pytest.mark.asyncio
async def test_transaction_rolls_back_every_write(sql_store: SqlStore):
    owner = await _user(sql_store)

    with pytest.raises(RuntimeError):
        async with sql_store.transaction():
            ticket = await sql_store.create_ticket(
                NewTicket(subject="S", description="D", category="C", created_by_id=owner.id)
            )
            await sql_store.create_activity(
                NewActivity(type=ActivityType.CREATED, user_id=owner.id, message="m", ticket_id=ticket.id)
            )
            raise RuntimeError("boom")

    assert await sql_store.list_tickets() == []
    assert await sql_store.recent_activities(10) == []


@pytest.mark.asyncio
async def test_service_flow_on_relational_store(sql_store: SqlStore):
    assert await seed_demo_data(sql_store) is True
    assert await seed_demo_data(sql_store) is False
    service = TicketService(sql_store)
    admin = AuthContext(user_id=1, role=Role.ADMIN)

    await service.update_ticket(admin, 2, {"status": "resolved", "assigned_to_id": 1})
    await service.add_comment(admin, 2, "Refund issued")

    activities = [entry.activity for entry in await service.ticket_activities(admin, 2)]
    assert [activity.type for activity in activities[:3]] == [
        ActivityType.COMMENTED,
        ActivityType.ASSIGNED,
        ActivityType.RESOLVED,
    ]
    assert activities[0].message == "Replied to John Smith on #TK-2"
    entries, total = await service.list_tickets_page(admin, page=1, limit=10)
    assert total == 4
    assert next(entry for entry in entries if entry.ticket.id == 2).comment_count == 2
    stats = await service.ticket_stats(admin)
    assert stats.resolved_count == 2


@pytest.mark.asyncio
async def test_locked_read_inside_transaction_sees_pending_writes(sql_store: SqlStore):
    owner = await _user(sql_store)
    ticket = await sql_store.create_ticket(
        NewTicket(subject="S", description="D", category="C", created_by_id=owner.id)
    )

    async with sql_store.transaction():
        locked = await sql_store.get_ticket_for_update(ticket.id)
        await sql_store.update_ticket(ticket.id, {"status": TicketStatus.IN_PROGRESS})
        reread = await sql_store.get_ticket_for_update(ticket.id)

    assert locked == ticket
    assert reread.status == TicketStatus.IN_PROGRESS
    assert await sql_store.get_ticket_for_update(999) is None
