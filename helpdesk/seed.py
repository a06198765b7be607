"""Demo accounts, tickets and history loaded into an empty store."""

from __future__ import annotations

import logging

from helpdesk.security.access import Role
from helpdesk.tickets.models import ActivityType, NewActivity, NewComment, NewTicket, NewUser
from helpdesk.tickets.repository import HelpdeskStore
from helpdesk.tickets.state import TicketPriority, TicketStatus

logger = logging.getLogger(__name__)

_AVATAR = "https://images.unsplash.com/photo-{}?ixlib=rb-1.2.1&auto=format&fit=facearea&facepad=2&w=256&h=256&q=80"

DEMO_USERS: tuple[NewUser, ...] = (
    NewUser("admin", "admin123", "Admin User", "admin@example.com", Role.ADMIN, _AVATAR.format("1472099645785-5658abf4ff4e")),
    NewUser("agent", "agent123", "Adam Johnson", "agent@example.com", Role.AGENT, _AVATAR.format("1472099645785-5658abf4ff4e")),
    NewUser("sarah", "customer123", "Sarah Thompson", "sarah@example.com", Role.CUSTOMER, _AVATAR.format("1494790108377-be9c29b29330")),
    NewUser("john", "customer123", "John Smith", "john@example.com", Role.CUSTOMER, _AVATAR.format("1500648767791-00dcc994a43e")),
    NewUser("emily", "customer123", "Emily Chen", "emily@example.com", Role.CUSTOMER, _AVATAR.format("1438761681033-6461ffad8d80")),
    NewUser("robert", "customer123", "Robert Johnson", "robert@example.com", Role.CUSTOMER, _AVATAR.format("1491528323818-fdd1faba62cc")),
)

# (subject, description, status, priority, category, creator username)
_DEMO_TICKETS = (
    (
        "Cannot access admin dashboard",
        "I'm trying to access the admin dashboard but I'm getting a 403 error.",
        TicketStatus.IN_PROGRESS,
        TicketPriority.MEDIUM,
        "Website",
        "sarah",
    ),
    (
        "Payment processing error",
        "I'm trying to make a payment but I'm getting an error message.",
        TicketStatus.OPEN,
        TicketPriority.HIGH,
        "Billing",
        "john",
    ),
    (
        "Need help with mobile app login",
        "I can't log in to the mobile app. It says 'Invalid credentials'.",
        TicketStatus.RESOLVED,
        TicketPriority.MEDIUM,
        "Mobile App",
        "emily",
    ),
    (
        "Feature request: Export data to CSV",
        "I would like to be able to export my data to CSV format.",
        TicketStatus.OPEN,
        TicketPriority.LOW,
        "Dashboard",
        "robert",
    ),
)

# (ticket index, author username, content)
_DEMO_COMMENTS = (
    (0, "sarah", "I've tried clearing my cache but still having the issue."),
    (0, "agent", "Could you please provide screenshots of the error?"),
    (0, "sarah", "I've attached the screenshot in the ticket description."),
    (1, "agent", "I'm looking into this issue now."),
    (2, "agent", "The issue has been fixed. Please try again and let me know if it works."),
    (2, "emily", "It works now. Thank you!"),
    (3, "agent", "Thanks for the suggestion. We'll consider adding this feature."),
    (3, "robert", "Great! Looking forward to it."),
)


async def seed_demo_data(store: HelpdeskStore) -> bool:
    """Populate ``store`` unless it already has users. Returns whether it seeded."""

    if await store.list_users():
        logger.debug("Store already has users; skipping demo seed")
        return False

    async with store.transaction():
        users = {}
        for new_user in DEMO_USERS:
            user = await store.create_user(new_user)
            users[user.username] = user
        agent = users["agent"]

        tickets = []
        for subject, description, status, priority, category, creator in _DEMO_TICKETS:
            tickets.append(
                await store.create_ticket(
                    NewTicket(
                        subject=subject,
                        description=description,
                        category=category,
                        created_by_id=users[creator].id,
                        priority=priority,
                        status=status,
                        assigned_to_id=agent.id,
                    )
                )
            )

        for index, author, content in _DEMO_COMMENTS:
            await store.create_comment(NewComment(content=content, ticket_id=tickets[index].id, user_id=users[author].id))

        first, second, third, fourth = tickets
        history = (
            (ActivityType.CREATED, first, users["sarah"], f"Created ticket {first.display_id}: {first.subject}"),
            (ActivityType.ASSIGNED, first, agent, f"Assigned ticket {first.display_id} to {agent.name}"),
            (ActivityType.COMMENTED, first, agent, f"Replied to {users['sarah'].name} on {first.display_id}"),
            (ActivityType.CREATED, second, users["john"], f"Created ticket {second.display_id}: {second.subject}"),
            (ActivityType.ESCALATED, second, agent, f"Escalated ticket {second.display_id} to high priority"),
            (ActivityType.CREATED, third, users["emily"], f"Created ticket {third.display_id}: {third.subject}"),
            (ActivityType.RESOLVED, third, agent, f"Resolved ticket {third.display_id}"),
            (ActivityType.CREATED, fourth, users["robert"], f"Created ticket {fourth.display_id}: {fourth.subject}"),
        )
        for kind, ticket, actor, message in history:
            await store.create_activity(NewActivity(type=kind, ticket_id=ticket.id, user_id=actor.id, message=message))

    logger.info("Seeded %d demo users and %d tickets", len(DEMO_USERS), len(_DEMO_TICKETS))
    return True
