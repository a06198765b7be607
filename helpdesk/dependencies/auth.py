from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from helpdesk.core.errors import UnauthorizedError
from helpdesk.security.access import AuthContext
from helpdesk.tickets.models import User
from helpdesk.tickets.service import TicketService

SESSION_USER_KEY = "user_id"


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]


async def get_session_user(request: Request, service: TicketServiceDep) -> tuple[User, AuthContext]:
    """Resolve the session cookie to a live user.

    A session pointing at a user that no longer exists is dropped and treated
    the same as no session at all.
    """

    resolved = await service.resolve_session(request.session.get(SESSION_USER_KEY))
    if resolved is None:
        request.session.pop(SESSION_USER_KEY, None)
        raise UnauthorizedError("Unauthorized")
    return resolved


SessionUser = Annotated[tuple[User, AuthContext], Depends(get_session_user)]


async def get_current_user(session_user: SessionUser) -> User:
    return session_user[0]


async def get_auth_context(session_user: SessionUser) -> AuthContext:
    return session_user[1]


CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentContext = Annotated[AuthContext, Depends(get_auth_context)]
