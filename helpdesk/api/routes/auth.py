from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from helpdesk.api.schemas import LoginRequest, MessageResponse, UserModel
from helpdesk.core.errors import UnauthorizedError
from helpdesk.dependencies.auth import SESSION_USER_KEY, CurrentUser, TicketServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=UserModel)
async def login(payload: LoginRequest, request: Request, service: TicketServiceDep) -> UserModel:
    user = await service.authenticate(payload.username, payload.password)
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id
    return UserModel.model_validate(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, user: CurrentUser) -> MessageResponse:
    request.session.clear()
    logger.info("User %s signed out", user.username)
    return MessageResponse(message="Logged out successfully")


@router.get("/session", response_model=UserModel)
async def current_session(request: Request, service: TicketServiceDep) -> UserModel:
    resolved = await service.resolve_session(request.session.get(SESSION_USER_KEY))
    if resolved is None:
        raise UnauthorizedError("Not authenticated")
    return UserModel.model_validate(resolved[0])
