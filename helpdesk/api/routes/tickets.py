from __future__ import annotations

import math

from fastapi import APIRouter, Query, status

from helpdesk.api.schemas import (
    ActivityWithUserModel,
    CommentCreateRequest,
    CommentModel,
    CommentWithUserModel,
    EnhancedTicketModel,
    PaginationModel,
    TicketCreateRequest,
    TicketDetailModel,
    TicketListResponse,
    TicketModel,
    TicketUpdateRequest,
)
from helpdesk.dependencies.auth import CurrentContext, TicketServiceDep
from helpdesk.dependencies.settings import SettingsDep
from helpdesk.tickets.models import Ticket
from helpdesk.tickets.state import TicketPriority, TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])


def _to_models(tickets: list[Ticket] | tuple[Ticket, ...]) -> list[TicketModel]:
    return [TicketModel.model_validate(ticket) for ticket in tickets]


@router.post("", response_model=TicketModel, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep, context: CurrentContext) -> TicketModel:
    ticket = await service.create_ticket(
        context,
        subject=payload.subject,
        description=payload.description,
        category=payload.category,
        priority=payload.priority,
        assigned_to_id=payload.assigned_to_id,
    )
    return TicketModel.model_validate(ticket)


@router.get("", response_model=TicketListResponse, summary="Paginated tickets, newest first")
async def list_tickets(
    service: TicketServiceDep,
    context: CurrentContext,
    settings: SettingsDep,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> TicketListResponse:
    effective_limit = min(limit or settings.default_page_size, settings.max_page_size)
    tickets, total = await service.list_tickets_page(context, page=page, limit=effective_limit)
    return TicketListResponse(
        tickets=[EnhancedTicketModel.from_entity(item) for item in tickets],
        pagination=PaginationModel(
            total=total,
            page=page,
            limit=effective_limit,
            total_pages=math.ceil(total / effective_limit),
        ),
    )


@router.get("/search", response_model=list[TicketModel])
async def search_tickets(
    service: TicketServiceDep,
    context: CurrentContext,
    q: str = Query(default=""),
) -> list[TicketModel]:
    return _to_models(list(await service.search_tickets(context, q)))


@router.get("/status/{ticket_status}", response_model=list[TicketModel])
async def tickets_by_status(
    ticket_status: TicketStatus, service: TicketServiceDep, context: CurrentContext
) -> list[TicketModel]:
    return _to_models(list(await service.tickets_by_status(context, ticket_status)))


@router.get("/priority/{priority}", response_model=list[TicketModel])
async def tickets_by_priority(
    priority: TicketPriority, service: TicketServiceDep, context: CurrentContext
) -> list[TicketModel]:
    return _to_models(list(await service.tickets_by_priority(context, priority)))


@router.get("/assigned/{user_id}", response_model=list[TicketModel])
async def tickets_assigned_to(user_id: int, service: TicketServiceDep, context: CurrentContext) -> list[TicketModel]:
    return _to_models(list(await service.tickets_assigned_to(context, user_id)))


@router.get("/created/{user_id}", response_model=list[TicketModel])
async def tickets_created_by(user_id: int, service: TicketServiceDep, context: CurrentContext) -> list[TicketModel]:
    return _to_models(list(await service.tickets_created_by(context, user_id)))


@router.get("/{ticket_id}", response_model=TicketDetailModel)
async def get_ticket(ticket_id: int, service: TicketServiceDep, context: CurrentContext) -> TicketDetailModel:
    return TicketDetailModel.from_entity(await service.get_ticket_detail(context, ticket_id))


@router.patch("/{ticket_id}", response_model=TicketModel)
async def update_ticket(
    ticket_id: int,
    payload: TicketUpdateRequest,
    service: TicketServiceDep,
    context: CurrentContext,
) -> TicketModel:
    ticket = await service.update_ticket(context, ticket_id, payload.changes())
    return TicketModel.model_validate(ticket)


@router.post("/{ticket_id}/comments", response_model=CommentModel, status_code=status.HTTP_201_CREATED)
async def add_comment(
    ticket_id: int,
    payload: CommentCreateRequest,
    service: TicketServiceDep,
    context: CurrentContext,
) -> CommentModel:
    comment = await service.add_comment(context, ticket_id, payload.content)
    return CommentModel.model_validate(comment)


@router.get("/{ticket_id}/comments", response_model=list[CommentWithUserModel])
async def list_comments(ticket_id: int, service: TicketServiceDep, context: CurrentContext) -> list[CommentWithUserModel]:
    return [CommentWithUserModel.from_entity(item) for item in await service.list_comments(context, ticket_id)]


@router.get("/{ticket_id}/activities", response_model=list[ActivityWithUserModel])
async def ticket_activities(
    ticket_id: int, service: TicketServiceDep, context: CurrentContext
) -> list[ActivityWithUserModel]:
    return [ActivityWithUserModel.from_entity(item) for item in await service.ticket_activities(context, ticket_id)]
