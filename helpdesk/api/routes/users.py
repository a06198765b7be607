from __future__ import annotations

from fastapi import APIRouter, status

from helpdesk.api.schemas import UserCreateRequest, UserModel
from helpdesk.dependencies.auth import CurrentContext, TicketServiceDep
from helpdesk.tickets.models import NewUser

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserModel, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreateRequest, service: TicketServiceDep, context: CurrentContext) -> UserModel:
    user = await service.create_user(
        context,
        NewUser(
            username=payload.username,
            password=payload.password,
            name=payload.name,
            email=payload.email,
            role=payload.role,
            avatar_url=payload.avatar_url,
        ),
    )
    return UserModel.model_validate(user)


@router.get("", response_model=list[UserModel])
async def list_users(service: TicketServiceDep, context: CurrentContext) -> list[UserModel]:
    return [UserModel.model_validate(user) for user in await service.list_users(context)]


@router.get("/agents", response_model=list[UserModel], summary="Agents available for assignment")
async def list_agents(service: TicketServiceDep, context: CurrentContext) -> list[UserModel]:
    return [UserModel.model_validate(user) for user in await service.list_agents(context)]
