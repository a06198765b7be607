from __future__ import annotations

from fastapi import APIRouter, Query

from helpdesk.api.schemas import ActivityWithUserModel
from helpdesk.dependencies.auth import CurrentContext, TicketServiceDep
from helpdesk.dependencies.settings import SettingsDep

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("", response_model=list[ActivityWithUserModel], summary="Recent activity feed")
async def recent_activities(
    service: TicketServiceDep,
    context: CurrentContext,
    settings: SettingsDep,
    limit: int | None = Query(default=None, ge=1, le=500),
) -> list[ActivityWithUserModel]:
    items = await service.recent_activities(context, limit=limit or settings.default_activity_limit)
    return [ActivityWithUserModel.from_entity(item) for item in items]
