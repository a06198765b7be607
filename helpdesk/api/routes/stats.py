from fastapi import APIRouter

from helpdesk.api.schemas import TicketStatsModel
from helpdesk.dependencies.auth import CurrentContext, TicketServiceDep

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=TicketStatsModel)
async def ticket_stats(service: TicketServiceDep, context: CurrentContext) -> TicketStatsModel:
    return TicketStatsModel.from_entity(await service.ticket_stats(context))
