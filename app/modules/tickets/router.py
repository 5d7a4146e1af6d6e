import uuid
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.core.db import get_session, get_session_factory
from app.core.security import get_principal, require_roles, Principal
from app.modules.tickets.schemas import TicketCreate, TicketOut, TicketDetail, StatusChange, SlaEventIn
from app.modules.tickets.service import TicketService
from app.modules.tickets.transitions import InvalidStatusTransition
from app.platform.provider_registry import registry

router = APIRouter()

def svc(
    session: AsyncSession = Depends(get_session),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> TicketService:
    return TicketService(
        session,
        sla=registry.sla(),
        statuses=registry.status_transitions(),
        events=registry.events(),
        automation=registry.automation_trigger(factory),
    )

@router.post("", response_model=TicketOut, status_code=201)
async def create_ticket(
    payload: TicketCreate,
    principal: Principal = Depends(get_principal),
    service: TicketService = Depends(svc),
):
    return await service.create_ticket(principal.org_id, principal.user_id, payload)

@router.get("/{ticket_id}", response_model=TicketDetail)
async def get_ticket(
    ticket_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: TicketService = Depends(svc),
):
    obj = await service.get_detail(principal.org_id, ticket_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return obj

@router.post("/{ticket_id}/status", response_model=TicketOut)
async def change_status(
    ticket_id: uuid.UUID,
    payload: StatusChange,
    principal: Principal = Depends(require_roles("OWNER", "TEAM_ADMIN", "AGENT")),
    service: TicketService = Depends(svc),
):
    try:
        obj = await service.change_status(principal.org_id, principal.user_id, ticket_id, payload.status)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return obj

@router.post("/{ticket_id}/sla-events", status_code=202)
async def deliver_sla_event(
    ticket_id: uuid.UUID,
    payload: SlaEventIn,
    principal: Principal = Depends(require_roles("OWNER")),
    service: TicketService = Depends(svc),
):
    """Called by the SLA monitor when a ticket approaches or breaches its targets."""
    ok = await service.deliver_sla_event(principal.org_id, ticket_id, payload.trigger)
    if not ok:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return {"ticket_id": ticket_id, "trigger": payload.trigger}
