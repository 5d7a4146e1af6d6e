import uuid
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.base import utcnow
from app.modules.sla.engine import SlaEngine
from app.modules.tickets.models import Ticket
from app.modules.tickets.repository import TicketRepository
from app.modules.tickets.schemas import TicketCreate, TicketDetail, TicketOut, TicketMessageOut, TicketEventOut
from app.platform.ports.automation import AutomationTriggerPort
from app.platform.ports.status_transitions import StatusTransitionPort
from app.platform.ports.ticket_store import EventLogPort, TicketSnapshot

log = logging.getLogger("tickets.service")

class TicketService:
    """Ticket writes that automation reacts to.

    Every write commits first and only then fires its trigger, so rules always
    run against committed state and a rule failure cannot undo the write.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        sla: SlaEngine,
        statuses: StatusTransitionPort,
        events: EventLogPort,
        automation: AutomationTriggerPort | None = None,
    ):
        self.session = session
        self.tickets = TicketRepository(session)
        self.sla = sla
        self.statuses = statuses
        self.events = events
        self.automation = automation

    async def _fire(self, ticket_id: uuid.UUID, trigger: str) -> None:
        if self.automation is not None:
            await self.automation.fire(ticket_id, trigger)

    async def create_ticket(self, org_id: uuid.UUID, actor_id: uuid.UUID, payload: TicketCreate) -> Ticket:
        now = utcnow()
        first_response_due_at, due_at = await self.sla.initial_due_dates(
            self.session, payload.priority, payload.assigned_team_id, now
        )
        data = payload.model_dump()
        data["requester_id"] = payload.requester_id or actor_id
        obj = await self.tickets.create(
            org_id,
            **data,
            created_at=now,
            first_response_due_at=first_response_due_at,
            due_at=due_at,
        )
        await self.sla.resync(self.session, obj.id)
        await self.events.append(
            self.session, obj.id, "TICKET_CREATED",
            {
                "priority": obj.priority,
                "assigned_team_id": str(obj.assigned_team_id) if obj.assigned_team_id else None,
            },
            actor_id,
        )
        await self.session.commit()
        log.info("ticket created id=%s priority=%s team=%s", obj.id, obj.priority, obj.assigned_team_id)

        await self._fire(obj.id, "TICKET_CREATED")
        await self.session.refresh(obj)
        return obj

    async def get_ticket(self, org_id: uuid.UUID, ticket_id: uuid.UUID) -> Ticket | None:
        return await self.tickets.get(org_id, ticket_id)

    async def get_detail(self, org_id: uuid.UUID, ticket_id: uuid.UUID) -> TicketDetail | None:
        obj = await self.tickets.get(org_id, ticket_id)
        if not obj:
            return None
        messages = await self.tickets.list_messages(org_id, ticket_id)
        events = await self.tickets.list_events(org_id, ticket_id)
        return TicketDetail(
            **TicketOut.model_validate(obj).model_dump(),
            messages=[TicketMessageOut.model_validate(m) for m in messages],
            events=[TicketEventOut.model_validate(e) for e in events],
        )

    async def change_status(self, org_id: uuid.UUID, actor_id: uuid.UUID, ticket_id: uuid.UUID, new_status: str) -> Ticket | None:
        obj = await self.tickets.get(org_id, ticket_id)
        if not obj:
            return None
        if obj.status == new_status:
            return obj

        # InvalidStatusTransition propagates; nothing has been written yet
        await self.statuses.apply(self.session, TicketSnapshot.model_validate(obj), new_status, actor_id)
        await self.session.commit()
        log.info("ticket status changed id=%s to=%s", ticket_id, new_status)

        await self._fire(ticket_id, "STATUS_CHANGED")
        await self.session.refresh(obj)
        return obj

    async def deliver_sla_event(self, org_id: uuid.UUID, ticket_id: uuid.UUID, trigger: str) -> bool:
        """Entry point for the SLA monitor; returns False when the ticket is unknown."""
        if not await self.tickets.get(org_id, ticket_id):
            return False
        log.info("sla event ticket=%s trigger=%s", ticket_id, trigger)
        await self._fire(ticket_id, trigger)
        return True
